"""/v1/orders - orders and their payment schedules"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from bnpl_tracker.api.dependencies import get_order_service, get_store
from bnpl_tracker.api.v1.schemas import AddPaymentRequest, CreateOrderRequest, OrderResponse, UpdateOrderRequest
from bnpl_tracker.domain.models import OrderStatus
from bnpl_tracker.domain.snapshot import OrderRecord, PaymentRecord
from bnpl_tracker.infrastructure.database.repositories import Collection
from bnpl_tracker.infrastructure.database.store import LocalStore
from bnpl_tracker.services.orders import OrderService

router = APIRouter()


def _order_response(order, payments) -> OrderResponse:
    return OrderResponse(
        order=OrderRecord.from_entity(order),
        payments=[PaymentRecord.from_entity(p) for p in payments],
    )


@router.get("/orders", response_model=List[OrderRecord])
async def list_orders(
    platform_id: Optional[str] = Query(None, alias="platformId"),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    store: LocalStore = Depends(get_store),
):
    """List orders, optionally filtered by platform or status"""
    if platform_id is not None:
        orders = await store.get_by_index(Collection.ORDERS, "by-platform", platform_id)
    elif order_status is not None:
        orders = await store.get_by_index(Collection.ORDERS, "by-status", order_status)
    else:
        orders = await store.get_all(Collection.ORDERS)

    if order_status is not None:
        orders = [o for o in orders if o.status == order_status]
    return [OrderRecord.from_entity(o) for o in orders]


@router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(body: CreateOrderRequest, service: OrderService = Depends(get_order_service)):
    """
    Create an order and its payment schedule.

    Count and interval default to the platform's settings. Overridden
    installments are pinned and the rest rebalanced to the financed total.
    """
    order, payments = await service.create_order(body.to_new_order())
    return _order_response(order, payments)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    order, payments = await service.get_order(order_id)
    return _order_response(order, payments)


@router.patch("/orders/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: str,
    body: UpdateOrderRequest,
    service: OrderService = Depends(get_order_service),
):
    order, payments = await service.update_order(order_id, body.to_update())
    return _order_response(order, payments)


@router.delete("/orders/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(order_id: str, service: OrderService = Depends(get_order_service)):
    await service.delete_order(order_id)


@router.post("/orders/{order_id}/payments", response_model=PaymentRecord, status_code=status.HTTP_201_CREATED)
async def add_payment(
    order_id: str,
    body: AddPaymentRequest,
    service: OrderService = Depends(get_order_service),
):
    payment = await service.add_payment_to_order(order_id, body.amount, body.due_date)
    return PaymentRecord.from_entity(payment)
