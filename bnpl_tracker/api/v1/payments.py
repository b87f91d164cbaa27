"""/v1/payments - individual installments"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, status

from bnpl_tracker.api.dependencies import get_order_service
from bnpl_tracker.api.v1.schemas import MarkPaidRequest, UpdatePaymentRequest
from bnpl_tracker.domain.snapshot import PaymentRecord
from bnpl_tracker.services.orders import OrderService

router = APIRouter()


@router.patch("/payments/{payment_id}", response_model=List[PaymentRecord])
async def update_payment(
    payment_id: str,
    body: UpdatePaymentRequest,
    service: OrderService = Depends(get_order_service),
):
    """Pin a payment's amount and/or due date; returns the order's rebalanced payments"""
    payments = await service.update_payment(payment_id, amount=body.amount, due_date=body.due_date)
    return [PaymentRecord.from_entity(p) for p in payments]


@router.delete("/payments/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(payment_id: str, service: OrderService = Depends(get_order_service)):
    await service.delete_payment(payment_id)


@router.post("/payments/{payment_id}/paid", response_model=PaymentRecord)
async def mark_paid(
    payment_id: str,
    body: Optional[MarkPaidRequest] = Body(None),
    service: OrderService = Depends(get_order_service),
):
    """Mark paid as of paidDate (today when omitted)"""
    paid_date = body.paid_date if body is not None else None
    payment = await service.mark_payment_paid(payment_id, paid_date)
    return PaymentRecord.from_entity(payment)


@router.post("/payments/{payment_id}/unpaid", response_model=PaymentRecord)
async def mark_unpaid(payment_id: str, service: OrderService = Depends(get_order_service)):
    payment = await service.mark_payment_unpaid(payment_id)
    return PaymentRecord.from_entity(payment)
