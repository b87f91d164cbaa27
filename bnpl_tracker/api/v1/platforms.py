"""/v1/platforms and /v1/subscriptions"""

from typing import List

from fastapi import APIRouter, Depends

from bnpl_tracker.api.dependencies import get_platform_service, get_store
from bnpl_tracker.api.v1.schemas import PlatformLimitRequest, PlatformScheduleRequest, SubscriptionRequest
from bnpl_tracker.domain.models import Subscription
from bnpl_tracker.domain.snapshot import LimitChangeRecord, PlatformRecord, SubscriptionRecord
from bnpl_tracker.infrastructure.database.repositories import Collection
from bnpl_tracker.infrastructure.database.store import LocalStore
from bnpl_tracker.services.platforms import PlatformService

router = APIRouter()


@router.get("/platforms", response_model=List[PlatformRecord])
async def list_platforms(store: LocalStore = Depends(get_store)):
    return [PlatformRecord.from_entity(p) for p in await store.get_all(Collection.PLATFORMS)]


@router.put("/platforms/{platform_id}/limit", response_model=PlatformRecord)
async def update_limit(
    platform_id: str,
    body: PlatformLimitRequest,
    service: PlatformService = Depends(get_platform_service),
):
    """Set the credit limit; changes are logged with the current on-time streak"""
    platform = await service.update_platform_limit(platform_id, body.credit_limit)
    return PlatformRecord.from_entity(platform)


@router.put("/platforms/{platform_id}/schedule", response_model=PlatformRecord)
async def update_schedule(
    platform_id: str,
    body: PlatformScheduleRequest,
    service: PlatformService = Depends(get_platform_service),
):
    platform = await service.update_platform_schedule(
        platform_id, body.default_installments, body.default_interval_days
    )
    return PlatformRecord.from_entity(platform)


@router.get("/platforms/{platform_id}/limit-history", response_model=List[LimitChangeRecord])
async def limit_history(platform_id: str, service: PlatformService = Depends(get_platform_service)):
    return [LimitChangeRecord.from_entity(c) for c in await service.get_limit_history(platform_id)]


@router.get("/subscriptions", response_model=List[SubscriptionRecord])
async def list_subscriptions(store: LocalStore = Depends(get_store)):
    return [SubscriptionRecord.from_entity(s) for s in await store.get_all(Collection.SUBSCRIPTIONS)]


@router.put("/subscriptions/{platform_id}", response_model=SubscriptionRecord)
async def update_subscription(
    platform_id: str,
    body: SubscriptionRequest,
    service: PlatformService = Depends(get_platform_service),
):
    subscription = await service.update_subscription(Subscription(platform_id=platform_id, **body.model_dump()))
    return SubscriptionRecord.from_entity(subscription)
