"""Backfill fields introduced by newer schema versions"""

from dataclasses import dataclass, replace
from typing import List

from bnpl_tracker.domain.defaults import DEFAULT_PLATFORM_GOALS, DEFAULT_PLATFORM_TIERS
from bnpl_tracker.domain.models import Order, OrderType, Platform, PlatformTier


@dataclass
class MigrationResult:
    orders: List[Order]
    platforms: List[Platform]
    orders_changed: bool
    platforms_changed: bool


def default_tier(platform_id: str) -> PlatformTier:
    return DEFAULT_PLATFORM_TIERS.get(platform_id, PlatformTier.LIMITED)


def default_goal(platform_id: str) -> int:
    return DEFAULT_PLATFORM_GOALS.get(platform_id, 0)


def migrate_to_v2(orders: List[Order], platforms: List[Platform]) -> MigrationResult:
    """
    Bring v1 entities up to the v2 schema.

    - Orders without order_type become personal
    - Platforms without tier / goal_limit get the built-in default for their id

    Idempotent: migrated data reports no changes on a second pass, so callers
    can write back only the collections flagged as changed.
    """
    orders_changed = False
    platforms_changed = False

    migrated_orders = []
    for order in orders:
        if order.order_type is None:
            orders_changed = True
            order = replace(order, order_type=OrderType.PERSONAL)
        migrated_orders.append(order)

    migrated_platforms = []
    for platform in platforms:
        if platform.tier is None or platform.goal_limit is None:
            platforms_changed = True
            platform = replace(
                platform,
                tier=platform.tier or default_tier(platform.id),
                goal_limit=platform.goal_limit if platform.goal_limit is not None else default_goal(platform.id),
            )
        migrated_platforms.append(platform)

    return MigrationResult(
        orders=migrated_orders,
        platforms=migrated_platforms,
        orders_changed=orders_changed,
        platforms_changed=platforms_changed,
    )
