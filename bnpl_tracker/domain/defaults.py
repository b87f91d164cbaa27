"""Built-in platforms and subscriptions seeded into an empty store"""

from typing import Dict, List

from bnpl_tracker.domain.models import Platform, PlatformTier, Subscription

# Target limits users work toward, in cents
DEFAULT_PLATFORM_GOALS: Dict[str, int] = {
    "sezzle": 300_000,
    "klarna": 75_000,
    "zip": 100_000,
    "afterpay": 200_000,
    "four": 30_000,
    "affirm": 0,  # Variable limit, no goal
}

DEFAULT_PLATFORM_TIERS: Dict[str, PlatformTier] = {
    "sezzle": PlatformTier.FLEXIBLE,
    "klarna": PlatformTier.FLEXIBLE,
    "zip": PlatformTier.FLEXIBLE,
    "afterpay": PlatformTier.LIMITED,
    "four": PlatformTier.LIMITED,
    "affirm": PlatformTier.LIMITED,
}

AFFIRM_INSTALLMENT_OPTIONS = [3, 4, 6, 12, 18, 24, 36, 48]


def default_platforms() -> List[Platform]:
    """Fresh copies of the built-in platforms"""
    rows = [
        ("afterpay", "Afterpay", 80_000, "#B2FCE4"),
        ("sezzle", "Sezzle", 25_000, "#8832D4"),
        ("klarna", "Klarna", 35_000, "#FFB3C7"),
        ("zip", "Zip", 15_000, "#00A9E0"),
        ("four", "Four", 18_000, "#FF6B35"),
        ("affirm", "Affirm", 0, "#0FA0EA"),
    ]
    return [
        Platform(
            id=platform_id,
            name=name,
            credit_limit=credit_limit,
            color=color,
            default_installments=4,
            default_interval_days=14,
            goal_limit=DEFAULT_PLATFORM_GOALS[platform_id],
            tier=DEFAULT_PLATFORM_TIERS[platform_id],
        )
        for platform_id, name, credit_limit, color in rows
    ]


def default_subscriptions() -> List[Subscription]:
    return [
        Subscription(platform_id="sezzle", is_active=True, monthly_cost=0),
        Subscription(platform_id="four", is_active=True, monthly_cost=0),
    ]
