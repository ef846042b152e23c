from __future__ import annotations

from enum import Enum


class SubscriptionTier(str, Enum):
    """Paid plans a visitor can pick before signing in."""

    BENCH = "bench"
    ROOKIE = "rookie"
    MVP = "mvp"


def parse_tier(value: str | None) -> SubscriptionTier | None:
    """Return the matching tier, or ``None`` for anything outside the enum."""
    if not value:
        return None
    try:
        return SubscriptionTier(value)
    except ValueError:
        return None


__all__ = ["SubscriptionTier", "parse_tier"]
