"""
Entitlement rules

  Pro (active subscription or pro plan): unlimited
  Free:                                  5 analyses for the lifetime of the account

A use is consumed right before the generation call is issued, never on a
blocked attempt.
"""

from dataclasses import dataclass

from parentmath.auth.schemas import UsageProfile

FREE_LIMIT = 5


@dataclass(frozen=True)
class Entitlement:
    is_pro: bool
    can_use_free: bool


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    is_pro: bool
    uses_remaining: int


def has_pro_access(profile: UsageProfile) -> bool:
    return profile.subscription_status == "active" or profile.plan == "pro"


def can_use_free(profile: UsageProfile) -> bool:
    return profile.free_uses_used < FREE_LIMIT


def uses_remaining(profile: UsageProfile) -> int:
    return max(0, FREE_LIMIT - profile.free_uses_used)


def evaluate(profile: UsageProfile) -> Entitlement:
    return Entitlement(is_pro=has_pro_access(profile), can_use_free=can_use_free(profile))


def gate(profile: UsageProfile) -> GateDecision:
    ent = evaluate(profile)
    return GateDecision(
        allowed=ent.is_pro or ent.can_use_free,
        is_pro=ent.is_pro,
        uses_remaining=uses_remaining(profile),
    )


def limits_payload(profile: UsageProfile) -> dict:
    """Shape returned to the frontend for the usage banner and paywall."""
    ent = evaluate(profile)
    return {
        "plan": profile.plan,
        "is_pro": ent.is_pro,
        "can_use_free": ent.can_use_free,
        "uses_remaining": "unlimited" if ent.is_pro else uses_remaining(profile),
        "free_limit": FREE_LIMIT,
    }
