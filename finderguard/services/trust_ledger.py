"""
Trust ledger - the only code allowed to change a trust score.
Each terminal exchange transition applies exactly one of these, once.
"""

from pydantic import BaseModel, Field

TRUST_MIN = 0
TRUST_MAX = 100
SUCCESS_DELTA = 5
FAILURE_DELTA = 10


class TrustProfile(BaseModel):
    model_config = {"frozen": True, "from_attributes": True}

    trust_score: int = Field(TRUST_MAX, ge=TRUST_MIN, le=TRUST_MAX)
    reports_count: int = 0
    failed_exchanges: int = 0


def apply_success(profile: TrustProfile) -> TrustProfile:
    """Founder handed the item over and the owner confirmed in time."""
    return profile.model_copy(
        update={
            "trust_score": min(TRUST_MAX, profile.trust_score + SUCCESS_DELTA),
            "reports_count": profile.reports_count + 1,
        }
    )


def apply_failure(profile: TrustProfile) -> TrustProfile:
    """Founder started a handover that was never confirmed."""
    return profile.model_copy(
        update={
            "trust_score": max(TRUST_MIN, profile.trust_score - FAILURE_DELTA),
            "failed_exchanges": profile.failed_exchanges + 1,
        }
    )
