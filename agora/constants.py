"""
agora.constants — Economic Constants & Shared Helpers
======================================================

Single source of truth for the fixed economy.  These values are part of
the platform's contract with its members and are not admin-tunable.
Import from here instead of repeating literals in services.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

# ---------------------------------------------------------------------------
# Amount precision: every balance and transaction amount is quantized here
# ---------------------------------------------------------------------------
AMOUNT_QUANTUM = Decimal("0.0001")


def to_amount(value: Decimal | int | str) -> Decimal:
    """Coerce *value* to a ledger amount with fixed 4-place precision.

    Floats are rejected so binary rounding never reaches a balance.
    """
    if isinstance(value, float):
        raise TypeError("Ledger amounts must be Decimal, int or str, not float")
    return Decimal(value).quantize(AMOUNT_QUANTUM)


# ---------------------------------------------------------------------------
# Fixed economy
# ---------------------------------------------------------------------------
STARTING_ACENTS = Decimal("1")              # accounts open with no Dcents

PROPOSAL_CREATION_COST = Decimal("5")       # acents
NON_COMPETENT_COMMENT_COST = Decimal("3")   # dcents

QUIZ_PASS_REWARD = Decimal("1")             # acents
VOTE_CAST_REWARD = Decimal("1")             # acents
YES_VOTE_AUTHOR_REWARD = Decimal("1")       # acents
DELEGATION_GIVEN_REWARD = Decimal("1")      # dcents
DELEGATION_RECEIVED_REWARD = Decimal("1")   # dcents, per delegation
DELEGATION_REVOCATION_PENALTY = Decimal("1")  # dcents
COMMENT_VOTE_REWARD = Decimal("1")          # dcents, voter and author each

COMMENT_UPVOTE_REVENUE = Decimal("0.1")
AUTO_INTEGRATION_RATIO = Decimal("0.5")     # of the proposal's yes votes

DEFAULT_PASSING_SCORE = 70

# ---------------------------------------------------------------------------
# Governance scope ladder
# ---------------------------------------------------------------------------
SCOPE_LADDER: tuple[str, ...] = (
    "neighborhood",
    "city",
    "state",
    "region",
    "country",
    "worldwide",
    "interplanetary",
)

BASE_ESCALATION_THRESHOLD = 100
THRESHOLD_MULTIPLIERS: tuple[int, ...] = (1, 5, 10, 20, 50, 100, 200)
VOTING_WINDOW_DAYS: tuple[int, ...] = (7, 14, 30, 45, 60, 90, 180)

REDELEGATION_COOLDOWN = timedelta(days=365)


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
