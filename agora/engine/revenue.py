"""
agora.engine.revenue — Comment Revenue & Integration Payout
============================================================

Pure calculation — no database I/O.

Every upvote on a not-yet-integrated comment accrues ``0.1`` of revenue:
Acents for competent authors, Dcents for everyone else.  Nothing is paid
until the comment is *integrated*, at which point the accrued amount is
paid out once, always in Acents.  For non-competent authors this is the
platform's only Dcent → Acent conversion.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from agora.constants import AUTO_INTEGRATION_RATIO, COMMENT_UPVOTE_REVENUE, to_amount
from agora.database.models import Currency


@dataclass(frozen=True, slots=True)
class RevenueAccrual:
    acent: Decimal = Decimal("0")
    dcent: Decimal = Decimal("0")


@dataclass(frozen=True, slots=True)
class IntegrationPayout:
    """A single credit to the comment author at integration time."""

    amount: Decimal
    currency: Currency
    converted: bool  # True when Dcent revenue is paid as Acents


def accrue_upvote(*, is_competent: bool, is_integrated: bool) -> RevenueAccrual:
    """Revenue added to a comment by one upvote."""
    if is_integrated:
        return RevenueAccrual()
    if is_competent:
        return RevenueAccrual(acent=COMMENT_UPVOTE_REVENUE)
    return RevenueAccrual(dcent=COMMENT_UPVOTE_REVENUE)


def should_auto_integrate(*, upvotes: int, proposal_yes_votes: int, is_integrated: bool) -> bool:
    """Upvotes reached half of the proposal's yes votes."""
    if is_integrated:
        return False
    return Decimal(upvotes) >= AUTO_INTEGRATION_RATIO * Decimal(proposal_yes_votes)


def integration_payout(
    *,
    is_competent: bool,
    acent_revenue: Decimal,
    dcent_revenue: Decimal,
) -> IntegrationPayout | None:
    """The one-time payout owed on integration, or ``None`` if nothing accrued."""
    if is_competent:
        if acent_revenue > 0:
            return IntegrationPayout(
                amount=to_amount(acent_revenue), currency=Currency.ACENT, converted=False
            )
        return None
    if dcent_revenue > 0:
        return IntegrationPayout(
            amount=to_amount(dcent_revenue), currency=Currency.ACENT, converted=True
        )
    return None
