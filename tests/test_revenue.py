"""
tests/test_revenue.py — Pure comment revenue calculations
===========================================================
"""

from __future__ import annotations

from decimal import Decimal

from agora.database.models import Currency
from agora.engine.revenue import (
    RevenueAccrual,
    accrue_upvote,
    integration_payout,
    should_auto_integrate,
)


class TestAccrual:
    def test_competent_accrues_acents(self):
        assert accrue_upvote(is_competent=True, is_integrated=False) == RevenueAccrual(
            acent=Decimal("0.1")
        )

    def test_non_competent_accrues_dcents(self):
        assert accrue_upvote(is_competent=False, is_integrated=False) == RevenueAccrual(
            dcent=Decimal("0.1")
        )

    def test_integrated_accrues_nothing(self):
        assert accrue_upvote(is_competent=True, is_integrated=True) == RevenueAccrual()

    def test_ten_upvotes_are_exactly_one(self):
        total = sum(
            (accrue_upvote(is_competent=True, is_integrated=False).acent for _ in range(10)),
            Decimal("0"),
        )
        assert total == Decimal("1")


class TestAutoIntegration:
    def test_threshold_is_half_of_yes_votes(self):
        assert not should_auto_integrate(upvotes=4, proposal_yes_votes=10, is_integrated=False)
        assert should_auto_integrate(upvotes=5, proposal_yes_votes=10, is_integrated=False)

    def test_odd_yes_votes(self):
        assert not should_auto_integrate(upvotes=5, proposal_yes_votes=11, is_integrated=False)
        assert should_auto_integrate(upvotes=6, proposal_yes_votes=11, is_integrated=False)

    def test_zero_yes_votes_integrates_immediately(self):
        assert should_auto_integrate(upvotes=1, proposal_yes_votes=0, is_integrated=False)

    def test_already_integrated_never_again(self):
        assert not should_auto_integrate(upvotes=50, proposal_yes_votes=10, is_integrated=True)


class TestPayout:
    def test_competent_paid_in_acents(self):
        payout = integration_payout(
            is_competent=True, acent_revenue=Decimal("0.5"), dcent_revenue=Decimal("0")
        )
        assert payout.amount == Decimal("0.5")
        assert payout.currency == Currency.ACENT
        assert not payout.converted

    def test_non_competent_converted_to_acents(self):
        payout = integration_payout(
            is_competent=False, acent_revenue=Decimal("0"), dcent_revenue=Decimal("0.5")
        )
        assert payout.amount == Decimal("0.5")
        assert payout.currency == Currency.ACENT
        assert payout.converted

    def test_nothing_accrued_no_payout(self):
        assert integration_payout(
            is_competent=True, acent_revenue=Decimal("0"), dcent_revenue=Decimal("0")
        ) is None
        assert integration_payout(
            is_competent=False, acent_revenue=Decimal("0"), dcent_revenue=Decimal("0")
        ) is None
