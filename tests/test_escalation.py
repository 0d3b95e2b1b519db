"""
tests/test_escalation.py — Scope ladder & escalation planning
===============================================================
Pure engine tests plus the service-level escalation round trip.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from agora.constants import ensure_utc
from agora.database.models import Proposal, ProposalStatus, Scope
from agora.engine import escalation
from agora.errors import EscalationNotEligible, InvalidRequest
from agora.services import proposal_service
from conftest import make_account, make_proposal

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestLadder:
    @pytest.mark.parametrize(
        ("scope", "threshold", "days"),
        [
            (Scope.NEIGHBORHOOD, 100, 7),
            (Scope.CITY, 500, 14),
            (Scope.STATE, 1000, 30),
            (Scope.REGION, 2000, 45),
            (Scope.COUNTRY, 5000, 60),
            (Scope.WORLDWIDE, 10000, 90),
            (Scope.INTERPLANETARY, 20000, 180),
        ],
    )
    def test_threshold_and_window(self, scope, threshold, days):
        assert escalation.threshold_for(scope) == threshold
        assert escalation.voting_window(scope) == timedelta(days=days)

    def test_next_scope(self):
        assert escalation.next_scope(Scope.NEIGHBORHOOD) == Scope.CITY
        assert escalation.next_scope(Scope.INTERPLANETARY) is None

    def test_unknown_scope(self):
        with pytest.raises(InvalidRequest):
            escalation.scope_level("galactic")


class TestPlanning:
    def test_plan_resets_threshold_and_deadline(self):
        plan = escalation.plan_escalation(Scope.CITY, NOW)
        assert plan.scope == Scope.STATE
        assert plan.escalation_threshold == 1000
        assert plan.voting_deadline == NOW + timedelta(days=30)

    def test_plan_at_top_is_none(self):
        assert escalation.plan_escalation(Scope.INTERPLANETARY, NOW) is None

    def test_eligibility_needs_all_three(self):
        kwargs = dict(
            status=ProposalStatus.ACTIVE,
            yes_votes=100,
            escalation_threshold=100,
            voting_deadline=NOW,
            now=NOW,
        )
        assert escalation.is_eligible(**kwargs)
        assert not escalation.is_eligible(**{**kwargs, "yes_votes": 99})
        assert not escalation.is_eligible(**{**kwargs, "status": ProposalStatus.CLOSED})
        assert not escalation.is_eligible(**{**kwargs, "now": NOW - timedelta(seconds=1)})

    def test_eligibility_accepts_naive_deadline(self):
        assert escalation.is_eligible(
            status="active",
            yes_votes=1,
            escalation_threshold=1,
            voting_deadline=NOW.replace(tzinfo=None),
            now=NOW,
        )


def _force_eligible(engine, proposal_id: int) -> datetime:
    """Give the proposal enough yes votes; return a moment past its deadline."""
    with Session(engine) as session:
        proposal = session.get(Proposal, proposal_id)
        proposal.yes_votes = proposal.escalation_threshold
        proposal.total_votes = proposal.escalation_threshold
        deadline = proposal.voting_deadline
        session.commit()
    return ensure_utc(deadline) + timedelta(seconds=1)


class TestEscalateProposal:
    def test_escalation_resets_counters(self, engine):
        author = make_account(engine, "author")
        proposal_id = make_proposal(engine, author)
        after = _force_eligible(engine, proposal_id)

        proposal = proposal_service.escalate_proposal(engine, proposal_id, now=after)

        assert proposal.scope == Scope.CITY
        assert proposal.status == ProposalStatus.ACTIVE
        assert (proposal.yes_votes, proposal.no_votes, proposal.total_votes) == (0, 0, 0)
        assert proposal.escalation_threshold == 500

    def test_not_eligible_before_deadline(self, engine):
        author = make_account(engine, "author")
        proposal_id = make_proposal(engine, author)
        _force_eligible(engine, proposal_id)
        with pytest.raises(EscalationNotEligible):
            proposal_service.escalate_proposal(engine, proposal_id)

    def test_not_eligible_below_threshold(self, engine):
        author = make_account(engine, "author")
        proposal_id = make_proposal(engine, author)
        later = datetime.now(UTC) + timedelta(days=30)
        with pytest.raises(EscalationNotEligible):
            proposal_service.escalate_proposal(engine, proposal_id, now=later)

    def test_round_trip_through_all_levels_terminates(self, engine):
        author = make_account(engine, "author")
        proposal_id = make_proposal(engine, author)

        seen = []
        for _ in range(len(escalation.SCOPE_LADDER) + 2):
            after = _force_eligible(engine, proposal_id)
            proposal = proposal_service.escalate_proposal(engine, proposal_id, now=after)
            seen.append(proposal.scope)

        assert seen[-1] == Scope.INTERPLANETARY
        assert seen[-2] == Scope.INTERPLANETARY
        assert seen[:6] == [
            Scope.CITY, Scope.STATE, Scope.REGION,
            Scope.COUNTRY, Scope.WORLDWIDE, Scope.INTERPLANETARY,
        ]
