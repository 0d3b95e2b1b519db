"""
agora.engine.escalation — Scope Ladder & Escalation Planning
=============================================================

Pure calculation — no database I/O.

A proposal that collects enough yes votes before its deadline climbs to
the next, broader governance scope::

    neighborhood → city → state → region → country → worldwide → interplanetary

Each level has its own yes-vote threshold (``100 × multiplier``) and voting
window.  ``interplanetary`` is terminal: planning an escalation there
returns ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from agora.constants import (
    BASE_ESCALATION_THRESHOLD,
    SCOPE_LADDER,
    THRESHOLD_MULTIPLIERS,
    VOTING_WINDOW_DAYS,
    ensure_utc,
)
from agora.database.models import ProposalStatus, Scope
from agora.errors import InvalidRequest


@dataclass(frozen=True, slots=True)
class EscalationPlan:
    """Field values a proposal takes on after escalating."""

    scope: Scope
    escalation_threshold: int
    voting_deadline: datetime


def scope_level(scope: str) -> int:
    """Index of *scope* on the ladder."""
    try:
        return SCOPE_LADDER.index(str(scope))
    except ValueError:
        raise InvalidRequest(f"Unknown scope {scope!r}") from None


def threshold_for(scope: str) -> int:
    return BASE_ESCALATION_THRESHOLD * THRESHOLD_MULTIPLIERS[scope_level(scope)]


def voting_window(scope: str) -> timedelta:
    return timedelta(days=VOTING_WINDOW_DAYS[scope_level(scope)])


def next_scope(scope: str) -> Scope | None:
    """The scope one rung up, or ``None`` at the top of the ladder."""
    level = scope_level(scope)
    if level + 1 >= len(SCOPE_LADDER):
        return None
    return Scope(SCOPE_LADDER[level + 1])


def is_eligible(
    *,
    status: str,
    yes_votes: int,
    escalation_threshold: int,
    voting_deadline: datetime,
    now: datetime,
) -> bool:
    """Active, threshold met, and the voting window has elapsed."""
    return (
        status == ProposalStatus.ACTIVE
        and yes_votes >= escalation_threshold
        and ensure_utc(now) >= ensure_utc(voting_deadline)
    )


def plan_escalation(scope: str, now: datetime) -> EscalationPlan | None:
    """Compute the post-escalation scope, threshold and deadline."""
    target = next_scope(scope)
    if target is None:
        return None
    return EscalationPlan(
        scope=target,
        escalation_threshold=threshold_for(target),
        voting_deadline=ensure_utc(now) + voting_window(target),
    )
