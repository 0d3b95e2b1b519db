"""
agora.errors — Domain Error Taxonomy
=====================================

Every rule violation in the core raises a subclass of :class:`AgoraError`.
Each class carries a stable ``code`` and the ``http_status`` the API layer
maps it to, so services never import FastAPI.
"""

from __future__ import annotations


class AgoraError(Exception):
    """Base class for all domain errors."""

    code = "agora_error"
    http_status = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)


class NotFound(AgoraError):
    """The requested record does not exist."""
    code = "not_found"
    http_status = 404


class Unauthorized(AgoraError):
    """The caller may not perform this action."""
    code = "unauthorized"
    http_status = 403


class InvalidRequest(AgoraError):
    """The request is malformed."""
    code = "invalid_request"


class InsufficientBalance(AgoraError):
    """The account balance cannot cover this debit."""
    code = "insufficient_balance"


class InsufficientDcents(InsufficientBalance):
    """Not enough Dcents to comment without passing the quiz."""
    code = "insufficient_dcents"


class DuplicateVote(AgoraError):
    """A vote by this voter already exists."""
    code = "duplicate_vote"
    http_status = 409


class DuplicateDelegation(AgoraError):
    """This delegator already delegated on this proposal."""
    code = "duplicate_delegation"
    http_status = 409


class SelfDelegation(AgoraError):
    """Cannot delegate to yourself."""
    code = "self_delegation"


class SelfVote(AgoraError):
    """Cannot vote on your own comment."""
    code = "self_vote"


class DelegateeNotCompetent(AgoraError):
    """The delegatee has not passed this proposal's quiz."""
    code = "delegatee_not_competent"


class AlreadyVoted(AgoraError):
    """The delegator already voted on this proposal."""
    code = "already_voted"
    http_status = 409


class DelegateeAlreadyVoted(AgoraError):
    """The delegatee already voted, so the delegation could never be used."""
    code = "delegatee_already_voted"
    http_status = 409


class AlreadyDelegated(AgoraError):
    """The voter delegated their vote on this proposal."""
    code = "already_delegated"
    http_status = 409


class QuizNotPassed(AgoraError):
    """The quiz must be passed before voting directly."""
    code = "quiz_not_passed"
    http_status = 403


class QuizAlreadyExists(AgoraError):
    """This proposal already has a quiz."""
    code = "quiz_already_exists"
    http_status = 409


class VotingClosed(AgoraError):
    """Voting is closed for this proposal."""
    code = "voting_closed"


class AlreadyIntegrated(AgoraError):
    """The comment is already integrated."""
    code = "already_integrated"
    http_status = 409


class DelegationNotActive(AgoraError):
    """The delegation is no longer active."""
    code = "delegation_not_active"


class EscalationNotEligible(AgoraError):
    """The proposal does not meet the escalation conditions."""
    code = "escalation_not_eligible"
