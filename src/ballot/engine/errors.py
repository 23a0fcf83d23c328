"""Ballot rejection errors.

Every error rejects the current call and leaves ballot state unchanged.
None is fatal to the engine: later calls proceed normally.
"""

from __future__ import annotations


class BallotError(Exception):
    """Base class for all ballot rejections."""
    code = "ballot_error"


class Unauthorized(BallotError):
    """Raised when a non-administrator calls an admin-only operation."""
    code = "unauthorized"


class NotAVoter(BallotError):
    """Raised when the caller is not a registered voter."""
    code = "not_a_voter"


class AlreadyRegistered(BallotError):
    """Raised when an address is registered twice."""
    code = "already_registered"


class InvalidPhase(BallotError):
    """Raised when a workflow transition is invoked from the wrong phase."""
    code = "invalid_phase"


class ProposalsNotOpen(BallotError):
    """Raised when a proposal is submitted outside proposal registration."""
    code = "proposals_not_open"


class VotingNotOpen(BallotError):
    """Raised when a vote is cast outside the voting session."""
    code = "voting_not_open"


class EmptyProposal(BallotError):
    """Raised when a proposal description is empty."""
    code = "empty_proposal"


class AlreadyVoted(BallotError):
    """Raised when a voter votes a second time."""
    code = "already_voted"


class ProposalNotFound(BallotError):
    """Raised when a proposal id is outside the assigned range."""
    code = "proposal_not_found"
