"""Core data models for the ballot engine."""

from ballot.models.ballot import (
    GENESIS_DESCRIPTION,
    WORKFLOW_ORDER,
    BallotState,
    Proposal,
    Voter,
    WorkflowStatus,
)

__all__ = [
    "GENESIS_DESCRIPTION",
    "WORKFLOW_ORDER",
    "BallotState",
    "Proposal",
    "Voter",
    "WorkflowStatus",
]
