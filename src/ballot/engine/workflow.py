"""Workflow state machine — enforces the fixed ballot phase order.

Workflow:
    REGISTERING_VOTERS → PROPOSALS_REGISTRATION_STARTED →
    PROPOSALS_REGISTRATION_ENDED → VOTING_SESSION_STARTED →
    VOTING_SESSION_ENDED → VOTES_TALLIED

Each transition is bound to exactly one operation and one source phase.
VOTES_TALLIED is terminal. There is no reset and no skipping.

Fail-closed: any (phase, operation) pair not in the table is rejected.
"""

from __future__ import annotations

import enum

from ballot.engine.errors import InvalidPhase
from ballot.models.ballot import WorkflowStatus


class WorkflowOperation(str, enum.Enum):
    """Admin operations that advance the workflow."""
    OPEN_PROPOSALS_REGISTRATION = "open_proposals_registration"
    CLOSE_PROPOSALS_REGISTRATION = "close_proposals_registration"
    OPEN_VOTING_SESSION = "open_voting_session"
    CLOSE_VOTING_SESSION = "close_voting_session"
    TALLY_VOTES = "tally_votes"


# operation → (required source, target)
_TRANSITIONS: dict[WorkflowOperation, tuple[WorkflowStatus, WorkflowStatus]] = {
    WorkflowOperation.OPEN_PROPOSALS_REGISTRATION: (
        WorkflowStatus.REGISTERING_VOTERS,
        WorkflowStatus.PROPOSALS_REGISTRATION_STARTED,
    ),
    WorkflowOperation.CLOSE_PROPOSALS_REGISTRATION: (
        WorkflowStatus.PROPOSALS_REGISTRATION_STARTED,
        WorkflowStatus.PROPOSALS_REGISTRATION_ENDED,
    ),
    WorkflowOperation.OPEN_VOTING_SESSION: (
        WorkflowStatus.PROPOSALS_REGISTRATION_ENDED,
        WorkflowStatus.VOTING_SESSION_STARTED,
    ),
    WorkflowOperation.CLOSE_VOTING_SESSION: (
        WorkflowStatus.VOTING_SESSION_STARTED,
        WorkflowStatus.VOTING_SESSION_ENDED,
    ),
    WorkflowOperation.TALLY_VOTES: (
        WorkflowStatus.VOTING_SESSION_ENDED,
        WorkflowStatus.VOTES_TALLIED,
    ),
}


class WorkflowStateMachine:
    """Validates workflow transitions.

    Pure computation: validates transitions only. Applying the new
    status and emitting notifications is the engine's job.
    """

    @staticmethod
    def validate_transition(
        current: WorkflowStatus,
        operation: WorkflowOperation,
    ) -> list[str]:
        """Check if an operation may run from the current phase.

        Returns errors (empty = OK).
        """
        source, _ = _TRANSITIONS[operation]
        if current != source:
            return [
                f"Invalid workflow transition: {operation.value} requires "
                f"{source.value}, current status is {current.value}"
            ]
        return []

    @staticmethod
    def next_status(
        current: WorkflowStatus,
        operation: WorkflowOperation,
    ) -> WorkflowStatus:
        """Return the target phase, or raise InvalidPhase."""
        errors = WorkflowStateMachine.validate_transition(current, operation)
        if errors:
            raise InvalidPhase(errors[0])
        return _TRANSITIONS[operation][1]

    @staticmethod
    def is_terminal(status: WorkflowStatus) -> bool:
        """Check if a phase is terminal (no further transitions)."""
        return not any(source == status for source, _ in _TRANSITIONS.values())

    @staticmethod
    def valid_operations(status: WorkflowStatus) -> set[WorkflowOperation]:
        """Return the operations that may run from the given phase."""
        return {
            op for op, (source, _) in _TRANSITIONS.items() if source == status
        }
