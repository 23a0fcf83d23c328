"""Ballot engine — workflow state machine, access control, and tally."""

from ballot.engine.ballot_engine import BallotEngine, Notification, NotificationKind
from ballot.engine.workflow import WorkflowOperation, WorkflowStateMachine
from ballot.engine.tally import plurality_winner

__all__ = [
    "BallotEngine",
    "Notification",
    "NotificationKind",
    "WorkflowOperation",
    "WorkflowStateMachine",
    "plurality_winner",
]
