"""Ballot data models — voters, proposals, and the singleton ballot state.

Workflow: REGISTERING_VOTERS → PROPOSALS_REGISTRATION_STARTED →
PROPOSALS_REGISTRATION_ENDED → VOTING_SESSION_STARTED →
VOTING_SESSION_ENDED → VOTES_TALLIED

Proposal 0 is the GENESIS sentinel, created when proposal registration
opens. Voters are keyed by address and never deleted.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


GENESIS_DESCRIPTION = "GENESIS"


class WorkflowStatus(str, enum.Enum):
    """Ballot lifecycle phase.

    Declaration order is the workflow order. ``code`` is the position in
    that order and is what notifications carry.
    """
    REGISTERING_VOTERS = "registering_voters"
    PROPOSALS_REGISTRATION_STARTED = "proposals_registration_started"
    PROPOSALS_REGISTRATION_ENDED = "proposals_registration_ended"
    VOTING_SESSION_STARTED = "voting_session_started"
    VOTING_SESSION_ENDED = "voting_session_ended"
    VOTES_TALLIED = "votes_tallied"

    @property
    def code(self) -> int:
        return WORKFLOW_ORDER.index(self)

    @classmethod
    def from_code(cls, code: int) -> WorkflowStatus:
        if not 0 <= code < len(WORKFLOW_ORDER):
            raise ValueError(f"Unknown workflow status code: {code}")
        return WORKFLOW_ORDER[code]


WORKFLOW_ORDER: tuple[WorkflowStatus, ...] = tuple(WorkflowStatus)


@dataclass
class Voter:
    """A registry entry for one address.

    A zero-valued Voter (``is_registered=False``) stands for an address
    that was never registered.
    """
    is_registered: bool = False
    has_voted: bool = False
    voted_proposal_id: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_registered": self.is_registered,
            "has_voted": self.has_voted,
            "voted_proposal_id": self.voted_proposal_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Voter:
        return cls(
            is_registered=bool(data.get("is_registered", False)),
            has_voted=bool(data.get("has_voted", False)),
            voted_proposal_id=int(data.get("voted_proposal_id", 0)),
        )


@dataclass
class Proposal:
    """A candidate option. Its id is its index in the proposal list."""
    description: str
    vote_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"description": self.description, "vote_count": self.vote_count}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Proposal:
        return cls(
            description=data["description"],
            vote_count=int(data.get("vote_count", 0)),
        )


@dataclass
class BallotState:
    """All state owned by one ballot.

    Mutated only by BallotEngine. ``winning_proposal_id`` is meaningful
    only once status is VOTES_TALLIED.
    """
    administrator: str
    status: WorkflowStatus = WorkflowStatus.REGISTERING_VOTERS
    winning_proposal_id: int = 0
    voters: dict[str, Voter] = field(default_factory=dict)
    proposals: list[Proposal] = field(default_factory=list)

    @property
    def votes_cast(self) -> int:
        return sum(1 for v in self.voters.values() if v.has_voted)

    def to_dict(self) -> dict[str, Any]:
        return {
            "administrator": self.administrator,
            "status": self.status.value,
            "winning_proposal_id": self.winning_proposal_id,
            "voters": {addr: v.to_dict() for addr, v in self.voters.items()},
            "proposals": [p.to_dict() for p in self.proposals],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BallotState:
        return cls(
            administrator=data["administrator"],
            status=WorkflowStatus(data["status"]),
            winning_proposal_id=int(data.get("winning_proposal_id", 0)),
            voters={
                addr: Voter.from_dict(v)
                for addr, v in data.get("voters", {}).items()
            },
            proposals=[Proposal.from_dict(p) for p in data.get("proposals", [])],
        )
