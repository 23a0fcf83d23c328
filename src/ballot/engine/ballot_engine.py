"""Ballot engine — access control, phase gating, and vote casting.

The engine owns one BallotState and exposes the full operation set.
Every operation takes the caller's identity explicitly. Each operation
runs all of its checks before touching state, so a rejected call never
leaves a partial mutation behind.

Access gates:
- admin: caller == state.administrator (register_voter, transitions).
- voter: caller has a registered Voter record (reads, proposals, votes).
- none: get_winning_proposal_id and the status getters.

Mutating operations return the Notification they produced, except
submit_proposal which returns the new proposal id. If a ``notify`` sink
was supplied it receives every Notification after the state change has
been applied.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional

from ballot.engine.errors import (
    AlreadyRegistered,
    AlreadyVoted,
    EmptyProposal,
    NotAVoter,
    ProposalNotFound,
    ProposalsNotOpen,
    Unauthorized,
    VotingNotOpen,
)
from ballot.engine.tally import plurality_winner, vote_counts
from ballot.engine.workflow import WorkflowOperation, WorkflowStateMachine
from ballot.models.ballot import (
    GENESIS_DESCRIPTION,
    BallotState,
    Proposal,
    Voter,
    WorkflowStatus,
)


class NotificationKind(str, enum.Enum):
    """State-change announcements emitted by the engine."""
    VOTER_REGISTERED = "voter_registered"
    PROPOSAL_REGISTERED = "proposal_registered"
    VOTE_CAST = "vote_cast"
    WORKFLOW_STATUS_CHANGE = "workflow_status_change"


@dataclass(frozen=True)
class Notification:
    """A single state-change announcement."""
    kind: NotificationKind
    caller: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TallyResult:
    """Per-proposal counts and the winner.

    ``winning_proposal_id`` is None until the votes have been tallied.
    """
    counts: dict[int, int]
    winning_proposal_id: Optional[int]
    votes_cast: int


class BallotEngine:
    """Single-authority plurality ballot.

    Usage:
        engine = BallotEngine(BallotState(administrator="owner"))
        engine.register_voter("owner", "alice")
        engine.open_proposals_registration("owner")
        engine.submit_proposal("alice", "Eating")
        engine.close_proposals_registration("owner")
        engine.open_voting_session("owner")
        engine.cast_vote("alice", 1)
        engine.close_voting_session("owner")
        engine.tally_votes("owner")
        engine.get_winning_proposal_id()  # → 1
    """

    def __init__(
        self,
        state: BallotState,
        notify: Optional[Callable[[Notification], None]] = None,
    ) -> None:
        self._state = state
        self._notify = notify

    @classmethod
    def deploy(
        cls,
        administrator: str,
        notify: Optional[Callable[[Notification], None]] = None,
    ) -> BallotEngine:
        """Create a fresh ballot administered by ``administrator``."""
        if not administrator:
            raise ValueError("Administrator identity must not be empty")
        return cls(BallotState(administrator=administrator), notify=notify)

    @property
    def state(self) -> BallotState:
        return self._state

    def restore(self, state: BallotState) -> None:
        """Replace the owned state with a previously taken snapshot."""
        self._state = state

    # ------------------------------------------------------------------
    # Access gates
    # ------------------------------------------------------------------

    def _require_admin(self, caller: str) -> None:
        if caller != self._state.administrator:
            raise Unauthorized(f"Caller {caller} is not the administrator")

    def _require_voter(self, caller: str) -> Voter:
        voter = self._state.voters.get(caller)
        if voter is None or not voter.is_registered:
            raise NotAVoter(f"Caller {caller} is not a registered voter")
        return voter

    def _require_proposal(self, proposal_id: int) -> Proposal:
        if not 0 <= proposal_id < len(self._state.proposals):
            raise ProposalNotFound(f"Proposal not found: {proposal_id}")
        return self._state.proposals[proposal_id]

    def _emit(
        self, kind: NotificationKind, caller: str, payload: dict[str, Any],
    ) -> Notification:
        notification = Notification(kind=kind, caller=caller, payload=payload)
        if self._notify is not None:
            self._notify(notification)
        return notification

    # ------------------------------------------------------------------
    # Voter registry
    # ------------------------------------------------------------------

    def register_voter(self, caller: str, address: str) -> Notification:
        """Add an address to the allow-list. Allowed in every phase."""
        self._require_admin(caller)
        if address in self._state.voters:
            raise AlreadyRegistered(f"Already registered: {address}")

        self._state.voters[address] = Voter(is_registered=True)
        return self._emit(
            NotificationKind.VOTER_REGISTERED, caller, {"voter_address": address},
        )

    def get_voter(self, caller: str, address: str) -> Voter:
        """Return a copy of the voter record for ``address``.

        Unknown addresses yield a zero-valued record rather than an error.
        """
        self._require_voter(caller)
        voter = self._state.voters.get(address)
        if voter is None:
            return Voter()
        return replace(voter)

    # ------------------------------------------------------------------
    # Proposal registry
    # ------------------------------------------------------------------

    def submit_proposal(self, caller: str, description: str) -> int:
        """Register a proposal and return its id."""
        self._require_voter(caller)
        if self._state.status != WorkflowStatus.PROPOSALS_REGISTRATION_STARTED:
            raise ProposalsNotOpen(
                f"Proposals are not open (status: {self._state.status.value})"
            )
        if not description:
            raise EmptyProposal("Proposal description must not be empty")

        self._state.proposals.append(Proposal(description=description))
        proposal_id = len(self._state.proposals) - 1
        self._emit(
            NotificationKind.PROPOSAL_REGISTERED, caller,
            {"proposal_id": proposal_id},
        )
        return proposal_id

    def get_proposal(self, caller: str, proposal_id: int) -> Proposal:
        """Return a copy of the proposal with the given id."""
        self._require_voter(caller)
        return replace(self._require_proposal(proposal_id))

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def cast_vote(self, caller: str, proposal_id: int) -> Notification:
        """Record the caller's single vote for ``proposal_id``."""
        voter = self._require_voter(caller)
        if self._state.status != WorkflowStatus.VOTING_SESSION_STARTED:
            raise VotingNotOpen(
                f"Voting session is not open (status: {self._state.status.value})"
            )
        if voter.has_voted:
            raise AlreadyVoted(f"Voter {caller} has already voted")
        proposal = self._require_proposal(proposal_id)

        proposal.vote_count += 1
        voter.has_voted = True
        voter.voted_proposal_id = proposal_id
        return self._emit(
            NotificationKind.VOTE_CAST, caller,
            {"voter_address": caller, "proposal_id": proposal_id},
        )

    # ------------------------------------------------------------------
    # Workflow transitions
    # ------------------------------------------------------------------

    def open_proposals_registration(self, caller: str) -> Notification:
        """Open proposal registration and create the GENESIS proposal."""
        return self._advance(caller, WorkflowOperation.OPEN_PROPOSALS_REGISTRATION)

    def close_proposals_registration(self, caller: str) -> Notification:
        return self._advance(caller, WorkflowOperation.CLOSE_PROPOSALS_REGISTRATION)

    def open_voting_session(self, caller: str) -> Notification:
        return self._advance(caller, WorkflowOperation.OPEN_VOTING_SESSION)

    def close_voting_session(self, caller: str) -> Notification:
        return self._advance(caller, WorkflowOperation.CLOSE_VOTING_SESSION)

    def tally_votes(self, caller: str) -> Notification:
        """Compute the plurality winner and close the ballot."""
        return self._advance(caller, WorkflowOperation.TALLY_VOTES)

    def _advance(self, caller: str, operation: WorkflowOperation) -> Notification:
        self._require_admin(caller)
        previous = self._state.status
        target = WorkflowStateMachine.next_status(previous, operation)

        if operation == WorkflowOperation.OPEN_PROPOSALS_REGISTRATION:
            # No proposal can exist before this point, so GENESIS lands at id 0
            self._state.proposals.append(Proposal(description=GENESIS_DESCRIPTION))
        elif operation == WorkflowOperation.TALLY_VOTES:
            self._state.winning_proposal_id = plurality_winner(self._state.proposals)

        self._state.status = target
        return self._emit(
            NotificationKind.WORKFLOW_STATUS_CHANGE, caller,
            {"previous_status": previous.code, "new_status": target.code},
        )

    # ------------------------------------------------------------------
    # Unrestricted reads
    # ------------------------------------------------------------------

    def get_winning_proposal_id(self) -> int:
        """Winning proposal id. Returns 0 before tallying."""
        return self._state.winning_proposal_id

    @property
    def workflow_status(self) -> WorkflowStatus:
        return self._state.status

    @property
    def administrator(self) -> str:
        return self._state.administrator

    @property
    def proposal_count(self) -> int:
        return len(self._state.proposals)

    @property
    def is_closed(self) -> bool:
        """True once the ballot has reached its terminal phase."""
        return WorkflowStateMachine.is_terminal(self._state.status)

    def next_operations(self) -> list[WorkflowOperation]:
        """Admin transitions available from the current phase."""
        return sorted(
            WorkflowStateMachine.valid_operations(self._state.status),
            key=lambda op: op.value,
        )

    def tally_result(self) -> TallyResult:
        """Counts per proposal, with the winner only once tallied."""
        tallied = self._state.status == WorkflowStatus.VOTES_TALLIED
        return TallyResult(
            counts=vote_counts(self._state.proposals),
            winning_proposal_id=self._state.winning_proposal_id if tallied else None,
            votes_cast=self._state.votes_cast,
        )
