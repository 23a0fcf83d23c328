"""Ballot service — facade over the engine, event log, and state store.

This is the primary interface for programmatic access to a ballot. It
runs each engine operation, records the notifications it produced in
the event log, and persists the resulting state.

All operations produce a typed ServiceResult. Mutations are fail-closed:
the engine rejects a call before touching state, and the state snapshot
taken before every mutating call is restored in place if the audit event
cannot be recorded.
Once the audit event is durable the change stands, even if the state
store write then fails (the service is flagged as persistence-degraded).
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ballot.engine.ballot_engine import BallotEngine, Notification
from ballot.engine.errors import BallotError
from ballot.engine.invariants import check_invariants
from ballot.models.ballot import BallotState, WorkflowStatus
from ballot.persistence.event_log import EventKind, EventLog, EventRecord
from ballot.persistence.state_store import StateStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class BallotService:
    """Ballot facade with audit trail and optional persistence.

    Usage:
        service = BallotService.deploy("owner")
        service.register_voter("owner", "alice")
        service.open_proposals_registration("owner")
        result = service.submit_proposal("alice", "Eating")
        result.data["proposal_id"]  # → 1

    Persistence (optional):
        service = BallotService.deploy("owner", event_log=log, state_store=store)
        # later, in another process
        service = BallotService.load(store, event_log=log)
    """

    def __init__(
        self,
        state: BallotState,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
    ) -> None:
        self._pending: list[Notification] = []
        self._engine = BallotEngine(state, notify=self._pending.append)
        self._event_log = event_log
        self._state_store = state_store
        # Continue numbering from a persisted log to avoid ID collisions
        self._event_counter = event_log.count if event_log is not None else 0
        self._persistence_degraded: bool = False

    @classmethod
    def deploy(
        cls,
        administrator: str,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
    ) -> BallotService:
        """Create a new ballot. Refuses to overwrite a stored one.

        The event log must be empty: a ballot never inherits another
        ballot's notifications.
        """
        if not administrator:
            raise ValueError("Administrator identity must not be empty")
        if state_store is not None and state_store.exists():
            raise ValueError(f"A ballot is already stored at {state_store.path}")
        if event_log is not None and event_log.count > 0:
            raise ValueError(
                f"An event log already exists with {event_log.count} events; "
                f"deploy a new ballot into an empty data directory"
            )

        service = cls(BallotState(administrator=administrator), event_log, state_store)
        if state_store is not None:
            state_store.save(service.state)
        logger.info("Ballot deployed with administrator %s", administrator)
        return service

    @classmethod
    def load(
        cls,
        state_store: StateStore,
        event_log: Optional[EventLog] = None,
    ) -> BallotService:
        """Resume a stored ballot. Raises ValueError if none exists."""
        state = state_store.load()
        if state is None:
            raise ValueError(f"No ballot stored at {state_store.path}")
        return cls(state, event_log, state_store)

    @property
    def state(self) -> BallotState:
        return self._engine.state

    @property
    def engine(self) -> BallotEngine:
        return self._engine

    # ------------------------------------------------------------------
    # Voter registry
    # ------------------------------------------------------------------

    def register_voter(self, caller: str, address: str) -> ServiceResult:
        result = self._mutate(
            caller, "register_voter",
            lambda: self._engine.register_voter(caller, address),
        )
        if result.success:
            return self._with_data(result, {"voter_address": address})
        return result

    def get_voter(self, caller: str, address: str) -> ServiceResult:
        return self._read(
            caller, "get_voter",
            lambda: {"address": address, **self._engine.get_voter(caller, address).to_dict()},
        )

    # ------------------------------------------------------------------
    # Proposal registry
    # ------------------------------------------------------------------

    def submit_proposal(self, caller: str, description: str) -> ServiceResult:
        holder: dict[str, int] = {}

        def run() -> None:
            holder["proposal_id"] = self._engine.submit_proposal(caller, description)

        result = self._mutate(caller, "submit_proposal", run)
        if result.success:
            return self._with_data(result, holder)
        return result

    def get_proposal(self, caller: str, proposal_id: int) -> ServiceResult:
        return self._read(
            caller, "get_proposal",
            lambda: {
                "proposal_id": proposal_id,
                **self._engine.get_proposal(caller, proposal_id).to_dict(),
            },
        )

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def cast_vote(self, caller: str, proposal_id: int) -> ServiceResult:
        result = self._mutate(
            caller, "cast_vote",
            lambda: self._engine.cast_vote(caller, proposal_id),
        )
        if result.success:
            return self._with_data(result, {"proposal_id": proposal_id})
        return result

    # ------------------------------------------------------------------
    # Workflow transitions
    # ------------------------------------------------------------------

    def open_proposals_registration(self, caller: str) -> ServiceResult:
        return self._transition(caller, "open_proposals_registration",
                                self._engine.open_proposals_registration)

    def close_proposals_registration(self, caller: str) -> ServiceResult:
        return self._transition(caller, "close_proposals_registration",
                                self._engine.close_proposals_registration)

    def open_voting_session(self, caller: str) -> ServiceResult:
        return self._transition(caller, "open_voting_session",
                                self._engine.open_voting_session)

    def close_voting_session(self, caller: str) -> ServiceResult:
        return self._transition(caller, "close_voting_session",
                                self._engine.close_voting_session)

    def tally_votes(self, caller: str) -> ServiceResult:
        result = self._transition(caller, "tally_votes", self._engine.tally_votes)
        if result.success:
            return self._with_data(
                result, {"winning_proposal_id": self._engine.get_winning_proposal_id()},
            )
        return result

    # ------------------------------------------------------------------
    # Status and queries
    # ------------------------------------------------------------------

    def get_winning_proposal_id(self) -> int:
        """Winning id; 0 before tallying (see tally_result for the difference)."""
        return self._engine.get_winning_proposal_id()

    def tally_result(self) -> dict[str, Any]:
        tally = self._engine.tally_result()
        return {
            "counts": tally.counts,
            "winning_proposal_id": tally.winning_proposal_id,
            "votes_cast": tally.votes_cast,
            "tallied": tally.winning_proposal_id is not None,
        }

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        if self._event_log is None:
            return []
        return self._event_log.events(kind)

    def check_invariants(self) -> list[str]:
        return check_invariants(self._engine.state)

    def status(self) -> dict[str, Any]:
        """Return a ballot-wide status summary."""
        state = self._engine.state
        last_event = self._event_log.last_event if self._event_log is not None else None
        return {
            "administrator": state.administrator,
            "workflow_status": {
                "name": state.status.value,
                "code": state.status.code,
                "closed": self._engine.is_closed,
                "next_operations": [op.value for op in self._engine.next_operations()],
            },
            "voters": len(state.voters),
            "proposals": len(state.proposals),
            "votes_cast": state.votes_cast,
            "winning_proposal_id": (
                state.winning_proposal_id
                if state.status == WorkflowStatus.VOTES_TALLIED
                else None
            ),
            "events": self._event_log.count if self._event_log is not None else 0,
            "last_event_id": last_event.event_id if last_event is not None else None,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _transition(
        self, caller: str, action: str, operation: Callable[[str], Notification],
    ) -> ServiceResult:
        result = self._mutate(caller, action, lambda: operation(caller))
        if result.success:
            return self._with_data(
                result, {"workflow_status": self._engine.workflow_status.value},
            )
        return result

    def _mutate(
        self, caller: str, action: str, operation: Callable[[], Any],
    ) -> ServiceResult:
        """Run a mutating engine call with full rollback on failure."""
        snapshot = copy.deepcopy(self._engine.state)
        self._pending.clear()

        try:
            operation()
        except BallotError as e:
            # The engine validates before mutating; nothing to roll back
            self._pending.clear()
            logger.warning("Rejected %s from %s: %s", action, caller, e)
            return ServiceResult(success=False, errors=[str(e)], data={"code": e.code})

        err = self._record_events(list(self._pending))
        self._pending.clear()
        if err:
            self._restore(snapshot)
            logger.error("Rolled back %s from %s: %s", action, caller, err)
            return ServiceResult(success=False, errors=[err])

        logger.info("Accepted %s from %s", action, caller)
        data: dict[str, Any] = {}
        warning = self._safe_persist_post_audit()
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    def _read(
        self, caller: str, action: str, query: Callable[[], dict[str, Any]],
    ) -> ServiceResult:
        try:
            data = query()
        except BallotError as e:
            logger.warning("Rejected %s from %s: %s", action, caller, e)
            return ServiceResult(success=False, errors=[str(e)], data={"code": e.code})
        return ServiceResult(success=True, data=data)

    def _restore(self, snapshot: BallotState) -> None:
        self._pending.clear()
        self._engine.restore(snapshot)

    @staticmethod
    def _with_data(result: ServiceResult, extra: dict[str, Any]) -> ServiceResult:
        return ServiceResult(
            success=result.success,
            errors=list(result.errors),
            data={**extra, **result.data},
        )

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _record_events(self, notifications: list[Notification]) -> Optional[str]:
        """Append notifications to the event log. Returns error string or None."""
        if self._event_log is None:
            return None
        for notification in notifications:
            try:
                event = EventRecord.create(
                    event_id=self._next_event_id(),
                    event_kind=EventKind(notification.kind.value),
                    actor_id=notification.caller,
                    payload=dict(notification.payload),
                )
                self._event_log.append(event)
            except (ValueError, OSError) as e:
                return f"Event log failure: {e}"
        return None

    def _safe_persist_post_audit(self) -> Optional[str]:
        """Persist state after audit events have been committed.

        MUST NOT rollback in-memory state: the audit trail is already
        durable. On failure, sets the degraded flag and returns a warning.
        """
        if self._state_store is None:
            return None
        try:
            self._state_store.save(self._engine.state)
            return None
        except OSError as e:
            self._persistence_degraded = True
            logger.error("State store write failed: %s", e)
            return f"Persistence degraded: {e}; state committed in audit trail but StateStore is stale"
