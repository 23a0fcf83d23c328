"""Tests for BallotService — proves the facade audits, persists, and rolls back."""

import pytest

from ballot.engine.errors import NotAVoter
from ballot.models.ballot import WorkflowStatus
from ballot.persistence.event_log import EventKind, EventLog
from ballot.persistence.state_store import StateStore
from ballot.service import BallotService


OWNER = "owner"


@pytest.fixture
def service() -> BallotService:
    return BallotService.deploy(OWNER, event_log=EventLog())


def _run_election(service: BallotService) -> None:
    for addr in ("A", "B", "C"):
        assert service.register_voter(OWNER, addr).success
    assert service.open_proposals_registration(OWNER).success
    for addr, text in (("A", "Eating"), ("B", "Sleeping"), ("C", "Working")):
        assert service.submit_proposal(addr, text).success
    assert service.close_proposals_registration(OWNER).success
    assert service.open_voting_session(OWNER).success
    for addr, pid in (("A", 0), ("B", 2), ("C", 2)):
        assert service.cast_vote(addr, pid).success
    assert service.close_voting_session(OWNER).success


class TestDeployAndLoad:
    def test_deploy_requires_admin(self) -> None:
        with pytest.raises(ValueError):
            BallotService.deploy("")

    def test_deploy_refuses_to_overwrite(self, tmp_path) -> None:
        store = StateStore(tmp_path / "ballot.json")
        BallotService.deploy(OWNER, state_store=store)
        with pytest.raises(ValueError, match="already stored"):
            BallotService.deploy("other", state_store=store)

    def test_deploy_refuses_existing_event_log(self, tmp_path) -> None:
        log_path = tmp_path / "events.jsonl"
        service = BallotService.deploy(OWNER, event_log=EventLog(log_path))
        service.register_voter(OWNER, "A")

        with pytest.raises(ValueError, match="An event log already exists"):
            BallotService.deploy(
                "other",
                event_log=EventLog(log_path),
                state_store=StateStore(tmp_path / "ballot.json"),
            )
        assert not (tmp_path / "ballot.json").exists()

    def test_load_missing_ballot_fails(self, tmp_path) -> None:
        with pytest.raises(ValueError, match="No ballot stored"):
            BallotService.load(StateStore(tmp_path / "ballot.json"))

    def test_state_survives_reload(self, tmp_path) -> None:
        store = StateStore(tmp_path / "ballot.json")
        log_path = tmp_path / "events.jsonl"
        service = BallotService.deploy(
            OWNER, event_log=EventLog(log_path), state_store=store,
        )
        _run_election(service)

        resumed = BallotService.load(store, event_log=EventLog(log_path))
        assert resumed.state == service.state
        result = resumed.tally_votes(OWNER)
        assert result.success
        assert result.data["winning_proposal_id"] == 2
        # Event IDs continue after the persisted log
        events = resumed.events()
        assert len(events) == 14
        assert events[-1].event_id == "EVT-00000014"


class TestOperations:
    def test_full_election(self, service: BallotService) -> None:
        _run_election(service)
        result = service.tally_votes(OWNER)
        assert result.success
        assert result.data == {"workflow_status": "votes_tallied", "winning_proposal_id": 2}
        assert service.get_winning_proposal_id() == 2
        assert service.check_invariants() == []

    def test_submit_returns_id(self, service: BallotService) -> None:
        service.register_voter(OWNER, "A")
        service.open_proposals_registration(OWNER)
        result = service.submit_proposal("A", "Eating")
        assert result.success
        assert result.data["proposal_id"] == 1

    def test_get_voter_and_proposal(self, service: BallotService) -> None:
        service.register_voter(OWNER, "A")
        service.open_proposals_registration(OWNER)
        voter = service.get_voter("A", "A")
        assert voter.success
        assert voter.data == {
            "address": "A", "is_registered": True,
            "has_voted": False, "voted_proposal_id": 0,
        }
        proposal = service.get_proposal("A", 0)
        assert proposal.data == {"proposal_id": 0, "description": "GENESIS", "vote_count": 0}

    def test_rejection_carries_error_code(self, service: BallotService) -> None:
        result = service.get_voter("nobody", "A")
        assert not result.success
        assert result.data["code"] == NotAVoter.code
        assert "not a registered voter" in result.errors[0]

    def test_rejection_records_no_event(self, service: BallotService) -> None:
        service.register_voter(OWNER, "A")
        before = service.events()
        result = service.cast_vote("A", 0)
        assert not result.success
        assert result.data["code"] == "voting_not_open"
        assert service.events() == before

    def test_tally_result_distinguishes_untallied(self, service: BallotService) -> None:
        _run_election(service)
        assert service.get_winning_proposal_id() == 0
        pending = service.tally_result()
        assert pending["tallied"] is False
        assert pending["winning_proposal_id"] is None
        service.tally_votes(OWNER)
        final = service.tally_result()
        assert final["tallied"] is True
        assert final["counts"] == {0: 1, 1: 0, 2: 2, 3: 0}


class TestAuditTrail:
    def test_events_recorded_in_order(self, service: BallotService) -> None:
        _run_election(service)
        service.tally_votes(OWNER)
        kinds = [e.event_kind for e in service.events()]
        assert kinds.count(EventKind.VOTER_REGISTERED) == 3
        assert kinds.count(EventKind.PROPOSAL_REGISTERED) == 3
        assert kinds.count(EventKind.VOTE_CAST) == 3
        assert kinds.count(EventKind.WORKFLOW_STATUS_CHANGE) == 5
        ids = [e.event_id for e in service.events()]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)

    def test_vote_event_attributes_voter(self, service: BallotService) -> None:
        _run_election(service)
        votes = service.events(EventKind.VOTE_CAST)
        assert [(e.actor_id, e.payload["proposal_id"]) for e in votes] == [
            ("A", 0), ("B", 2), ("C", 2),
        ]

    def test_event_log_failure_rolls_back(self, service: BallotService) -> None:
        service.register_voter(OWNER, "A")

        class FailingLog(EventLog):
            def append(self, event) -> None:
                raise OSError("disk full")

        service._event_log = FailingLog()
        before = service.state.to_dict()
        result = service.register_voter(OWNER, "B")
        assert not result.success
        assert "Event log failure" in result.errors[0]
        assert service.state.to_dict() == before
        assert "B" not in service.state.voters

    def test_rollback_keeps_engine_identity(self, service: BallotService) -> None:
        engine = service.engine

        class FailingLog(EventLog):
            def append(self, event) -> None:
                raise OSError("disk full")

        service._event_log = FailingLog()
        assert not service.register_voter(OWNER, "B").success
        assert service.engine is engine
        assert "B" not in engine.state.voters

        service._event_log = EventLog()
        assert service.register_voter(OWNER, "C").success
        assert "C" in engine.state.voters

    def test_rejection_keeps_engine_identity(self, service: BallotService) -> None:
        engine = service.engine
        assert not service.cast_vote(OWNER, 0).success
        assert service.engine is engine


class TestPersistenceDegraded:
    def test_store_failure_keeps_committed_state(self, tmp_path) -> None:
        class FailingStore(StateStore):
            def save(self, state) -> None:
                raise OSError("read-only filesystem")

        service = BallotService(
            BallotService.deploy(OWNER).state,
            event_log=EventLog(),
            state_store=FailingStore(tmp_path / "ballot.json"),
        )
        result = service.register_voter(OWNER, "A")
        assert result.success
        assert "Persistence degraded" in result.data["warning"]
        assert "A" in service.state.voters
        assert service.status()["persistence_degraded"] is True


class TestStatus:
    def test_status_summary(self, service: BallotService) -> None:
        _run_election(service)
        status = service.status()
        assert status["administrator"] == OWNER
        assert status["workflow_status"] == {
            "name": WorkflowStatus.VOTING_SESSION_ENDED.value,
            "code": 4,
            "closed": False,
            "next_operations": ["tally_votes"],
        }
        assert status["voters"] == 3
        assert status["proposals"] == 4
        assert status["votes_cast"] == 3
        assert status["winning_proposal_id"] is None
        assert status["events"] == 3 + 3 + 3 + 4
        assert status["persistence_degraded"] is False
        assert status["last_event_id"] == "EVT-00000013"

    def test_status_once_closed(self, service: BallotService) -> None:
        _run_election(service)
        service.tally_votes(OWNER)
        workflow = service.status()["workflow_status"]
        assert workflow["closed"] is True
        assert workflow["next_operations"] == []

    def test_status_without_event_log(self) -> None:
        status = BallotService.deploy(OWNER).status()
        assert status["workflow_status"]["next_operations"] == ["open_proposals_registration"]
        assert status["events"] == 0
        assert status["last_event_id"] is None
