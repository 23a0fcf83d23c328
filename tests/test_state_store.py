"""Tests for StateStore — durable ballot state."""

import json

import pytest

from ballot.models.ballot import BallotState, Proposal, Voter, WorkflowStatus
from ballot.persistence.state_store import StateStore


def _state() -> BallotState:
    return BallotState(
        administrator="owner",
        status=WorkflowStatus.VOTES_TALLIED,
        winning_proposal_id=1,
        voters={"alice": Voter(is_registered=True, has_voted=True, voted_proposal_id=1)},
        proposals=[Proposal("GENESIS"), Proposal("Eating", vote_count=1)],
    )


class TestStateStore:
    def test_load_missing_returns_none(self, tmp_path) -> None:
        store = StateStore(tmp_path / "ballot.json")
        assert not store.exists()
        assert store.load() is None

    def test_save_and_load(self, tmp_path) -> None:
        store = StateStore(tmp_path / "nested" / "ballot.json")
        store.save(_state())
        assert store.exists()
        assert store.load() == _state()

    def test_no_temp_file_left_behind(self, tmp_path) -> None:
        store = StateStore(tmp_path / "ballot.json")
        store.save(_state())
        assert [p.name for p in tmp_path.iterdir()] == ["ballot.json"]

    def test_status_stored_by_name(self, tmp_path) -> None:
        store = StateStore(tmp_path / "ballot.json")
        store.save(_state())
        data = json.loads(store.path.read_text(encoding="utf-8"))
        assert data["status"] == "votes_tallied"

    def test_inconsistent_document_rejected(self, tmp_path) -> None:
        store = StateStore(tmp_path / "ballot.json")
        store.save(_state())
        data = json.loads(store.path.read_text(encoding="utf-8"))
        data["proposals"][1]["vote_count"] = 5
        store.path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(ValueError, match="inconsistent"):
            store.load()

    def test_malformed_document_rejected(self, tmp_path) -> None:
        store = StateStore(tmp_path / "ballot.json")
        store.path.write_text(json.dumps({"status": "registering_voters"}), encoding="utf-8")
        with pytest.raises(ValueError, match="malformed"):
            store.load()

    def test_malformed_proposal_rejected(self, tmp_path) -> None:
        store = StateStore(tmp_path / "ballot.json")
        store.save(_state())
        data = json.loads(store.path.read_text(encoding="utf-8"))
        data["proposals"] = [{"vote_count": 0}]
        store.path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(ValueError, match="malformed"):
            store.load()
