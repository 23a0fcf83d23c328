"""Tests for the workflow state machine — fixed forward-only phase order."""

import pytest

from ballot.engine.errors import InvalidPhase
from ballot.engine.workflow import WorkflowOperation, WorkflowStateMachine
from ballot.models.ballot import WORKFLOW_ORDER, WorkflowStatus


_EXPECTED = [
    (WorkflowOperation.OPEN_PROPOSALS_REGISTRATION,
     WorkflowStatus.REGISTERING_VOTERS, WorkflowStatus.PROPOSALS_REGISTRATION_STARTED),
    (WorkflowOperation.CLOSE_PROPOSALS_REGISTRATION,
     WorkflowStatus.PROPOSALS_REGISTRATION_STARTED, WorkflowStatus.PROPOSALS_REGISTRATION_ENDED),
    (WorkflowOperation.OPEN_VOTING_SESSION,
     WorkflowStatus.PROPOSALS_REGISTRATION_ENDED, WorkflowStatus.VOTING_SESSION_STARTED),
    (WorkflowOperation.CLOSE_VOTING_SESSION,
     WorkflowStatus.VOTING_SESSION_STARTED, WorkflowStatus.VOTING_SESSION_ENDED),
    (WorkflowOperation.TALLY_VOTES,
     WorkflowStatus.VOTING_SESSION_ENDED, WorkflowStatus.VOTES_TALLIED),
]


class TestWorkflowOrder:
    def test_codes_follow_declaration_order(self) -> None:
        assert [s.code for s in WORKFLOW_ORDER] == [0, 1, 2, 3, 4, 5]
        assert WORKFLOW_ORDER[0] == WorkflowStatus.REGISTERING_VOTERS
        assert WORKFLOW_ORDER[-1] == WorkflowStatus.VOTES_TALLIED

    def test_from_code_round_trip(self) -> None:
        for status in WorkflowStatus:
            assert WorkflowStatus.from_code(status.code) == status

    def test_from_code_rejects_unknown(self) -> None:
        with pytest.raises(ValueError):
            WorkflowStatus.from_code(6)


class TestValidTransitions:
    @pytest.mark.parametrize("operation,source,target", _EXPECTED)
    def test_transition_from_source(self, operation, source, target) -> None:
        assert WorkflowStateMachine.validate_transition(source, operation) == []
        assert WorkflowStateMachine.next_status(source, operation) == target

    def test_each_target_is_next_in_order(self) -> None:
        for operation, source, target in _EXPECTED:
            assert target.code == source.code + 1, operation.value


class TestInvalidTransitions:
    def test_every_wrong_source_is_rejected(self) -> None:
        for operation, source, _ in _EXPECTED:
            for current in WorkflowStatus:
                if current == source:
                    continue
                errors = WorkflowStateMachine.validate_transition(current, operation)
                assert len(errors) == 1, f"{operation.value} from {current.value}"
                assert "Invalid workflow transition" in errors[0]

    def test_next_status_raises_invalid_phase(self) -> None:
        with pytest.raises(InvalidPhase):
            WorkflowStateMachine.next_status(
                WorkflowStatus.REGISTERING_VOTERS, WorkflowOperation.TALLY_VOTES,
            )

    def test_cannot_skip_a_phase(self) -> None:
        with pytest.raises(InvalidPhase):
            WorkflowStateMachine.next_status(
                WorkflowStatus.REGISTERING_VOTERS,
                WorkflowOperation.OPEN_VOTING_SESSION,
            )


class TestTerminalAndValidOperations:
    def test_only_votes_tallied_is_terminal(self) -> None:
        for status in WorkflowStatus:
            expected = status == WorkflowStatus.VOTES_TALLIED
            assert WorkflowStateMachine.is_terminal(status) is expected

    def test_one_operation_per_non_terminal_phase(self) -> None:
        for operation, source, _ in _EXPECTED:
            assert WorkflowStateMachine.valid_operations(source) == {operation}

    def test_no_operations_from_terminal(self) -> None:
        assert WorkflowStateMachine.valid_operations(WorkflowStatus.VOTES_TALLIED) == set()
