"""Ballot invariant checks against a BallotState.

Returns a list of violation messages. An empty list means the state is
consistent. Used by the state store on load and by the CLI.
"""

from __future__ import annotations

from typing import Iterable

from ballot.models.ballot import (
    GENESIS_DESCRIPTION,
    WORKFLOW_ORDER,
    BallotState,
    WorkflowStatus,
)


def check_proposals(state: BallotState, errors: list[str]) -> None:
    """GENESIS sentinel presence and proposal shape."""
    started = state.status.code >= WorkflowStatus.PROPOSALS_REGISTRATION_STARTED.code
    if not started:
        if state.proposals:
            errors.append(
                f"{len(state.proposals)} proposals exist before proposal registration opened"
            )
        return

    if not state.proposals:
        errors.append("Proposal registration started but GENESIS proposal is missing")
        return
    if state.proposals[0].description != GENESIS_DESCRIPTION:
        errors.append(
            f"Proposal 0 must be {GENESIS_DESCRIPTION!r}, "
            f"got {state.proposals[0].description!r}"
        )
    for pid, proposal in enumerate(state.proposals):
        if not proposal.description:
            errors.append(f"Proposal {pid} has an empty description")
        if proposal.vote_count < 0:
            errors.append(f"Proposal {pid} has negative vote_count {proposal.vote_count}")


def check_votes(state: BallotState, errors: list[str]) -> None:
    """Vote references and tally conservation."""
    proposal_total = len(state.proposals)
    per_proposal = [0] * proposal_total

    for address, voter in state.voters.items():
        if not voter.is_registered:
            errors.append(f"Voter {address} is stored but not registered")
        if not voter.has_voted:
            continue
        if not 0 <= voter.voted_proposal_id < proposal_total:
            errors.append(
                f"Voter {address} voted for unknown proposal {voter.voted_proposal_id}"
            )
            continue
        per_proposal[voter.voted_proposal_id] += 1

    if state.votes_cast and state.status.code < WorkflowStatus.VOTING_SESSION_STARTED.code:
        errors.append(
            f"{state.votes_cast} votes recorded before the voting session opened"
        )

    counted = sum(p.vote_count for p in state.proposals)
    if counted != state.votes_cast:
        errors.append(
            f"Sum of vote counts ({counted}) != voters who voted ({state.votes_cast})"
        )
    for pid, proposal in enumerate(state.proposals):
        if proposal.vote_count != per_proposal[pid]:
            errors.append(
                f"Proposal {pid} vote_count {proposal.vote_count} != "
                f"{per_proposal[pid]} recorded votes"
            )


def check_winner(state: BallotState, errors: list[str]) -> None:
    if state.status != WorkflowStatus.VOTES_TALLIED:
        if state.winning_proposal_id != 0:
            errors.append(
                f"winning_proposal_id set to {state.winning_proposal_id} before tally"
            )
        return
    if not 0 <= state.winning_proposal_id < max(len(state.proposals), 1):
        errors.append(f"Winning proposal {state.winning_proposal_id} does not exist")


def check_invariants(state: BallotState) -> list[str]:
    """Run every ballot invariant check."""
    errors: list[str] = []
    if not state.administrator:
        errors.append("Administrator identity is empty")
    check_proposals(state, errors)
    check_votes(state, errors)
    check_winner(state, errors)
    return errors


def check_status_sequence(observed: Iterable[WorkflowStatus]) -> list[str]:
    """Check that observed phases only ever move forward."""
    errors: list[str] = []
    previous = None
    for status in observed:
        if previous is not None:
            if WORKFLOW_ORDER.index(status) < WORKFLOW_ORDER.index(previous):
                errors.append(f"Status regressed: {previous.value} → {status.value}")
        previous = status
    return errors
