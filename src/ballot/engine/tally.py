"""Plurality tally.

The winner is the proposal with the strictly greatest vote count.
Proposals are scanned in ascending id order and a later proposal only
replaces the leader when its count is strictly greater, so the lowest
id wins any tie. An empty or all-zero ballot elects id 0.
"""

from __future__ import annotations

from typing import Sequence

from ballot.models.ballot import Proposal


def plurality_winner(proposals: Sequence[Proposal]) -> int:
    """Return the id of the plurality winner (lowest id on ties)."""
    winner_id = 0
    best = 0
    for proposal_id, proposal in enumerate(proposals):
        if proposal.vote_count > best:
            best = proposal.vote_count
            winner_id = proposal_id
    return winner_id


def vote_counts(proposals: Sequence[Proposal]) -> dict[int, int]:
    """Vote count per proposal id."""
    return {pid: p.vote_count for pid, p in enumerate(proposals)}
