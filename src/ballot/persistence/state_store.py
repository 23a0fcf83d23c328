"""Durable ballot state — one JSON document per ballot.

Writes go to a sibling temporary file which then replaces the target,
so readers never observe a half-written document. Loaded documents are
checked against the ballot invariants and rejected if inconsistent.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from ballot.engine.invariants import check_invariants
from ballot.models.ballot import BallotState


class StateStore:
    """JSON file persistence for a single BallotState."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def path(self) -> Path:
        return self._storage_path

    def exists(self) -> bool:
        return self._storage_path.exists()

    def load(self) -> Optional[BallotState]:
        """Return the stored ballot, or None if nothing has been saved.

        Raises ValueError if the stored document is malformed or violates
        an invariant.
        """
        if not self._storage_path.exists():
            return None
        with self._storage_path.open("r", encoding="utf-8") as f:
            data = json.load(f)

        try:
            state = BallotState.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(
                f"Stored ballot state at {self._storage_path} is malformed: {e!r}"
            ) from e
        errors = check_invariants(state)
        if errors:
            raise ValueError(
                f"Stored ballot state at {self._storage_path} is inconsistent: "
                + "; ".join(errors)
            )
        return state

    def save(self, state: BallotState) -> None:
        """Atomically replace the stored document."""
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_name(self._storage_path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2, sort_keys=True, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp_path, self._storage_path)
