"""Runtime settings, read from the environment (and a local .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


DEFAULT_DATA_DIR = Path("data")
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class BallotSettings:
    data_dir: Path = DEFAULT_DATA_DIR
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def state_path(self) -> Path:
        return self.data_dir / "ballot.json"

    @property
    def events_path(self) -> Path:
        return self.data_dir / "events.jsonl"

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> BallotSettings:
        """Build settings from BALLOT_* variables.

        Variables already present in the environment win over .env values.
        """
        load_dotenv(dotenv_path)
        return cls(
            data_dir=Path(os.getenv("BALLOT_DATA_DIR", str(DEFAULT_DATA_DIR))),
            log_level=os.getenv("BALLOT_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        )
