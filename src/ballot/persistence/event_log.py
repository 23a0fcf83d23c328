"""Append-only event log — the notification channel for ballot state changes.

Every accepted mutation produces one event record appended here. Events
are immutable once written and carry a SHA-256 hash of their canonical
JSON form, so a persisted log can be verified on reload.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ballot.models.ballot import WorkflowStatus


class EventKind(str, enum.Enum):
    """Classification of ballot events."""
    VOTER_REGISTERED = "voter_registered"
    PROPOSAL_REGISTERED = "proposal_registered"
    VOTE_CAST = "vote_cast"
    WORKFLOW_STATUS_CHANGE = "workflow_status_change"


# kind → payload field → required type
_PAYLOAD_SCHEMA: dict[EventKind, dict[str, type]] = {
    EventKind.VOTER_REGISTERED: {"voter_address": str},
    EventKind.PROPOSAL_REGISTERED: {"proposal_id": int},
    EventKind.VOTE_CAST: {"voter_address": str, "proposal_id": int},
    EventKind.WORKFLOW_STATUS_CHANGE: {"previous_status": int, "new_status": int},
}


def validate_payload(event_kind: EventKind, payload: dict[str, Any]) -> list[str]:
    """Check a payload against the shape its kind requires.

    Returns errors (empty = OK). Workflow changes must name two known
    status codes, and the new one must directly follow the previous one.
    """
    errors: list[str] = []
    for name, expected in _PAYLOAD_SCHEMA[event_kind].items():
        value = payload.get(name)
        # bool is an int subclass but never a valid id or status code
        if not isinstance(value, expected) or isinstance(value, bool):
            errors.append(
                f"{event_kind.value} payload field {name!r} must be "
                f"{expected.__name__}, got {value!r}"
            )
    if errors:
        return errors

    if event_kind in (EventKind.PROPOSAL_REGISTERED, EventKind.VOTE_CAST):
        if payload["proposal_id"] < 0:
            errors.append(f"Negative proposal id: {payload['proposal_id']}")
    elif event_kind == EventKind.WORKFLOW_STATUS_CHANGE:
        try:
            previous = WorkflowStatus.from_code(payload["previous_status"])
            new = WorkflowStatus.from_code(payload["new_status"])
        except ValueError as e:
            return [str(e)]
        if new.code != previous.code + 1:
            errors.append(
                f"Workflow change {previous.value} -> {new.value} skips or reverses a phase"
            )
    return errors


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable ballot event.

    ``actor_id`` is the caller whose operation produced the event.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, actor_id, payload,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }


class EventLog:
    """Append-only event log with optional file persistence.

    Events can only be appended, never modified or deleted.
    The log can be persisted to a JSONL file (one JSON object per line)
    and loaded back for recovery.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, event: EventRecord) -> None:
        """Append an event to the log.

        Raises ValueError if event_id is a duplicate (replay protection)
        or the payload does not fit the event kind. The file write happens
        first, so a failed write leaves the in-memory log untouched.
        """
        if event.event_id in self._event_ids:
            raise ValueError(f"Duplicate event ID: {event.event_id}")
        errors = validate_payload(event.event_kind, event.payload)
        if errors:
            raise ValueError(f"Malformed event {event.event_id}: " + "; ".join(errors))

        if self._storage_path:
            self._append_to_file(event)

        self._events.append(event)
        self._event_ids.add(event.event_id)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events, optionally filtered by kind."""
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _append_to_file(self, event: EventRecord) -> None:
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch), payloads
        that do not fit their kind, and duplicate event IDs (replay
        protection on recovery).
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)
                event_id = data["event_id"]

                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                expected_hash = _canonical_hash(
                    event_id,
                    data["event_kind"],
                    data["timestamp_utc"],
                    data["actor_id"],
                    data["payload"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event_kind = EventKind(data["event_kind"])
                errors = validate_payload(event_kind, data["payload"])
                if errors:
                    raise ValueError(
                        f"Malformed event (line {line_num}): {event_id}: "
                        + "; ".join(errors)
                    )

                event = EventRecord(
                    event_id=event_id,
                    event_kind=event_kind,
                    timestamp_utc=data["timestamp_utc"],
                    actor_id=data["actor_id"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event.event_id)
