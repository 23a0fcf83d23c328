"""Persistence — event log and durable ballot state."""

from ballot.persistence.event_log import (
    EventKind,
    EventLog,
    EventRecord,
    validate_payload,
)
from ballot.persistence.state_store import StateStore

__all__ = ["EventKind", "EventLog", "EventRecord", "StateStore", "validate_payload"]
