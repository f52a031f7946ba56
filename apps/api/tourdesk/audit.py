from __future__ import annotations

import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any

from tourdesk.context import get_correlation_id


class AuditTrail:
    """In-process, bounded record of authorization denials and grant changes."""

    def __init__(self, max_entries: int = 10_000) -> None:
        self._lock = threading.Lock()
        self._entries: deque[dict[str, Any]] = deque(maxlen=max_entries)

    def record(
        self,
        actor_user_id: str,
        entity_type: str,
        entity_id: str,
        action: str,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
        correlation_id: str | None = None,
    ) -> dict[str, Any]:
        entry = {
            "id": str(uuid.uuid4()),
            "actor_user_id": actor_user_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action,
            "before": before,
            "after": after,
            "correlation_id": correlation_id or get_correlation_id(),
            "occurred_at": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            self._entries.append(entry)
        return entry

    def entries(self, action: str | None = None, entity_type: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            snapshot = list(self._entries)
        return [
            entry
            for entry in snapshot
            if (action is None or entry["action"] == action)
            and (entity_type is None or entry["entity_type"] == entity_type)
        ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


audit_trail = AuditTrail()


def record(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    return audit_trail.record(actor_user_id, entity_type, entity_id, action, before, after, correlation_id)


def entries(action: str | None = None, entity_type: str | None = None) -> list[dict[str, Any]]:
    return audit_trail.entries(action=action, entity_type=entity_type)


def clear() -> None:
    audit_trail.clear()
