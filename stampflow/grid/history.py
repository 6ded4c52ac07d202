from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from stampflow.core.config import config

logger = logging.getLogger(__name__)


def _encode(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Cannot snapshot value of type {type(value).__name__}")


def serialize_state(state: Dict[str, Any]) -> str:
    """Key-sorted JSON so that equal editor states compare equal as strings."""
    return json.dumps(state, default=_encode, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


class UndoStack:
    """Bounded stack of serialized editor states, newest last."""

    def __init__(self, capacity: Optional[int] = None) -> None:
        self.capacity = max(1, int(capacity if capacity is not None else config.editor.undo_capacity))
        self._entries: List[str] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def can_undo(self) -> bool:
        return bool(self._entries)

    def take_snapshot(self, state: Dict[str, Any]) -> bool:
        """Pushes ``state`` (captured before a mutation). Returns False when skipped."""
        data = serialize_state(state)
        # Skip a push identical to the current top.
        if self._entries and self._entries[-1] == data:
            return False
        self._entries.append(data)
        if len(self._entries) > self.capacity:
            self._entries = self._entries[-self.capacity:]
        return True

    def undo(self) -> Optional[Dict[str, Any]]:
        if not self._entries:
            return None
        raw = self._entries.pop()
        try:
            state = json.loads(raw)
        except ValueError as exc:
            logger.error("Undo failed: stored snapshot is not valid JSON (%s); entry discarded", exc)
            return None
        if not isinstance(state, dict):
            logger.error("Undo failed: stored snapshot has type %s; entry discarded", type(state).__name__)
            return None
        return state

    def clear(self) -> None:
        self._entries.clear()
