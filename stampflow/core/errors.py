"""
Error types raised by the editing and approval engine.

Every error leaves the document untouched: operations validate before they
mutate. The HTTP layer maps each type to one status code.
"""

from __future__ import annotations

from typing import Optional


class StampFlowError(Exception):
    """Base class for user-facing engine errors."""


class ValidationError(StampFlowError):
    """Required input is missing or empty (title, recipient, reject reason)."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class AuthorizationError(StampFlowError):
    """The acting user holds no claim for the approval slot."""

    def __init__(self, slot: str, user_id: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"User '{user_id}' is not authorized to stamp the '{slot}' slot")
        self.slot = slot
        self.user_id = user_id


class TransitionError(StampFlowError):
    """The operation is not legal from the document's current status."""


class DocumentNotFoundError(StampFlowError):
    def __init__(self, doc_type: str, doc_id: str) -> None:
        super().__init__(f"Document not found: {doc_type}/{doc_id}")
        self.doc_type = doc_type
        self.doc_id = doc_id
