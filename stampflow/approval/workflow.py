# stampflow/approval/workflow.py

from __future__ import annotations

import re
from typing import Callable, List, Optional

from stampflow.approval.identity import WRITER_SLOT, Actor, ClaimSlotAuthorizer, SlotAuthorizer
from stampflow.core.doc_schema import DocumentSchema
from stampflow.core.doctypes.factory import schema_factory
from stampflow.core.errors import AuthorizationError, TransitionError, ValidationError
from stampflow.core.models import Document, DocumentStatus, GridRow, RejectLog, StampInfo, utc_now_iso

FINAL_SLOT = "final"
LOCKED_STATUSES = (DocumentStatus.PENDING, DocumentStatus.APPROVED, DocumentStatus.ARCHIVED)

_COUNTER_SUFFIX = re.compile(r"\s*\((\d+)\)$")


def bump_rejection_counter(title: str) -> str:
    """``"Widget"`` -> ``"Widget (1)"``, ``"Widget (1)"`` -> ``"Widget (2)"``."""
    match = _COUNTER_SUFFIX.search(title)
    if match is None:
        return f"{title} (1)" if title.strip() else title
    return f"{title[: match.start()]} ({int(match.group(1)) + 1})"


class ApprovalWorkflow:
    """Stamp-based approval state machine.

    Every operation validates before it mutates: on error the document is
    left exactly as it was.
    """

    def __init__(
        self,
        authorizer: Optional[SlotAuthorizer] = None,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.authorizer = authorizer or ClaimSlotAuthorizer()
        self.clock = clock

    def _schema(self, document: Document) -> DocumentSchema:
        return schema_factory(document.doc_type)

    def _stamp(self, actor: Actor) -> StampInfo:
        return StampInfo(user_id=actor.user_id, timestamp=self.clock())

    def required_slots(self, document: Document) -> List[str]:
        return self._schema(document).get_approval_slots(document)

    def is_complete(self, document: Document) -> bool:
        return all(slot in document.stamps for slot in self.required_slots(document))

    def next_slot(self, document: Document) -> Optional[str]:
        for slot in self.required_slots(document):
            if slot not in document.stamps:
                return slot
        return None

    def validate_required(self, document: Document) -> None:
        for field in self._schema(document).required_fields:
            if not str(getattr(document, field, "") or "").strip():
                raise ValidationError(f"'{field}' is required", field=field)

    def _settle(self, document: Document) -> None:
        if document.status == DocumentStatus.PENDING and self.is_complete(document):
            document.status = DocumentStatus.APPROVED

    def submit(self, document: Document, actor: Actor, temporary: bool = False) -> Document:
        if document.status not in (DocumentStatus.DRAFT, DocumentStatus.TEMPORARY):
            raise TransitionError(f"Cannot submit a document in status '{document.status.value}'")
        title = self._schema(document).derive_title(document)
        self.validate_required(document.model_copy(update={"title": title}))

        document.title = title
        document.author_id = document.author_id or actor.user_id
        document.stamps = {}
        if temporary:
            document.status = DocumentStatus.TEMPORARY
            return document
        document.stamps[WRITER_SLOT] = self._stamp(actor)
        document.status = DocumentStatus.PENDING
        self._settle(document)
        return document

    def stamp_slot(self, document: Document, slot: str, actor: Actor) -> Document:
        if document.status != DocumentStatus.PENDING:
            raise TransitionError(f"Cannot stamp a document in status '{document.status.value}'")
        if slot not in self.required_slots(document):
            raise TransitionError(f"Slot '{slot}' is not part of this document's approval chain")
        if slot in document.stamps:
            raise TransitionError(f"Slot '{slot}' is already stamped")
        if not self.authorizer.is_authorized_for_slot(actor, slot):
            raise AuthorizationError(slot, actor.user_id)
        gate = self._schema(document).slot_gates.get(slot)
        if gate and gate not in document.stamps:
            raise TransitionError(f"Slot '{slot}' requires '{gate}' to be stamped first")

        document.stamps[slot] = self._stamp(actor)
        self._settle(document)
        return document

    def reject(self, document: Document, reason: str, actor: Actor) -> Document:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required", field="reason")
        if document.status != DocumentStatus.PENDING:
            raise TransitionError(f"Cannot reject a document in status '{document.status.value}'")
        approver_slots = [slot for slot in self.required_slots(document) if slot != WRITER_SLOT]
        if not any(self.authorizer.is_authorized_for_slot(actor, slot) for slot in approver_slots):
            raise AuthorizationError(self.next_slot(document) or WRITER_SLOT, actor.user_id)

        document.title = bump_rejection_counter(document.title)
        # Captured after the counter bump so the new title is not flagged as an edit.
        document.rejection_snapshot = document.snapshot_content()
        document.status = DocumentStatus.REJECTED
        document.reject_reason = reason
        document.reject_log = RejectLog(user_id=actor.user_id, timestamp=self.clock())
        return document

    def resubmit(self, document: Document, edited: Document, actor: Actor) -> Document:
        """Returns the resubmitted document built from ``edited`` content.

        A TEMPORARY document goes through a plain first submission instead.
        """
        if document.status == DocumentStatus.TEMPORARY:
            fresh = edited.model_copy(deep=True)
            fresh.id = document.id
            fresh.created_at = document.created_at
            fresh.author_id = document.author_id
            fresh.status = DocumentStatus.TEMPORARY
            fresh.rejection_snapshot = None
            fresh.is_resubmitted = False
            for row in fresh.rows:
                row.changed_fields = []
            return self.submit(fresh, actor)
        if document.status != DocumentStatus.REJECTED:
            raise TransitionError(f"Cannot resubmit a document in status '{document.status.value}'")
        if actor.user_id != document.author_id and not actor.is_privileged:
            raise AuthorizationError(WRITER_SLOT, actor.user_id)

        fresh = edited.model_copy(deep=True)
        fresh.id = document.id
        fresh.doc_type = document.doc_type
        fresh.created_at = document.created_at
        fresh.author_id = document.author_id
        fresh.title = self._schema(fresh).derive_title(fresh)
        self.validate_required(fresh)

        writer = document.stamps.get(WRITER_SLOT) or self._stamp(actor)
        fresh.stamps = {WRITER_SLOT: writer}
        fresh.status = DocumentStatus.PENDING
        fresh.reject_reason = None
        fresh.reject_log = None
        fresh.is_resubmitted = True
        fresh.rejection_snapshot = document.snapshot_content()
        self._settle(fresh)
        return fresh

    def archive(self, document: Document, actor: Actor) -> Document:
        if document.status != DocumentStatus.APPROVED:
            raise TransitionError(f"Cannot archive a document in status '{document.status.value}'")
        if not self.authorizer.is_authorized_for_slot(actor, FINAL_SLOT):
            raise AuthorizationError(FINAL_SLOT, actor.user_id)

        document.stamps[FINAL_SLOT] = self._stamp(actor)
        document.status = DocumentStatus.ARCHIVED
        document.archive_bucket = self._schema(document).destination(document)
        return document

    @staticmethod
    def is_locked(document: Document) -> bool:
        return document.status in LOCKED_STATUSES

    @staticmethod
    def can_edit_row(document: Document, row: GridRow) -> bool:
        if document.status == DocumentStatus.ARCHIVED:
            return row.is_inserted_after_lock()
        return True

    @staticmethod
    def can_grow(document: Document) -> bool:
        return document.status not in LOCKED_STATUSES
