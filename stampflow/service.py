# stampflow/service.py

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from stampflow.api.webhooks import NotificationEvent, NotificationKind, WebhookNotificationSink
from stampflow.approval.identity import Actor
from stampflow.approval.workflow import ApprovalWorkflow
from stampflow.core.doctypes.factory import schema_factory
from stampflow.core.errors import TransitionError
from stampflow.core.listing import Page, item_suggestions, list_documents
from stampflow.core.models import Document, DocumentStatus, DocumentType
from stampflow.core.stores import Dispatcher, DocumentRepository
from stampflow.translation.translate import translate_document

logger = logging.getLogger(__name__)


class DocumentService:
    """Approval operations on stored documents: load, transition, save, notify."""

    def __init__(
        self,
        repository: Optional[DocumentRepository] = None,
        workflow: Optional[ApprovalWorkflow] = None,
        notifier: Optional[WebhookNotificationSink] = None,
        dispatcher: Optional[Dispatcher] = None,
        approver_initials: Optional[Dict[str, str]] = None,
    ) -> None:
        self.repository = repository or DocumentRepository()
        self.workflow = workflow or ApprovalWorkflow()
        self.notifier = notifier or WebhookNotificationSink()
        self.dispatcher = dispatcher or self.repository.dispatcher
        self.approver_initials = dict(approver_initials or {})

    # --- notifications ----------------------------------------------------

    def _event(self, document: Document, kind: NotificationKind) -> NotificationEvent:
        next_slot = self.workflow.next_slot(document) if kind == NotificationKind.REQUEST else None
        return NotificationEvent(
            category=document.doc_type.value,
            subcategory=document.status.value,
            recipient_hint=(next_slot or "") if kind == NotificationKind.REQUEST else document.author_id,
            title=document.title,
            next_approver_initials=self.approver_initials.get(next_slot) if next_slot else None,
            status=kind,
            region=schema_factory(document.doc_type).region,
        )

    def _notify(self, document: Document) -> None:
        if document.status == DocumentStatus.PENDING:
            kind = NotificationKind.REQUEST
        elif document.status == DocumentStatus.APPROVED:
            kind = NotificationKind.COMPLETE
        elif document.status == DocumentStatus.REJECTED:
            kind = NotificationKind.REJECT
        else:
            return
        event = self._event(document, kind)
        self.dispatcher(lambda: self._deliver(event))

    def _deliver(self, event: NotificationEvent) -> None:
        if not self.notifier.notify(event):
            logger.info("Notification '%s' for '%s' not delivered", event.status.value, event.title)

    # --- reads ----------------------------------------------------------

    def get(self, doc_type: DocumentType | str, doc_id: str) -> Document:
        return self.repository.get(doc_type, doc_id)

    def list(self, doc_type: DocumentType | str, **filters) -> Page:
        return list_documents(self.repository.list(doc_type), **filters)

    def suggestions(self, doc_type: DocumentType | str, query: str, limit: Optional[int] = None) -> List[Dict[str, str]]:
        return item_suggestions(self.repository.list(doc_type), query, limit)

    def translate(self, doc_type: DocumentType | str, doc_id: str) -> Tuple[Optional[Document], Optional[str], Optional[str]]:
        return translate_document(self.repository.get(doc_type, doc_id))

    # --- transitions ------------------------------------------------------

    def submit(self, document: Document, actor: Actor, temporary: bool = False) -> Document:
        """First submission of a draft, or of a previously saved TEMPORARY document."""
        existing = self.repository.find(document.doc_type, document.id)
        if existing is not None:
            if existing.status != DocumentStatus.TEMPORARY:
                raise TransitionError(f"Document '{document.id}' was already submitted")
            document = document.model_copy(
                update={
                    "status": DocumentStatus.TEMPORARY,
                    "created_at": existing.created_at,
                    "author_id": existing.author_id,
                }
            )
        submitted = self.workflow.submit(document, actor, temporary=temporary)
        self.repository.save(submitted)
        self._notify(submitted)
        return submitted

    def resubmit(self, doc_type: DocumentType | str, doc_id: str, edited: Document, actor: Actor) -> Document:
        stored = self.repository.get(doc_type, doc_id)
        resubmitted = self.workflow.resubmit(stored, edited, actor)
        self.repository.save(resubmitted)
        self._notify(resubmitted)
        return resubmitted

    def stamp(self, doc_type: DocumentType | str, doc_id: str, slot: str, actor: Actor) -> Document:
        document = self.workflow.stamp_slot(self.repository.get(doc_type, doc_id), slot, actor)
        self.repository.save(document)
        self._notify(document)
        return document

    def reject(self, doc_type: DocumentType | str, doc_id: str, reason: str, actor: Actor) -> Document:
        document = self.workflow.reject(self.repository.get(doc_type, doc_id), reason, actor)
        self.repository.save(document)
        self._notify(document)
        return document

    def archive(self, doc_type: DocumentType | str, doc_id: str, actor: Actor) -> Document:
        document = self.workflow.archive(self.repository.get(doc_type, doc_id), actor)
        self.repository.save(document)
        return document

    def save_corrections(self, document: Document, actor: Actor) -> Document:
        """Stores row corrections made on a locked document without changing its status."""
        stored = self.repository.get(document.doc_type, document.id)
        if not self.workflow.is_locked(stored):
            raise TransitionError(f"Document '{document.id}' is not locked; submit or resubmit it instead")
        corrected = stored.model_copy(deep=True)
        if stored.status == DocumentStatus.ARCHIVED:
            # Only rows added after archiving may differ from what is stored.
            kept = {row.id: row for row in stored.rows}
            corrected.rows = [
                row if row.is_inserted_after_lock() else kept[row.id]
                for row in document.rows
                if row.is_inserted_after_lock() or row.id in kept
            ]
        else:
            corrected.rows = [row.model_copy(deep=True) for row in document.rows]
            corrected.merges = document.merges
            corrected.aligns = document.aligns
            corrected.weights = document.weights
            corrected.borders = document.borders
            corrected.hidden_columns = list(document.hidden_columns)
        logger.info("Saved corrections on %s/%s (by=%s)", stored.doc_type.value, stored.id, actor.user_id)
        return self.repository.save(corrected)

    def purge(self, doc_type: DocumentType | str, doc_id: str, actor: Actor) -> None:
        self.repository.purge(doc_type, doc_id, privileged=actor.is_privileged, user_id=actor.user_id)
