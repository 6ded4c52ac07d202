# stampflow/core/models.py

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

# Rows inserted into an already persisted document carry this id prefix.
NEW_ROW_PREFIX = "NEW-"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_row_id(after_lock: bool = False) -> str:
    raw = uuid.uuid4().hex[:9]
    return f"{NEW_ROW_PREFIX}{raw}" if after_lock else raw


class DocumentType(str, Enum):
    SHIPMENT_ORDER = "shipment_order"
    PURCHASE_ORDER = "purchase_order"
    INVOICE = "invoice"
    PAYMENT_REQUEST = "payment_request"


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    TEMPORARY = "temporary"
    PENDING = "pending"
    REJECTED = "rejected"
    APPROVED = "approved"
    ARCHIVED = "archived"


class ModLogType(str, Enum):
    EDIT = "EDIT"
    DELETE = "DELETE"


class Align(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class Weight(str, Enum):
    NORMAL = "normal"
    BOLD = "bold"


class BorderStyle(str, Enum):
    SOLID = "solid"
    DOTTED = "dotted"
    NONE = "none"


class StampInfo(BaseModel):
    user_id: str
    timestamp: str


class ModLog(BaseModel):
    user_id: str
    timestamp: str
    type: ModLogType


class RejectLog(BaseModel):
    user_id: str
    timestamp: str


class Note(BaseModel):
    label: str = ""
    content: str = ""


class GridRow(BaseModel):
    """One table row; cell names come from the document type's column map."""

    id: str = Field(default_factory=new_row_id)
    cells: Dict[str, str] = Field(default_factory=dict)
    is_deleted: bool = False
    mod_log: Optional[ModLog] = None
    changed_fields: List[str] = Field(default_factory=list)

    def get(self, field: str) -> str:
        return self.cells.get(field, "")

    def is_inserted_after_lock(self) -> bool:
        return self.id.startswith(NEW_ROW_PREFIX)


class CellSpan(BaseModel):
    row_span: int = 1
    col_span: int = 1


class BorderSides(BaseModel):
    top: Optional[BorderStyle] = None
    bottom: Optional[BorderStyle] = None
    left: Optional[BorderStyle] = None
    right: Optional[BorderStyle] = None


class RejectionSnapshot(BaseModel):
    """Editable content captured when a document is rejected (diff baseline)."""

    title: str = ""
    date: str = ""
    recipient: str = ""
    header: Dict[str, str] = Field(default_factory=dict)
    notes: List[Note] = Field(default_factory=list)
    rows: List[GridRow] = Field(default_factory=list)


class Document(BaseModel):
    id: str
    doc_type: DocumentType
    title: str = ""
    date: str = ""
    recipient: str = ""
    header: Dict[str, str] = Field(default_factory=dict)
    notes: List[Note] = Field(default_factory=list)
    rows: List[GridRow] = Field(default_factory=list)
    stamps: Dict[str, StampInfo] = Field(default_factory=dict)
    status: DocumentStatus = DocumentStatus.DRAFT
    author_id: str = ""
    created_at: str = Field(default_factory=utc_now_iso)
    reject_reason: Optional[str] = None
    reject_log: Optional[RejectLog] = None
    rejection_snapshot: Optional[RejectionSnapshot] = None
    # Overlays in their persisted form, keyed by "row-col".
    merges: Dict[str, CellSpan] = Field(default_factory=dict)
    aligns: Dict[str, Align] = Field(default_factory=dict)
    weights: Dict[str, Weight] = Field(default_factory=dict)
    borders: Dict[str, BorderSides] = Field(default_factory=dict)
    hidden_columns: List[int] = Field(default_factory=list)
    vat_rate: Optional[float] = None
    is_resubmitted: bool = False
    archive_bucket: Optional[str] = None

    def active_rows(self) -> List[GridRow]:
        return [row for row in self.rows if not row.is_deleted]

    def snapshot_content(self) -> RejectionSnapshot:
        return RejectionSnapshot(
            title=self.title,
            date=self.date,
            recipient=self.recipient,
            header=dict(self.header),
            notes=[note.model_copy() for note in self.notes],
            rows=[row.model_copy(deep=True) for row in self.rows],
        )
