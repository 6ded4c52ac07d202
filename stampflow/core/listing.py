# stampflow/core/listing.py

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from stampflow.approval.workflow import FINAL_SLOT
from stampflow.core.config import config
from stampflow.core.models import Document, DocumentStatus

LIBRARY_STATUSES = (DocumentStatus.APPROVED, DocumentStatus.ARCHIVED)


class Page(BaseModel):
    items: List[Document]
    total: int
    page: int
    page_count: int


def _matches(document: Document, needle: str) -> bool:
    return needle in document.title.lower() or needle in document.recipient.lower()


def list_documents(
    documents: Iterable[Document],
    *,
    status: Optional[DocumentStatus] = None,
    archived: bool = False,
    bucket: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Page:
    """Filters, sorts newest first and paginates one document list.

    The archive view holds ARCHIVED documents, optionally of one destination
    bucket. Every other view leaves out documents carrying the final stamp.
    """
    size = max(1, page_size or config.listing.page_size)
    if archived:
        selected = [d for d in documents if d.status == DocumentStatus.ARCHIVED]
        if bucket:
            wanted = bucket.strip().upper()
            selected = [d for d in selected if (d.archive_bucket or "").upper() == wanted]
    else:
        selected = [d for d in documents if FINAL_SLOT not in d.stamps]
        if status is not None:
            selected = [d for d in selected if d.status == status]

    needle = (search or "").strip().lower()
    if needle:
        selected = [d for d in selected if _matches(d, needle)]
    selected.sort(key=lambda d: d.created_at, reverse=True)

    total = len(selected)
    page_count = max(1, math.ceil(total / size))
    page = min(max(1, page), page_count)
    start = (page - 1) * size
    return Page(items=selected[start : start + size], total=total, page=page, page_count=page_count)


def item_suggestions(documents: Iterable[Document], query: str, limit: Optional[int] = None) -> List[Dict[str, str]]:
    """Rows of approved documents whose item name contains ``query``, one per item name."""
    needle = (query or "").strip().lower()
    if not needle:
        return []
    limit = limit or config.listing.suggestion_limit
    seen = set()
    found: List[Dict[str, str]] = []
    library = sorted(
        (d for d in documents if d.status in LIBRARY_STATUSES),
        key=lambda d: d.created_at,
        reverse=True,
    )
    for document in library:
        for row in document.active_rows():
            name = row.get("item_name").strip()
            key = name.lower()
            if not name or key in seen or needle not in key:
                continue
            seen.add(key)
            found.append(dict(row.cells))
            if len(found) >= limit:
                return found
    return found
