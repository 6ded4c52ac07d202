from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from stampflow.approval.identity import Actor
from stampflow.core.models import Document


class ActorRequest(BaseModel):
    actor: Actor

    model_config = ConfigDict(extra="forbid")


class SubmitRequest(BaseModel):
    actor: Actor
    document: Document
    temporary: bool = False

    model_config = ConfigDict(extra="forbid")


class ResubmitRequest(BaseModel):
    actor: Actor
    document: Document

    model_config = ConfigDict(extra="forbid")


class StampRequest(BaseModel):
    actor: Actor
    slot: str

    model_config = ConfigDict(extra="forbid")


class RejectRequest(BaseModel):
    actor: Actor
    reason: str

    model_config = ConfigDict(extra="forbid")


class DocumentPageResponse(BaseModel):
    items: List[Document]
    total: int
    page: int
    page_count: int


class TotalsResponse(BaseModel):
    doc_id: str
    vat_rate: float
    subtotal: Union[int, float]
    vat: int
    total: Union[int, float]


class SuggestionsResponse(BaseModel):
    doc_type: str
    query: str
    items: List[Dict[str, str]]


class TranslationResponse(BaseModel):
    doc_id: str
    document: Optional[Document] = None
    source: Optional[str] = None
    error: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class HealthResponse(BaseModel):
    status: str
    version: str
    diagnostics: Dict[str, Any]
