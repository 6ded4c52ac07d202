from __future__ import annotations

import logging
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from stampflow.api.schemas import (
    ActorRequest,
    DocumentPageResponse,
    HealthResponse,
    RejectRequest,
    ResubmitRequest,
    StampRequest,
    SubmitRequest,
    SuggestionsResponse,
    TotalsResponse,
    TranslationResponse,
)
from stampflow.api.webhooks import WebhookNotificationSink
from stampflow.approval.workflow import ApprovalWorkflow
from stampflow.core.config import config
from stampflow.core.doctypes.factory import DocumentSchemaFactory, schema_factory
from stampflow.core.errors import (
    AuthorizationError,
    DocumentNotFoundError,
    StampFlowError,
    TransitionError,
    ValidationError,
)
from stampflow.core.models import Document, DocumentStatus, DocumentType
from stampflow.core.stores import (
    DocumentRepository,
    create_document_store_from_env,
    create_remote_sync_from_env,
    storage_mode,
)
from stampflow.core.version import __version__
from stampflow.grid.amounts import document_totals
from stampflow.service import DocumentService

logger = logging.getLogger(__name__)

app = FastAPI(
    title="StampFlow API",
    description="Grid document editing and stamp approval",
    version=__version__,
)

DOCUMENT_STORE = create_document_store_from_env()
REMOTE_SYNC = create_remote_sync_from_env()
WORKFLOW = ApprovalWorkflow()
NOTIFIER = WebhookNotificationSink()

ERROR_STATUS_CODES = {
    ValidationError: 400,
    AuthorizationError: 403,
    DocumentNotFoundError: 404,
    TransitionError: 409,
}


@app.exception_handler(StampFlowError)
async def stampflow_error_handler(request: Request, exc: StampFlowError) -> JSONResponse:
    status_code = 400
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def _service(background_tasks: BackgroundTasks) -> DocumentService:
    # Remote sync and notifications run after the response is sent.
    repository = DocumentRepository(DOCUMENT_STORE, REMOTE_SYNC, dispatcher=background_tasks.add_task)
    return DocumentService(repository, WORKFLOW, NOTIFIER, dispatcher=background_tasks.add_task)


def _doc_type(raw: str) -> DocumentType:
    try:
        return schema_factory(raw).doc_type
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _check_body_type(doc_type: DocumentType, document: Document) -> None:
    if document.doc_type != doc_type:
        raise HTTPException(
            status_code=400,
            detail=f"Document type '{document.doc_type.value}' does not match path '{doc_type.value}'",
        )


@app.get("/health", response_model=HealthResponse)
def health_check():
    return {
        "status": "healthy",
        "version": __version__,
        "diagnostics": {
            "document_store": {"mode": storage_mode("STAMPFLOW_DOCUMENT_STORE", "inmem")},
            "remote_sync": {"configured": REMOTE_SYNC is not None},
            "notifications": {
                "kr_configured": bool(NOTIFIER.url_kr),
                "vn_configured": bool(NOTIFIER.url_vn),
            },
        },
    }


@app.get("/doctypes")
def list_doctypes():
    return {"doctypes": DocumentSchemaFactory.list_supported()}


@app.get("/suggestions/{doc_type}", response_model=SuggestionsResponse)
def suggestions(doc_type: str, q: str = "", limit: Optional[int] = None):
    kind = _doc_type(doc_type)
    service = DocumentService(DocumentRepository(DOCUMENT_STORE), WORKFLOW, NOTIFIER)
    return {"doc_type": kind.value, "query": q, "items": service.suggestions(kind, q, limit)}


@app.get("/documents/{doc_type}", response_model=DocumentPageResponse)
def list_documents(
    doc_type: str,
    status: Optional[DocumentStatus] = None,
    archived: bool = False,
    bucket: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
):
    kind = _doc_type(doc_type)
    service = DocumentService(DocumentRepository(DOCUMENT_STORE), WORKFLOW, NOTIFIER)
    result = service.list(kind, status=status, archived=archived, bucket=bucket, search=search, page=page)
    return result.model_dump()


@app.get("/documents/{doc_type}/{doc_id}", response_model=Document)
def get_document(doc_type: str, doc_id: str):
    return DocumentRepository(DOCUMENT_STORE).get(_doc_type(doc_type), doc_id)


@app.get("/documents/{doc_type}/{doc_id}/totals", response_model=TotalsResponse)
def get_totals(doc_type: str, doc_id: str):
    kind = _doc_type(doc_type)
    document = DocumentRepository(DOCUMENT_STORE).get(kind, doc_id)
    schema = schema_factory(kind)
    totals = document_totals(document, schema)
    if totals is None:
        raise HTTPException(status_code=400, detail=f"Document type '{kind.value}' has no totals")
    return {"doc_id": doc_id, "vat_rate": schema.get_vat_rate(document), **totals._asdict()}


@app.post("/documents/{doc_type}", response_model=Document)
def submit_document(doc_type: str, req: SubmitRequest, background_tasks: BackgroundTasks):
    kind = _doc_type(doc_type)
    _check_body_type(kind, req.document)
    return _service(background_tasks).submit(req.document, req.actor, temporary=req.temporary)


@app.post("/documents/{doc_type}/{doc_id}/resubmit", response_model=Document)
def resubmit_document(doc_type: str, doc_id: str, req: ResubmitRequest, background_tasks: BackgroundTasks):
    kind = _doc_type(doc_type)
    _check_body_type(kind, req.document)
    return _service(background_tasks).resubmit(kind, doc_id, req.document, req.actor)


@app.post("/documents/{doc_type}/{doc_id}/corrections", response_model=Document)
def save_corrections(doc_type: str, doc_id: str, req: ResubmitRequest, background_tasks: BackgroundTasks):
    kind = _doc_type(doc_type)
    _check_body_type(kind, req.document)
    if req.document.id != doc_id:
        raise HTTPException(status_code=400, detail="Document id does not match path")
    return _service(background_tasks).save_corrections(req.document, req.actor)


@app.post("/documents/{doc_type}/{doc_id}/stamp", response_model=Document)
def stamp_document(doc_type: str, doc_id: str, req: StampRequest, background_tasks: BackgroundTasks):
    return _service(background_tasks).stamp(_doc_type(doc_type), doc_id, req.slot, req.actor)


@app.post("/documents/{doc_type}/{doc_id}/reject", response_model=Document)
def reject_document(doc_type: str, doc_id: str, req: RejectRequest, background_tasks: BackgroundTasks):
    return _service(background_tasks).reject(_doc_type(doc_type), doc_id, req.reason, req.actor)


@app.post("/documents/{doc_type}/{doc_id}/archive", response_model=Document)
def archive_document(doc_type: str, doc_id: str, req: ActorRequest, background_tasks: BackgroundTasks):
    return _service(background_tasks).archive(_doc_type(doc_type), doc_id, req.actor)


@app.post("/documents/{doc_type}/{doc_id}/purge")
def purge_document(doc_type: str, doc_id: str, req: ActorRequest, background_tasks: BackgroundTasks):
    _service(background_tasks).purge(_doc_type(doc_type), doc_id, req.actor)
    return {"status": "purged", "doc_id": doc_id}


@app.post("/documents/{doc_type}/{doc_id}/translate", response_model=TranslationResponse)
def translate_document(doc_type: str, doc_id: str, background_tasks: BackgroundTasks):
    translated, source, error = _service(background_tasks).translate(_doc_type(doc_type), doc_id)
    if translated is None:
        logger.info("Translation unavailable for %s/%s: %s", doc_type, doc_id, error)
        raise HTTPException(status_code=503, detail={"doc_id": doc_id, "error": error})
    return {"doc_id": doc_id, "document": translated, "source": source, "error": None}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.api_host, port=config.api_port)
