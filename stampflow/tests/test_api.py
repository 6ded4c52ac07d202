import pytest
from fastapi.testclient import TestClient

import stampflow.api.app as api_app_module
from stampflow.api.webhooks import WebhookNotificationSink
from stampflow.core.models import Document, DocumentType, GridRow
from stampflow.core.stores import InMemoryDocumentStore

client = TestClient(api_app_module.app)

WRITER = {"user_id": "kim", "initials": "KIM"}
DESIGNER = {"user_id": "han", "slot_claims": ["design"]}
DIRECTOR = {"user_id": "choi", "slot_claims": ["director"]}
ADMIN = {"user_id": "root", "is_privileged": True}


@pytest.fixture(autouse=True)
def _isolated_app(monkeypatch):
    monkeypatch.setattr(api_app_module, "DOCUMENT_STORE", InMemoryDocumentStore())
    monkeypatch.setattr(api_app_module, "REMOTE_SYNC", None)
    monkeypatch.setattr(api_app_module, "NOTIFIER", WebhookNotificationSink(url_kr="", url_vn="", secret=""))


def _purchase_order(**fields) -> dict:
    values = {
        "id": "po-1",
        "doc_type": DocumentType.PURCHASE_ORDER,
        "title": "Steel plates",
        "recipient": "ACME",
        "rows": [GridRow(id="r1", cells={"model": "M1", "item_name": "Plate", "qty": "10", "unit_price": "1,000"})],
    }
    values.update(fields)
    return Document(**values).model_dump(mode="json")


def _submit(document: dict, actor: dict = WRITER, **extra):
    return client.post(f"/documents/{document['doc_type']}", json={"actor": actor, "document": document, **extra})


def test_health_reports_diagnostics():
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["diagnostics"]["remote_sync"]["configured"] is False
    assert body["diagnostics"]["notifications"] == {"kr_configured": False, "vn_configured": False}


def test_doctypes_lists_all_types():
    response = client.get("/doctypes")
    assert response.status_code == 200
    assert len(response.json()["doctypes"]) == 4


def test_submit_stamp_archive_flow():
    response = _submit(_purchase_order())
    assert response.status_code == 200
    assert response.json()["status"] == "pending"

    for actor, slot in ((DESIGNER, "design"), (DIRECTOR, "director")):
        response = client.post("/documents/purchase_order/po-1/stamp", json={"actor": actor, "slot": slot})
        assert response.status_code == 200
    assert response.json()["status"] == "approved"

    response = client.post("/documents/purchase_order/po-1/archive", json={"actor": ADMIN})
    assert response.status_code == 200
    assert response.json()["archive_bucket"] == "ACME"

    listing = client.get("/documents/purchase_order", params={"archived": "true", "bucket": "acme"}).json()
    assert listing["total"] == 1
    assert client.get("/documents/purchase_order").json()["total"] == 0


def test_totals_for_purchase_order():
    _submit(_purchase_order())
    response = client.get("/documents/purchase_order/po-1/totals")
    assert response.status_code == 200
    assert response.json() == {"doc_id": "po-1", "vat_rate": 10.0, "subtotal": 10000, "vat": 1000, "total": 11000}


def test_totals_unavailable_for_shipment_orders():
    _submit(_purchase_order(doc_type=DocumentType.SHIPMENT_ORDER, recipient="SEOUL"))
    assert client.get("/documents/shipment_order/po-1/totals").status_code == 400


def test_reject_then_resubmit():
    _submit(_purchase_order())
    response = client.post("/documents/purchase_order/po-1/reject", json={"actor": DESIGNER, "reason": "wrong qty"})
    assert response.status_code == 200
    rejected = response.json()
    assert rejected["title"] == "Steel plates (1)"

    rejected["rows"][0]["cells"]["qty"] = "12"
    response = client.post(
        "/documents/purchase_order/po-1/resubmit",
        json={"actor": WRITER, "document": rejected},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert response.json()["is_resubmitted"] is True


def test_error_status_codes():
    _submit(_purchase_order())

    unauthorized = client.post("/documents/purchase_order/po-1/stamp", json={"actor": WRITER, "slot": "director"})
    assert unauthorized.status_code == 403

    conflict = client.post("/documents/purchase_order/po-1/stamp", json={"actor": ADMIN, "slot": "writer"})
    assert conflict.status_code == 409

    assert client.get("/documents/purchase_order/missing").status_code == 404
    assert client.get("/documents/memo").status_code == 400
    assert _submit(_purchase_order(id="po-2", title="  ")).status_code == 400
    assert _submit(_purchase_order()).status_code == 409


def test_submit_rejects_mismatched_type_and_unknown_fields():
    document = _purchase_order()
    response = client.post("/documents/invoice", json={"actor": WRITER, "document": document})
    assert response.status_code == 400

    response = client.post("/documents/purchase_order", json={"actor": WRITER, "document": document, "extra": 1})
    assert response.status_code == 422


def test_purge_requires_privilege():
    _submit(_purchase_order())
    assert client.post("/documents/purchase_order/po-1/purge", json={"actor": WRITER}).status_code == 403

    response = client.post("/documents/purchase_order/po-1/purge", json={"actor": ADMIN})
    assert response.status_code == 200
    assert response.json() == {"status": "purged", "doc_id": "po-1"}
    assert client.get("/documents/purchase_order/po-1").status_code == 404


def test_translate_without_key_returns_503(monkeypatch):
    for name in ("STAMPFLOW_LLM_API_KEY", "OPENAI_API_KEY", "OPENROUTER_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    _submit(_purchase_order())

    response = client.post("/documents/purchase_order/po-1/translate")
    assert response.status_code == 503
    assert response.json()["detail"]["doc_id"] == "po-1"


def test_suggestions_endpoint():
    _submit(_purchase_order())
    for actor, slot in ((DESIGNER, "design"), (DIRECTOR, "director")):
        client.post("/documents/purchase_order/po-1/stamp", json={"actor": actor, "slot": slot})

    response = client.get("/suggestions/purchase_order", params={"q": "pla"})
    assert response.status_code == 200
    assert [item["item_name"] for item in response.json()["items"]] == ["Plate"]
