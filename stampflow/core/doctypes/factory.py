# stampflow/core/doctypes/factory.py

from __future__ import annotations

from stampflow.core.doc_schema import DocumentSchema
from stampflow.core.doctypes.invoice import InvoiceSchema
from stampflow.core.doctypes.payment_request import PaymentRequestSchema
from stampflow.core.doctypes.purchase_order import PurchaseOrderSchema
from stampflow.core.doctypes.shipment_order import ShipmentOrderSchema
from stampflow.core.models import DocumentType


def schema_factory(doc_type: DocumentType | str) -> DocumentSchema:
    """Factory function to get the schema for a document type."""
    try:
        kind = DocumentType(str(getattr(doc_type, "value", doc_type)).strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown doc_type: {doc_type}") from exc

    if kind == DocumentType.SHIPMENT_ORDER:
        return ShipmentOrderSchema()
    if kind == DocumentType.PURCHASE_ORDER:
        return PurchaseOrderSchema()
    if kind == DocumentType.INVOICE:
        return InvoiceSchema()
    return PaymentRequestSchema()


class DocumentSchemaFactory:
    @staticmethod
    def get_schema(doc_type: DocumentType | str) -> DocumentSchema:
        return schema_factory(doc_type)

    @staticmethod
    def list_supported() -> list[dict]:
        items = []
        for kind in DocumentType:
            schema = schema_factory(kind)
            items.append(
                {
                    "doc_type": kind.value,
                    "region": schema.region,
                    "fields": schema.fields(),
                    "navigable_columns": schema.get_navigable_columns(),
                    "optional_columns": list(schema.optional_columns),
                    "header_fields": list(schema.header_fields),
                    "required_fields": list(schema.required_fields),
                }
            )
        return items
