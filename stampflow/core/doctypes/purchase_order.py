# stampflow/core/doctypes/purchase_order.py

from __future__ import annotations

from typing import Dict, List, Optional

from stampflow.core.config import config
from stampflow.core.doc_schema import DocumentSchema
from stampflow.core.models import Document, DocumentType

VENDOR_COLUMN = 3
PURCHASE_VAT_RATE = 10.0


class PurchaseOrderSchema(DocumentSchema):
    doc_type: DocumentType = DocumentType.PURCHASE_ORDER
    default_row_count = 10
    header_fields = ("tel_fax", "reference", "sender_name", "sender_person")
    identifying_fields = ("model", "item_name")
    optional_columns = (VENDOR_COLUMN,)
    quantity_field = "qty"
    unit_price_field = "unit_price"
    amount_field = "amount"

    def get_column_map(self) -> Dict[int, str]:
        return {
            0: "model",
            1: "item_name",
            2: "material",
            VENDOR_COLUMN: "vendor",
            4: "qty",
            5: "unit_price",
            6: "amount",
            7: "remarks",
        }

    def get_navigable_columns(self) -> List[int]:
        return [0, 1, 2, VENDOR_COLUMN, 4, 5, 6, 7]

    def get_approval_slots(self, document: Document) -> List[str]:
        slots = ["writer", "design", "director"]
        if document.recipient.strip().upper() == config.approval.internal_recipient:
            slots.append("ceo")
        return slots

    def get_vat_rate(self, document: Document) -> Optional[float]:
        return PURCHASE_VAT_RATE
