# stampflow/core/doctypes/payment_request.py

from __future__ import annotations

from typing import Dict, List, Optional

from stampflow.core.config import config
from stampflow.core.doc_schema import DocumentSchema
from stampflow.core.models import Document, DocumentType


class PaymentRequestSchema(DocumentSchema):
    doc_type: DocumentType = DocumentType.PAYMENT_REQUEST
    region = "VN"
    default_row_count = 3
    required_fields = ("recipient",)
    header_fields = (
        "client_address",
        "tax_id",
        "delivery_address",
        "beneficiary",
        "account_no",
        "bank",
        "bank_addr",
        "remark",
    )
    identifying_fields = ("item_name", "image")
    slot_gates = {"ceo": "head"}
    quantity_field = "qty"
    unit_price_field = "unit_price"
    amount_field = "amount"
    # VND amounts are written with either separator.
    thousands_separators = ",."

    def get_column_map(self) -> Dict[int, str]:
        # Column 0 holds the printed row number.
        return {1: "item_name", 2: "image", 3: "unit", 4: "qty", 5: "unit_price", 6: "amount", 7: "remarks"}

    def get_navigable_columns(self) -> List[int]:
        return [1, 3, 4, 5, 6, 7]

    def get_approval_slots(self, document: Document) -> List[str]:
        return ["writer", "head", "ceo"]

    def get_vat_rate(self, document: Document) -> Optional[float]:
        if document.vat_rate is None:
            return config.approval.default_vat_rate
        return document.vat_rate
