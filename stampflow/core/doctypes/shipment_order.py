# stampflow/core/doctypes/shipment_order.py

from __future__ import annotations

from typing import Dict, List

from stampflow.core.config import config
from stampflow.core.doc_schema import DocumentSchema
from stampflow.core.models import Document, DocumentType

LOCATIONS = ("SEOUL", "DAECHEON", "VIETNAM")


class ShipmentOrderSchema(DocumentSchema):
    doc_type: DocumentType = DocumentType.SHIPMENT_ORDER
    required_fields = ("title", "recipient")
    identifying_fields = ("dept", "model", "item_name", "price")
    # Domestic orders are stamped head, then manager, then director.
    slot_gates = {"manager": "head", "director": "manager"}

    def get_column_map(self) -> Dict[int, str]:
        return {0: "dept", 1: "model", 2: "item_name", 3: "price", 4: "unit_price", 5: "remarks"}

    def get_navigable_columns(self) -> List[int]:
        return [0, 1, 2, 3, 4, 5]

    def get_approval_slots(self, document: Document) -> List[str]:
        # Orders shipped to the domestic head office go through the full chain.
        if document.recipient.strip().upper() == config.approval.domestic_location:
            return ["writer", "head", "manager", "director"]
        return ["writer", "head"]
