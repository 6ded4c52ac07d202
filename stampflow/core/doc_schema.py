# stampflow/core/doc_schema.py

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple

from stampflow.core.models import Align, Document, DocumentType, GridRow, new_row_id


class DocumentSchema(ABC):
    """Static per-type configuration: columns, navigation, approval chain, totals."""
    doc_type: DocumentType
    region: str = "KR"
    default_row_count: int = 6
    required_fields: Tuple[str, ...] = ("title",)
    header_fields: Tuple[str, ...] = ()
    identifying_fields: Tuple[str, ...] = ("item_name",)
    optional_columns: Tuple[int, ...] = ()
    left_aligned_fields: Tuple[str, ...] = ("item_name", "remarks")
    right_aligned_fields: Tuple[str, ...] = ("unit_price", "amount")
    slot_gates: Dict[str, str] = {}
    quantity_field: Optional[str] = None
    unit_price_field: Optional[str] = None
    amount_field: Optional[str] = None
    thousands_separators: str = ","

    @abstractmethod
    def get_column_map(self) -> Dict[int, str]:
        """Return physical column index -> row field name."""
        ...

    @abstractmethod
    def get_navigable_columns(self) -> List[int]:
        """Return the ordered tab/enter-navigable columns with nothing hidden."""
        ...

    @abstractmethod
    def get_approval_slots(self, document: Document) -> List[str]:
        """Return the ordered stamp slots this document needs to be approved."""
        ...

    def get_vat_rate(self, document: Document) -> Optional[float]:
        """VAT percentage applied to totals, or None when the type has no totals."""
        return None

    def fields(self) -> List[str]:
        column_map = self.get_column_map()
        return [column_map[col] for col in sorted(column_map)]

    def field_for_column(self, col: int) -> Optional[str]:
        return self.get_column_map().get(col)

    def column_for_field(self, field: str) -> Optional[int]:
        for col, name in self.get_column_map().items():
            if name == field:
                return col
        return None

    def navigable_columns(self, hidden_columns: Iterable[int] = ()) -> List[int]:
        hidden = {col for col in hidden_columns if col in self.optional_columns}
        return [col for col in self.get_navigable_columns() if col not in hidden]

    def default_align(self, col: int) -> Align:
        field = self.field_for_column(col)
        if field in self.right_aligned_fields:
            return Align.RIGHT
        if field in self.left_aligned_fields:
            return Align.LEFT
        return Align.CENTER

    def new_row(self, after_lock: bool = False) -> GridRow:
        return GridRow(id=new_row_id(after_lock), cells={field: "" for field in self.fields()})

    def initial_rows(self, count: Optional[int] = None) -> List[GridRow]:
        return [self.new_row() for _ in range(self.default_row_count if count is None else count)]

    def is_blank_row(self, row: GridRow) -> bool:
        return not any(row.get(field).strip() for field in self.identifying_fields)

    def derive_title(self, document: Document) -> str:
        return document.title

    def destination(self, document: Document) -> str:
        return document.recipient.strip().upper()
