# stampflow/grid/amounts.py

from __future__ import annotations

import math
from typing import Iterable, NamedTuple, Optional, Union

from stampflow.core.doc_schema import DocumentSchema
from stampflow.core.models import Document, GridRow

Amount = Union[int, float, str]

AMOUNT_DECIMALS = 2


class Totals(NamedTuple):
    subtotal: Union[int, float]
    vat: int
    total: Union[int, float]


def parse_number(value: object, separators: str = ",") -> float:
    text = str(value if value is not None else "").strip()
    for sep in separators:
        text = text.replace(sep, "")
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _tidy(number: float) -> Union[int, float]:
    return int(number) if float(number).is_integer() else number


def derive_amount(row: GridRow, schema: DocumentSchema) -> Optional[Amount]:
    """``qty * unit_price``, or the row's own amount text when the price is zero.

    A unit price that is empty, unparsable or 0 turns the amount cell into a
    free-text field, so unpriced lines can carry a note such as "quote later".
    Returns None for types without a priced quantity.
    """
    if not (schema.quantity_field and schema.unit_price_field):
        return None
    seps = schema.thousands_separators
    unit_price = parse_number(row.get(schema.unit_price_field), seps)
    if unit_price == 0:
        return row.get(schema.amount_field) if schema.amount_field else ""
    return _tidy(parse_number(row.get(schema.quantity_field), seps) * unit_price)


def format_amount(value: Union[int, float]) -> str:
    """Cell text for a derived amount, rounded to ``AMOUNT_DECIMALS`` places."""
    return str(_tidy(round(value, AMOUNT_DECIMALS)))


def compute_totals(rows: Iterable[GridRow], schema: DocumentSchema, rate: Optional[float]) -> Totals:
    subtotal = 0.0
    for row in rows:
        if row.is_deleted:
            continue
        amount = derive_amount(row, schema)
        if isinstance(amount, str):
            amount = parse_number(amount, schema.thousands_separators)
        subtotal += amount or 0
    vat = math.floor(subtotal * (rate or 0) / 100)
    return Totals(subtotal=_tidy(subtotal), vat=vat, total=_tidy(subtotal + vat))


def document_totals(document: Document, schema: DocumentSchema) -> Optional[Totals]:
    rate = schema.get_vat_rate(document)
    if rate is None:
        return None
    return compute_totals(document.rows, schema, rate)
