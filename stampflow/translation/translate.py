# stampflow/translation/translate.py

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field

from stampflow.core.doc_schema import DocumentSchema
from stampflow.core.doctypes.factory import schema_factory
from stampflow.core.models import Document
from stampflow.translation.llm_provider import chat_model_kwargs, llm_missing_reason

logger = logging.getLogger(__name__)

DEFAULT_TARGET_LANGUAGE = "Vietnamese"
# Cells holding numbers or file references are never sent for translation.
UNTRANSLATED_FIELDS = ("qty", "qty_extra", "unit_price", "amount", "image", "drawing_no")


class TranslatedCell(BaseModel):
    field: str
    value: str


class TranslatedRow(BaseModel):
    row_index: int
    cells: List[TranslatedCell] = Field(default_factory=list)


class TranslationOutput(BaseModel):
    title: str
    recipient: str = ""
    rows: List[TranslatedRow] = Field(default_factory=list)


def translatable_fields(schema: DocumentSchema) -> List[str]:
    return [field for field in schema.fields() if field not in UNTRANSLATED_FIELDS]


def build_prompt(document: Document, schema: DocumentSchema, target_language: str) -> str:
    fields = translatable_fields(schema)
    rows = [
        {"row_index": idx, **{field: row.get(field) for field in fields if row.get(field).strip()}}
        for idx, row in enumerate(document.rows)
        if not row.is_deleted
    ]
    payload = {"title": document.title, "recipient": document.recipient, "rows": rows}
    return (
        f"Translate the following business document into {target_language}.\n"
        "Keep model numbers, codes and numbers unchanged. Keep row_index values as given.\n"
        f"Input: {json.dumps(payload, ensure_ascii=False)}"
    )


def apply_translation(document: Document, output: TranslationOutput) -> Document:
    """Returns a copy of ``document`` carrying the translated text; blank translations keep the original."""
    schema = schema_factory(document.doc_type)
    allowed = set(translatable_fields(schema))
    translated = document.model_copy(deep=True)
    translated.title = output.title.strip() or document.title
    if output.recipient.strip():
        translated.recipient = output.recipient.strip()
    for item in output.rows:
        if not 0 <= item.row_index < len(translated.rows):
            continue
        row = translated.rows[item.row_index]
        for cell in item.cells:
            if cell.field in allowed and cell.value.strip():
                row.cells[cell.field] = cell.value
    return translated


def _build_translator(llm_kwargs: dict[str, Any]) -> Any:
    from langchain_openai import ChatOpenAI

    llm = ChatOpenAI(**llm_kwargs)
    return llm.with_structured_output(TranslationOutput)


def translate_document(
    document: Document,
    target_language: str = DEFAULT_TARGET_LANGUAGE,
) -> Tuple[Optional[Document], Optional[str], Optional[str]]:
    """Translates title, recipient and text cells.

    Returns ``(translated_copy, source_label, error)``; the input document is
    never modified.
    """
    llm_kwargs = chat_model_kwargs()
    if llm_kwargs is None:
        return None, None, llm_missing_reason()

    schema = schema_factory(document.doc_type)
    try:
        from langchain_core.messages import HumanMessage, SystemMessage

        translator = _build_translator(llm_kwargs)
        result = translator.invoke(
            [
                SystemMessage(content="You translate internal purchasing and shipping documents."),
                HumanMessage(content=build_prompt(document, schema, target_language)),
            ]
        )
        if isinstance(result, dict):
            result = TranslationOutput.model_validate(result)
        if not isinstance(result, TranslationOutput):
            return None, None, "LLM structured output returned unsupported type"
        return apply_translation(document, result), f"llm:{llm_kwargs['model']}", None
    except Exception as exc:
        logger.warning("Translation of document %s failed: %s", document.id, exc)
        return None, None, str(exc)
