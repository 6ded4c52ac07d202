import logging

import pytest

from stampflow.core.models import Document, DocumentType, GridRow
from stampflow.translation import llm_provider, translate
from stampflow.translation.translate import (
    TranslatedCell,
    TranslatedRow,
    TranslationOutput,
    apply_translation,
    translate_document,
)


@pytest.fixture(autouse=True)
def _no_llm_env(monkeypatch):
    for name in (*llm_provider.API_KEY_ENV_NAMES, *llm_provider.BASE_URL_ENV_NAMES):
        monkeypatch.delenv(name, raising=False)


def _doc() -> Document:
    return Document(
        id="po-1",
        doc_type=DocumentType.PURCHASE_ORDER,
        title="볼트 발주",
        recipient="ACME",
        rows=[
            GridRow(id="r1", cells={"model": "M1", "item_name": "볼트", "qty": "3", "remarks": "긴급"}),
            GridRow(id="r2", cells={"model": "M2", "item_name": "너트"}, is_deleted=True),
        ],
    )


class FakeTranslator:
    def __init__(self, result):
        self.result = result
        self.messages = None

    def invoke(self, messages):
        self.messages = messages
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def _output() -> TranslationOutput:
    return TranslationOutput(
        title="Đặt hàng bu lông",
        rows=[
            TranslatedRow(
                row_index=0,
                cells=[
                    TranslatedCell(field="item_name", value="Bu lông"),
                    TranslatedCell(field="qty", value="ba"),
                    TranslatedCell(field="remarks", value="  "),
                ],
            ),
            TranslatedRow(row_index=7, cells=[TranslatedCell(field="item_name", value="ignored")]),
        ],
    )


def test_translate_without_api_key_reports_reason():
    translated, source, error = translate_document(_doc())
    assert translated is None
    assert source is None
    assert "OPENAI_API_KEY" in error


def test_translate_returns_copy_with_text_fields_only(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "openai-key")
    fake = FakeTranslator(_output())
    captured = {}

    def fake_build(llm_kwargs):
        captured.update(llm_kwargs)
        return fake

    monkeypatch.setattr(translate, "_build_translator", fake_build)
    original = _doc()

    translated, source, error = translate_document(original)

    assert error is None
    assert source.startswith("llm:")
    assert captured["api_key"] == "openai-key"
    assert translated.title == "Đặt hàng bu lông"
    assert translated.recipient == "ACME"
    row = translated.rows[0]
    assert row.get("item_name") == "Bu lông"
    assert row.get("qty") == "3"
    assert row.get("remarks") == "긴급"
    assert original.rows[0].get("item_name") == "볼트"
    assert original.title == "볼트 발주"

    prompt = fake.messages[-1].content
    assert "볼트" in prompt
    assert "너트" not in prompt
    assert '"qty"' not in prompt


def test_translate_accepts_dict_output(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "openai-key")
    fake = FakeTranslator({"title": "Bolt order", "recipient": "ACME Co"})
    monkeypatch.setattr(translate, "_build_translator", lambda llm_kwargs: fake)

    translated, _, error = translate_document(_doc())
    assert error is None
    assert translated.recipient == "ACME Co"


def test_translate_failure_is_logged_and_returned(monkeypatch, caplog):
    monkeypatch.setenv("OPENAI_API_KEY", "openai-key")
    fake = FakeTranslator(RuntimeError("rate limited"))
    monkeypatch.setattr(translate, "_build_translator", lambda llm_kwargs: fake)

    with caplog.at_level(logging.WARNING):
        translated, source, error = translate_document(_doc())

    assert translated is None
    assert source is None
    assert error == "rate limited"
    assert "Translation of document po-1 failed" in caplog.text


def test_apply_translation_keeps_title_when_blank():
    translated = apply_translation(_doc(), TranslationOutput(title="  "))
    assert translated.title == "볼트 발주"
