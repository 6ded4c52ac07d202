# stampflow/core/config.py

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_optional(name: str) -> Optional[str]:
    value = str(os.getenv(name) or "").strip()
    return value or None


class EditorConfig(BaseModel):
    """Grid editor limits."""
    undo_capacity: int = 50
    max_rows: int = 300


class ApprovalConfig(BaseModel):
    """Approval chain tuning."""
    domestic_location: str = "SEOUL"
    internal_recipient: str = "AJIN"
    default_vat_rate: float = 10.0


class ListingConfig(BaseModel):
    page_size: int = 10
    suggestion_limit: int = 10


class NotifyConfig(BaseModel):
    """Outbound chat webhooks, one per region."""
    webhook_url_kr: Optional[str] = None
    webhook_url_vn: Optional[str] = None
    webhook_secret: Optional[str] = None


class LLMConfig(BaseModel):
    translation_model: str = "gpt-4o-mini"
    temperature: float = 0.1


class StampFlowConfig(BaseModel):
    """Main StampFlow configuration."""
    editor: EditorConfig = EditorConfig()
    approval: ApprovalConfig = ApprovalConfig()
    listing: ListingConfig = ListingConfig()
    notify: NotifyConfig = NotifyConfig()
    llm: LLMConfig = LLMConfig()
    remote_sync_url: Optional[str] = None
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False

    @classmethod
    def from_env(cls) -> "StampFlowConfig":
        """Loads configuration from environment variables."""
        return cls(
            editor=EditorConfig(
                undo_capacity=int(_env("STAMPFLOW_UNDO_CAPACITY", "50")),
                max_rows=int(_env("STAMPFLOW_MAX_ROWS", "300")),
            ),
            approval=ApprovalConfig(
                domestic_location=_env("STAMPFLOW_DOMESTIC_LOCATION", "SEOUL").strip().upper(),
                internal_recipient=_env("STAMPFLOW_INTERNAL_RECIPIENT", "AJIN").strip().upper(),
                default_vat_rate=float(_env("STAMPFLOW_DEFAULT_VAT_RATE", "10")),
            ),
            listing=ListingConfig(
                page_size=int(_env("STAMPFLOW_PAGE_SIZE", "10")),
                suggestion_limit=int(_env("STAMPFLOW_SUGGESTION_LIMIT", "10")),
            ),
            notify=NotifyConfig(
                webhook_url_kr=_env_optional("STAMPFLOW_WEBHOOK_URL_KR"),
                webhook_url_vn=_env_optional("STAMPFLOW_WEBHOOK_URL_VN"),
                webhook_secret=_env_optional("STAMPFLOW_WEBHOOK_SECRET"),
            ),
            llm=LLMConfig(
                translation_model=_env("STAMPFLOW_TRANSLATION_MODEL", "gpt-4o-mini"),
                temperature=float(_env("STAMPFLOW_TRANSLATION_TEMPERATURE", "0.1")),
            ),
            remote_sync_url=_env_optional("STAMPFLOW_REMOTE_SYNC_URL"),
            api_host=_env("STAMPFLOW_API_HOST", "0.0.0.0"),
            api_port=int(_env("STAMPFLOW_API_PORT", "8000")),
            debug=_env("STAMPFLOW_DEBUG", "false").lower() == "true",
        )

config = StampFlowConfig.from_env()
