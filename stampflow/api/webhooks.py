from __future__ import annotations

import hashlib
import hmac
import json
import logging
import os
import time
from enum import Enum
from typing import Optional

import httpx
from pydantic import BaseModel

from stampflow.core.config import config

logger = logging.getLogger(__name__)

JANDI_ACCEPT = "application/vnd.tosslab.jandi-v2+json"
SIGNATURE_HEADER = "X-StampFlow-Signature"


class NotificationKind(str, Enum):
    REQUEST = "REQUEST"
    COMPLETE = "COMPLETE"
    REJECT = "REJECT"


class NotificationEvent(BaseModel):
    category: str
    subcategory: str
    recipient_hint: str = ""
    title: str
    next_approver_initials: Optional[str] = None
    status: NotificationKind
    region: str = "KR"


def _env_number(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class RetryPolicy(BaseModel):
    """Delivery attempts and exponential backoff, read from the environment per send."""

    max_attempts: int = 3
    timeout_s: float = 5.0
    backoff_base_s: float = 0.25
    backoff_max_s: float = 2.0

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, int(_env_number("STAMPFLOW_WEBHOOK_MAX_ATTEMPTS", 3))),
            timeout_s=max(0.1, _env_number("STAMPFLOW_WEBHOOK_TIMEOUT_S", 5.0)),
            backoff_base_s=max(0.0, _env_number("STAMPFLOW_WEBHOOK_BACKOFF_BASE_MS", 250)) / 1000.0,
            backoff_max_s=max(0.0, _env_number("STAMPFLOW_WEBHOOK_BACKOFF_MAX_MS", 2000)) / 1000.0,
        )

    @staticmethod
    def retryable(status_code: int) -> bool:
        return status_code in (408, 429) or 500 <= status_code <= 599

    def delay_after(self, failures: int) -> float:
        if self.backoff_base_s <= 0:
            return 0.0
        return min(self.backoff_base_s * 2 ** max(0, failures - 1), self.backoff_max_s)

    def wait(self, failures: int) -> None:
        delay_s = self.delay_after(failures)
        if delay_s > 0:
            time.sleep(delay_s)


def sign_body(secret: str, body: bytes) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def format_message(event: NotificationEvent) -> str:
    who = event.next_approver_initials or event.recipient_hint
    if event.status == NotificationKind.REQUEST:
        return f"[{event.title}] / 다음 결재자: {who} / 결재 요청드립니다."
    if event.status == NotificationKind.COMPLETE:
        return f"[{event.title}] 결재 완료 / 작성자({who}) 확인 부탁드립니다."
    return f"[{event.title}] 반송 처리됨 / 작성자({who}) 사유 확인 후 수정 바랍니다."


def send_chat_webhook(
    *,
    url: str,
    secret: Optional[str],
    event: NotificationEvent,
    policy: Optional[RetryPolicy] = None,
) -> None:
    """Posts one chat message, retrying timeouts, 429 and 5xx with exponential backoff."""
    policy = policy or RetryPolicy.from_env()
    body = json.dumps({"body": format_message(event)}, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "Accept": JANDI_ACCEPT,
        "User-Agent": "StampFlow-Webhook/1.0",
    }
    if secret:
        headers[SIGNATURE_HEADER] = sign_body(secret, body)

    label = f"{event.status.value} {event.category}/{event.subcategory} region={event.region}"
    attempts = policy.max_attempts
    for attempt in range(1, attempts + 1):
        last = attempt == attempts
        try:
            response = httpx.post(url, content=body, headers=headers, timeout=policy.timeout_s)
        except httpx.RequestError as exc:
            logger.warning(
                "Webhook delivery failed (event=%s attempt=%s/%s): %s; %s",
                label,
                attempt,
                attempts,
                exc,
                "giving up" if last else "retrying",
            )
            if last:
                raise
            policy.wait(attempt)
            continue

        if response.is_success:
            logger.info("Webhook delivery succeeded (event=%s attempt=%s code=%s)", label, attempt, response.status_code)
            return
        retry = policy.retryable(response.status_code) and not last
        logger.warning(
            "Webhook delivery returned HTTP %s (event=%s attempt=%s/%s); %s",
            response.status_code,
            label,
            attempt,
            attempts,
            "retrying" if retry else "giving up",
        )
        if not retry:
            response.raise_for_status()
            return
        policy.wait(attempt)


class WebhookNotificationSink:
    """Routes approval notifications to the KR or VN chat webhook. Never raises."""

    def __init__(
        self,
        url_kr: Optional[str] = None,
        url_vn: Optional[str] = None,
        secret: Optional[str] = None,
    ) -> None:
        self.url_kr = url_kr if url_kr is not None else config.notify.webhook_url_kr
        self.url_vn = url_vn if url_vn is not None else config.notify.webhook_url_vn
        self.secret = secret if secret is not None else config.notify.webhook_secret

    def url_for(self, region: str) -> Optional[str]:
        return self.url_kr if region.upper() == "KR" else self.url_vn

    def notify(self, event: NotificationEvent) -> bool:
        url = self.url_for(event.region)
        if not url:
            logger.info("No webhook configured for region %s; skipping %s notification", event.region, event.status.value)
            return False
        try:
            send_chat_webhook(url=url, secret=self.secret, event=event)
        except httpx.HTTPError as exc:
            logger.warning("Notification for '%s' was not delivered: %s", event.title, exc)
            return False
        return True
