"""Report delivery: email a finished ScanResult to the user and a lead notification to the team.

Both messages go out concurrently through a Resend-compatible HTTP email
API. Each send is retried on 5xx / 429 with exponential backoff and
carries an idempotency key, so a retried request is never delivered twice.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import random
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from aiscan.schemas.config import DeliverySettings
from aiscan.schemas.scan import ScanResult

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class DeliveryError(Exception):
    """A send failed for good (non-retryable, or retries exhausted)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class DeliveryOutcome:
    success: bool
    message: str = ""
    error: str = ""


def is_valid_email(email: str | None) -> bool:
    return bool(email) and _EMAIL_RE.match(email) is not None


def is_retryable_status(status_code: int | None) -> bool:
    return status_code is not None and (status_code >= 500 or status_code == 429)


def scan_hash(url: str, email: str, *, now: float | None = None) -> str:
    """Stable 16-hex-char digest of ``{url, email, hour bucket}``."""
    hour_bucket = int((time.time() if now is None else now) // 3600)
    payload = json.dumps({"url": url, "email": email, "timestamp": hour_bucket}, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()[:16]


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_user_email(result: ScanResult, recipient_name: str | None = None) -> str:
    template = _environment().get_template("scan_report.html")
    return template.render(result=result, recipient_name=recipient_name)


def render_lead_email(result: ScanResult, email: str, name: str | None = None) -> str:
    template = _environment().get_template("lead_notification.txt")
    return template.render(result=result, email=email, name=name)


class ReportSender:
    """Sends scan reports through an HTTP email API.

    Usage::

        sender = ReportSender.from_env(config.delivery)
        outcome = await sender.send_scan_report(result, "jane@example.com")
    """

    def __init__(
        self,
        api_key: str,
        settings: DeliverySettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.settings = settings or DeliverySettings()
        self._transport = transport

    @classmethod
    def from_env(cls, settings: DeliverySettings | None = None) -> "ReportSender":
        """Build a sender from ``RESEND_API_KEY`` / ``CONTACT_EMAIL`` / ``REPLY_TO_EMAIL``."""
        settings = settings or DeliverySettings()
        overrides: dict[str, Any] = {}
        if contact := os.environ.get("CONTACT_EMAIL"):
            overrides["contact_email"] = contact
        if reply_to := os.environ.get("REPLY_TO_EMAIL"):
            overrides["reply_to"] = reply_to
        if overrides:
            settings = settings.model_copy(update=overrides)
        return cls(os.environ.get("RESEND_API_KEY", ""), settings)

    async def _post(self, http: httpx.AsyncClient, payload: dict[str, Any], idempotency_key: str) -> str:
        resp = await http.post(
            self.settings.api_url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Idempotency-Key": idempotency_key,
            },
        )
        if resp.is_error:
            raise DeliveryError(
                f"Email API returned HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        try:
            return str(resp.json().get("id", ""))
        except (ValueError, AttributeError):
            return ""

    async def send_with_retry(
        self,
        http: httpx.AsyncClient,
        payload: dict[str, Any],
        idempotency_key: str,
    ) -> str:
        """Send one email, retrying only server-side (5xx) and rate-limit (429) failures.

        Returns the provider's message id. Raises DeliveryError when the send
        fails for good.
        """
        attempts = self.settings.max_retries
        for attempt in range(attempts):
            try:
                return await self._post(http, payload, idempotency_key)
            except httpx.HTTPError as exc:
                raise DeliveryError(f"Email API unreachable: {exc}") from exc
            except DeliveryError as exc:
                if not is_retryable_status(exc.status_code) or attempt == attempts - 1:
                    raise
                base = self.settings.base_delay
                delay = min(base * (2 ** attempt), self.settings.max_delay)
                delay += random.uniform(0, base)
                logger.warning(
                    "Email send failed (HTTP %s), retrying in %.1fs (attempt %d/%d) [%s]",
                    exc.status_code, delay, attempt + 1, attempts, idempotency_key,
                )
                await asyncio.sleep(delay)
        raise DeliveryError("Max retries exceeded")

    async def send_scan_report(
        self,
        result: ScanResult,
        email: str,
        name: str | None = None,
    ) -> DeliveryOutcome:
        """Email the report to ``email`` and notify the team.

        A failed user email is reported as an error outcome; a failed team
        notification is only logged.
        """
        if not is_valid_email(email):
            return DeliveryOutcome(success=False, error="Please enter a valid email address.")

        digest = scan_hash(result.url, email)
        user_payload = {
            "from": self.settings.from_address,
            "reply_to": self.settings.reply_to,
            "to": [email],
            "subject": f"Your AI Opportunity Report for {result.business_name}",
            "html": render_user_email(result, name),
        }
        lead_payload = {
            "from": self.settings.lead_from_address,
            "reply_to": email,
            "to": [self.settings.contact_email],
            "subject": f"New Scanner Lead: {result.business_name} ({result.industry})",
            "text": render_lead_email(result, email, name),
        }

        async with httpx.AsyncClient(timeout=30, transport=self._transport) as http:
            user_res, lead_res = await asyncio.gather(
                self.send_with_retry(http, user_payload, f"scan-report-user-{digest}"),
                self.send_with_retry(http, lead_payload, f"scan-report-lead-{digest}"),
                return_exceptions=True,
            )

        if isinstance(lead_res, BaseException):
            logger.error("Error sending lead notification for %s: %s", result.url, lead_res)
        if isinstance(user_res, BaseException):
            logger.error("Error sending report to user for %s: %s", result.url, user_res)
            return DeliveryOutcome(success=False, error="Failed to send report. Please try again.")

        logger.info("Scan report for %s sent (message id %s)", result.url, user_res)
        return DeliveryOutcome(success=True, message="Report sent successfully! Check your inbox.")
