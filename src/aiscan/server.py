"""FastAPI application factory for the streaming scan endpoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from aiscan.delivery.sender import ReportSender, is_valid_email
from aiscan.errors import InvalidURLError
from aiscan.orchestrator.scanner import Scanner, validate_target_url
from aiscan.orchestrator.wire import NDJSON_MEDIA_TYPE, encode_stream
from aiscan.schemas.config import ScannerConfig
from aiscan.schemas.scan import ScanResult
from aiscan.shared.llm_client import LLMClient, ReasoningClient
from aiscan.shared.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

_STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}


def client_ip(request: Request) -> str:
    """Best-effort caller address: proxy headers first, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": error, **extra}, status_code=status_code)


def _requested_pages(value: Any, ceiling: int) -> int | None:
    """Caller page count, capped at ``ceiling``; None (use the default) if not a positive int."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return min(value, ceiling)


async def _json_body(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def create_app(
    config: ScannerConfig | None = None,
    client: ReasoningClient | None = None,
    sender: ReportSender | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the app. ``client`` defaults to an OpenAI-backed LLMClient."""
    config = config or ScannerConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Scanner API starting up")
        yield
        logger.info("Scanner API shutting down")

    app = FastAPI(
        title="AI Opportunity Scanner",
        description="Analyse a business website for AI adoption opportunities",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    scanner = Scanner(client or LLMClient(), config, transport=transport)
    limiter = RateLimiter(config.rate_limit.max_requests, config.rate_limit.window_seconds)
    app.state.scanner = scanner
    app.state.limiter = limiter

    def get_sender() -> ReportSender:
        return sender or ReportSender.from_env(config.delivery)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/scan")
    async def scan(request: Request):
        body = await _json_body(request)
        if body is None:
            return _error(400, "Invalid request body")

        url = body.get("url")
        if not url or not isinstance(url, str):
            return _error(400, "Missing url parameter")
        try:
            validate_target_url(url)
        except InvalidURLError:
            return _error(400, "Invalid URL format")

        ip = client_ip(request)
        limit = limiter.check(ip)
        if not limit.success:
            logger.info("Rate limit exceeded for %s", ip)
            return _error(
                429,
                "Rate limit exceeded",
                message="Please wait a moment before scanning another website.",
            )

        max_pages = _requested_pages(body.get("maxPages"), config.max_pages)
        logger.info("Scan requested for %s by %s", url, ip)
        return StreamingResponse(
            encode_stream(scanner.scan(url, max_pages)),
            media_type=NDJSON_MEDIA_TYPE,
            headers=_STREAM_HEADERS,
        )

    @app.post("/api/scan/report")
    async def send_report(request: Request):
        body = await _json_body(request)
        if body is None:
            return _error(400, "Invalid request body")

        email = body.get("email")
        if not isinstance(email, str) or not is_valid_email(email):
            return _error(400, "Please enter a valid email address.")
        try:
            result = ScanResult.model_validate(body.get("result"))
        except ValidationError:
            return _error(400, "Missing or invalid scan result")

        name = body.get("name") if isinstance(body.get("name"), str) else None
        outcome = await get_sender().send_scan_report(result, email, name)
        if not outcome.success:
            return _error(502, outcome.error)
        return {"success": True, "message": outcome.message}

    return app
