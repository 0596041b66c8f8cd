"""FastAPI webhook gateway for GitHub issue events."""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from issuefix.config import Config
from issuefix.errors import AuthenticationError, InvalidPayloadError
from issuefix.graph import run_pipeline
from issuefix.models import IssueEvent, PipelineResult
from issuefix.utils.logger import log_error, log_info, log_warning

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="

PipelineRunner = Callable[[IssueEvent, Config], PipelineResult]


def compute_signature(body: bytes, secret: str) -> str:
    return SIGNATURE_PREFIX + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """Constant-time check of ``sha256=<hex>`` against the body's HMAC."""
    if not body or not signature or not secret:
        return False
    if not signature.startswith(SIGNATURE_PREFIX):
        return False
    # Compared as bytes: a non-ASCII header is a mismatch.
    expected = compute_signature(body, secret).encode("ascii")
    return hmac.compare_digest(expected, signature.encode("utf-8", "replace"))


def authenticate(body: bytes, signature: Optional[str], secret: str) -> None:
    if not verify_signature(body, signature, secret):
        raise AuthenticationError("Invalid signature")


def create_app(config: Config, runner: PipelineRunner = run_pipeline) -> FastAPI:
    app = FastAPI(title="issuefix webhook", description="Turns GitHub issues into pull requests")

    async def handle_webhook(request: Request) -> JSONResponse:
        body = await request.body()
        try:
            authenticate(body, request.headers.get(SIGNATURE_HEADER), config.github_webhook_secret)
        except AuthenticationError as e:
            log_warning("Rejected webhook", reason=str(e), client=request.client.host if request.client else None)
            return JSONResponse(status_code=401, content={"error": str(e)})

        try:
            issue = IssueEvent.from_payload(json.loads(body))
        except (ValueError, InvalidPayloadError) as e:
            log_info("Ignoring webhook payload", event=request.headers.get("X-GitHub-Event"), reason=str(e))
            return JSONResponse(status_code=200, content={"status": "ignored"})

        log_info("Webhook accepted", repo=issue.full_name, issue=issue.number)
        try:
            result = await run_in_threadpool(runner, issue, config)
        except Exception as e:
            log_error("Pipeline crashed", repo=issue.full_name, issue=issue.number, error_type=type(e).__name__, error=str(e))
        else:
            if result.error is not None:
                log_error(
                    "Issue not resolved",
                    repo=issue.full_name,
                    issue=issue.number,
                    stage=result.failed_stage,
                    error=str(result.error),
                )
        return JSONResponse(status_code=200, content={"status": "Webhook processed"})

    app.add_api_route("/webhook", handle_webhook, methods=["POST"])
    app.add_api_route("/", handle_webhook, methods=["POST"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app
