"""
Contact form router.

Exposes the single business endpoint the website calls:

  OPTIONS /submit   CORS preflight, empty 200
  POST    /submit   send a contact submission to the practitioner

Every other method on /submit is answered by the handler with a 405 that
still carries the CORS headers, which is why the route accepts them all
instead of letting FastAPI reject them. Unexpected failures (misconfigured
provider, missing Supabase credentials) become the generic 500 message,
also with CORS headers, so the browser can read it.

All gating logic lives in services.contact_handler; this module only adapts
HTTP in and out and wires the collaborators.
"""

import logging
from functools import lru_cache

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from consultoria.config import Settings, get_settings
from consultoria.db import get_supabase_admin
from consultoria.errors import DeliveryFailed
from consultoria.services.contact_handler import ContactSubmissionHandler
from consultoria.services.email_sender import build_email_sender
from consultoria.services.origin_policy import cors_headers
from consultoria.services.rate_limit_store import SupabaseRateLimitStore

logger = logging.getLogger(__name__)

router = APIRouter()

_ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@lru_cache()
def get_contact_handler() -> ContactSubmissionHandler:
    """Build the process-wide handler from environment settings."""
    settings = get_settings()
    return ContactSubmissionHandler(
        settings=settings,
        sender=build_email_sender(settings),
        store=SupabaseRateLimitStore(get_supabase_admin()),
    )


def get_client_ip(request: Request) -> str:
    """
    Source IP for rate limiting, taken from proxy headers.

    Uses the first entry of X-Forwarded-For (the original client), then
    X-Real-IP. Returns "unknown" when neither is present; all such callers
    share one rate-limit bucket.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return "unknown"


@router.api_route("/submit", methods=_ROUTE_METHODS)
async def submit_contact_form(
    request: Request,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
):
    """
    Email a contact-form submission to the practitioner.

    Body: {"name", "email", "phone"?, "message", "date"?}
    Returns {"success": true} or {"error": <message>} with 400/403/405/429/500.
    """
    origin = request.headers.get("Origin")
    headers = cors_headers(origin, settings)

    # Preflight never depends on the store or the email provider.
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=headers)

    try:
        handler = get_contact_handler()
        body = await request.body() if request.method == "POST" else b""
        # The handler does blocking network I/O (Supabase, email provider).
        outcome = await run_in_threadpool(
            handler.submit,
            method=request.method,
            origin=origin,
            source_ip=get_client_ip(request),
            body=body,
        )
    except Exception as e:
        logger.error(f"Contact submission failed unexpectedly: {e}", exc_info=True)
        return JSONResponse(
            content={"error": DeliveryFailed.message},
            status_code=DeliveryFailed.status_code,
            headers=headers,
        )

    if outcome.purge_requested:
        background_tasks.add_task(handler.purge_stale_records)

    if outcome.body is None:
        return Response(status_code=outcome.status_code, headers=outcome.headers)

    return JSONResponse(
        content=outcome.body,
        status_code=outcome.status_code,
        headers=outcome.headers,
    )
