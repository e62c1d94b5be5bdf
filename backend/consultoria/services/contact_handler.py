"""
Contact submission handler.

Runs one contact-form submission through a fixed sequence of gates, each an
early exit:

  1. method gate        OPTIONS -> empty 200, anything but POST -> 405
  2. origin gate        not allow-listed -> 403 (before any store access)
  3. rate-limit check   >= max accepted submissions in window -> 429
                        (store errors fail open)
  4. field validation   first failing field -> 400
  5. sanitize           trim + HTML-escape
  6. render & send      delivery failure -> 500 with a generic message
  7. record attempt     insert failure is logged only
  8. purge              with a small probability, flagged on the outcome so
                        the route can run it after responding
  9. 200 {"success": true}

The handler is HTTP-framework agnostic: it takes the method, the declared
Origin, the source IP and the raw body, and returns a SubmissionOutcome. It
holds no mutable state, so one instance serves concurrent requests.
"""

import json
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel

from consultoria.config import Settings
from consultoria.errors import (
    DeliveryFailed,
    MethodNotAllowed,
    RateLimited,
    StoreUnavailable,
    SubmissionError,
    UnauthorizedOrigin,
    ValidationFailed,
)
from consultoria.models.contact import SanitizedSubmission
from consultoria.services.email_sender import EmailSender, OutgoingEmail
from consultoria.services.email_template import render_consultation_email
from consultoria.services.origin_policy import cors_headers, is_allowed_origin
from consultoria.services.rate_limit_store import RateLimitStore
from consultoria.services.sanitizer import MSG_INVALID_BODY, validate_submission

logger = logging.getLogger(__name__)


class SubmissionOutcome(BaseModel):
    """What to send back to the caller, plus whether a purge is due."""

    status_code: int
    body: Optional[dict[str, Any]] = None
    headers: dict[str, str] = {}
    purge_requested: bool = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContactSubmissionHandler:
    def __init__(
        self,
        settings: Settings,
        sender: EmailSender,
        store: RateLimitStore,
        clock: Callable[[], datetime] = _utcnow,
        random_source: Callable[[], float] = random.random,
    ):
        self.settings = settings
        self.sender = sender
        self.store = store
        self._clock = clock
        self._random = random_source

    @property
    def window(self) -> timedelta:
        return timedelta(minutes=self.settings.rate_limit_window_minutes)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def submit(
        self,
        method: str,
        origin: Optional[str],
        source_ip: str,
        body: bytes,
    ) -> SubmissionOutcome:
        headers = cors_headers(origin, self.settings)
        method = method.upper()

        if method == "OPTIONS":
            return SubmissionOutcome(status_code=200, headers=headers)

        try:
            purge_requested = self._process(method, origin, source_ip, body)
        except SubmissionError as e:
            return SubmissionOutcome(
                status_code=e.status_code,
                body={"error": e.message},
                headers=headers,
            )

        return SubmissionOutcome(
            status_code=200,
            body={"success": True},
            headers=headers,
            purge_requested=purge_requested,
        )

    def purge_stale_records(self) -> None:
        """Delete rate-limit rows older than the window. Failures are logged only."""
        try:
            self.store.purge_older_than(self.window)
        except StoreUnavailable as e:
            logger.warning(f"Rate limit cleanup failed: {e}")

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def _process(self, method: str, origin: Optional[str], source_ip: str, body: bytes) -> bool:
        if method != "POST":
            raise MethodNotAllowed()

        if not is_allowed_origin(origin, self.settings):
            logger.warning(f"Rejected contact submission from unauthorized origin {origin!r} (ip={source_ip})")
            raise UnauthorizedOrigin()

        self._check_rate_limit(source_ip)

        submission = validate_submission(self._decode_body(body))

        self._send(submission, source_ip)

        try:
            self.store.insert(source_ip)
        except StoreUnavailable as e:
            logger.error(f"Email sent but rate limit record was not stored: {e}")

        return self._random() < self.settings.rate_limit_purge_probability

    def _check_rate_limit(self, source_ip: str) -> None:
        window_start = self._clock() - self.window
        try:
            count = self.store.count_since(source_ip, window_start)
        except StoreUnavailable as e:
            # Fail open.
            logger.error(f"Rate limit check failed, allowing request: {e}")
            return

        if count >= self.settings.rate_limit_max_requests:
            logger.warning(
                f"Rate limit exceeded for ip={source_ip}: {count} submissions "
                f"in the last {self.settings.rate_limit_window_minutes} minutes"
            )
            raise RateLimited()

    @staticmethod
    def _decode_body(body: bytes) -> Any:
        try:
            return json.loads(body)
        except (ValueError, UnicodeDecodeError):
            raise ValidationFailed("body", MSG_INVALID_BODY)

    def _send(self, submission: SanitizedSubmission, source_ip: str) -> None:
        recipient = self.settings.contact_recipient_email
        if not recipient:
            logger.error("CONTACT_RECIPIENT_EMAIL is not configured; cannot deliver contact submission")
            raise DeliveryFailed()

        email = OutgoingEmail(
            from_address=self.settings.email_from,
            to=[recipient],
            subject=self.settings.email_subject,
            html=render_consultation_email(submission),
            reply_to=submission.reply_to,
        )
        try:
            receipt = self.sender.send(email)
        except Exception as e:
            logger.error(f"Failed to send contact form email (ip={source_ip}): {e}", exc_info=True)
            raise DeliveryFailed()

        logger.info(
            f"Contact form email sent via {receipt.provider} "
            f"(id={receipt.message_id}, ip={source_ip})"
        )
