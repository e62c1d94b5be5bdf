"""
Unit tests for ContactSubmissionHandler.

The email sender and rate-limit store are mocked; no network or database
access. Covers every gate in order: method, origin, rate limit, validation,
send, record, purge.
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from consultoria.config import Settings
from consultoria.errors import StoreUnavailable
from consultoria.services.contact_handler import ContactSubmissionHandler
from consultoria.services.email_sender import DeliveryError, DeliveryReceipt

SITE_ORIGIN = "https://consultoria-legal.example"
RECIPIENT = "abogada@example.com"
CLIENT_IP = "203.0.113.7"
FIXED_NOW = datetime(2026, 3, 2, 15, 30, tzinfo=timezone.utc)

GENERIC_SEND_ERROR = "No se pudo enviar el mensaje. Por favor, inténtelo de nuevo más tarde."


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_settings(**overrides) -> Settings:
    values = {
        "allowed_origins": ("http://localhost:8080", SITE_ORIGIN),
        "allowed_origin_suffix": ".lovable.app",
        "default_allowed_origin": SITE_ORIGIN,
        "contact_recipient_email": RECIPIENT,
    }
    values.update(overrides)
    return Settings(**values)


def _make_handler(count: int = 0, settings: Settings | None = None, random_value: float = 0.5):
    """Return (handler, sender, store) with mocked collaborators."""
    sender = Mock()
    sender.send.return_value = DeliveryReceipt(provider="resend", message_id="msg-1")
    store = Mock()
    store.count_since.return_value = count
    handler = ContactSubmissionHandler(
        settings=settings or _make_settings(),
        sender=sender,
        store=store,
        clock=lambda: FIXED_NOW,
        random_source=lambda: random_value,
    )
    return handler, sender, store


def _body(**fields) -> bytes:
    payload = {
        "name": "Ana",
        "email": "ana@example.com",
        "message": "Consulta laboral",
    }
    payload.update(fields)
    return json.dumps({k: v for k, v in payload.items() if v is not ...}).encode()


def _post(handler, body: bytes | None = None, origin: str | None = SITE_ORIGIN, ip: str = CLIENT_IP):
    return handler.submit(
        method="POST",
        origin=origin,
        source_ip=ip,
        body=_body() if body is None else body,
    )


class _InMemoryStore:
    """Minimal stateful store for multi-request scenarios."""

    def __init__(self):
        self.rows: list[tuple[str, datetime]] = []

    def count_since(self, ip_address, since):
        return sum(1 for ip, created in self.rows if ip == ip_address and created >= since)

    def insert(self, ip_address):
        self.rows.append((ip_address, FIXED_NOW))

    def purge_older_than(self, window):
        cutoff = FIXED_NOW - window
        self.rows = [row for row in self.rows if row[1] >= cutoff]


# ===========================================================================
# Method gate
# ===========================================================================

class TestMethodGate:

    def test_options_returns_empty_200_with_cors_headers(self):
        handler, sender, store = _make_handler()

        outcome = handler.submit("OPTIONS", SITE_ORIGIN, CLIENT_IP, b"")

        assert outcome.status_code == 200
        assert outcome.body is None
        assert outcome.headers["Access-Control-Allow-Origin"] == SITE_ORIGIN
        assert outcome.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
        assert "content-type" in outcome.headers["Access-Control-Allow-Headers"]
        store.count_since.assert_not_called()
        sender.send.assert_not_called()

    def test_options_from_unknown_origin_gets_fallback_origin(self):
        handler, _, store = _make_handler()

        outcome = handler.submit("OPTIONS", "https://evil.example", CLIENT_IP, b"")

        assert outcome.status_code == 200
        assert outcome.headers["Access-Control-Allow-Origin"] == SITE_ORIGIN
        store.count_since.assert_not_called()

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH"])
    def test_other_methods_are_rejected_with_405(self, method):
        handler, sender, store = _make_handler()

        outcome = handler.submit(method, SITE_ORIGIN, CLIENT_IP, _body())

        assert outcome.status_code == 405
        assert outcome.body == {"error": "Método no permitido."}
        assert outcome.headers["Access-Control-Allow-Origin"] == SITE_ORIGIN
        store.count_since.assert_not_called()
        sender.send.assert_not_called()

    def test_method_is_case_insensitive(self):
        handler, _, _ = _make_handler()

        outcome = handler.submit("post", SITE_ORIGIN, CLIENT_IP, _body())

        assert outcome.status_code == 200


# ===========================================================================
# Origin gate
# ===========================================================================

class TestOriginGate:

    @pytest.mark.parametrize("origin", [
        None,
        "",
        "https://evil.example",
        "http://preview-123.lovable.app",          # suffix match requires https
        "https://lovable.app.evil.example",
        "https://evillovable.app",
    ])
    def test_unauthorized_origin_rejected_before_store_or_validation(self, origin):
        handler, sender, store = _make_handler()

        # Body is invalid too: the origin error must win.
        outcome = _post(handler, body=b"not json", origin=origin)

        assert outcome.status_code == 403
        assert outcome.body == {"error": "Origen no autorizado."}
        assert outcome.headers["Access-Control-Allow-Origin"] == SITE_ORIGIN
        store.count_since.assert_not_called()
        store.insert.assert_not_called()
        sender.send.assert_not_called()

    def test_allow_listed_origin_is_echoed(self):
        handler, _, _ = _make_handler()

        outcome = _post(handler, origin="http://localhost:8080")

        assert outcome.status_code == 200
        assert outcome.headers["Access-Control-Allow-Origin"] == "http://localhost:8080"

    def test_wildcard_suffix_origin_is_accepted_and_echoed(self):
        handler, _, _ = _make_handler()
        origin = "https://id-preview--abc123.lovable.app"

        outcome = _post(handler, origin=origin)

        assert outcome.status_code == 200
        assert outcome.headers["Access-Control-Allow-Origin"] == origin

    def test_suffix_matching_disabled_when_not_configured(self):
        handler, _, _ = _make_handler(settings=_make_settings(allowed_origin_suffix=None))

        outcome = _post(handler, origin="https://preview.lovable.app")

        assert outcome.status_code == 403


# ===========================================================================
# Rate limit
# ===========================================================================

class TestRateLimit:

    def test_count_uses_window_start(self):
        handler, _, store = _make_handler()

        _post(handler)

        store.count_since.assert_called_once_with(CLIENT_IP, FIXED_NOW - timedelta(minutes=60))

    def test_at_max_is_rate_limited_without_send_or_insert(self):
        handler, sender, store = _make_handler(count=5)

        outcome = _post(handler)

        assert outcome.status_code == 429
        assert "Demasiadas solicitudes" in outcome.body["error"]
        sender.send.assert_not_called()
        store.insert.assert_not_called()

    def test_below_max_is_admitted(self):
        handler, sender, _ = _make_handler(count=4)

        outcome = _post(handler)

        assert outcome.status_code == 200
        sender.send.assert_called_once()

    def test_custom_limits_are_honoured(self):
        settings = _make_settings(rate_limit_max_requests=2, rate_limit_window_minutes=10)
        handler, _, store = _make_handler(count=2, settings=settings)

        outcome = _post(handler)

        assert outcome.status_code == 429
        store.count_since.assert_called_once_with(CLIENT_IP, FIXED_NOW - timedelta(minutes=10))

    def test_count_failure_fails_open(self):
        handler, sender, store = _make_handler()
        store.count_since.side_effect = StoreUnavailable("connection refused")

        outcome = _post(handler)

        assert outcome.status_code == 200
        sender.send.assert_called_once()
        store.insert.assert_called_once_with(CLIENT_IP)

    def test_sixth_request_in_window_is_rate_limited(self):
        sender = Mock()
        sender.send.return_value = DeliveryReceipt(provider="resend")
        store = _InMemoryStore()
        handler = ContactSubmissionHandler(
            settings=_make_settings(),
            sender=sender,
            store=store,
            clock=lambda: FIXED_NOW,
            random_source=lambda: 0.5,
        )

        statuses = [_post(handler).status_code for _ in range(6)]

        assert statuses == [200, 200, 200, 200, 200, 429]
        assert sender.send.call_count == 5
        assert len(store.rows) == 5

    def test_limit_is_per_ip(self):
        sender = Mock()
        sender.send.return_value = DeliveryReceipt(provider="resend")
        store = _InMemoryStore()
        handler = ContactSubmissionHandler(
            settings=_make_settings(rate_limit_max_requests=1),
            sender=sender,
            store=store,
            clock=lambda: FIXED_NOW,
            random_source=lambda: 0.5,
        )

        assert _post(handler, ip="198.51.100.1").status_code == 200
        assert _post(handler, ip="198.51.100.1").status_code == 429
        assert _post(handler, ip="198.51.100.2").status_code == 200


# ===========================================================================
# Validation
# ===========================================================================

class TestValidation:

    @pytest.mark.parametrize("body, expected_error", [
        (_body(name=...), "Por favor, ingrese un nombre válido."),
        (_body(name=""), "Por favor, ingrese un nombre válido."),
        (_body(name="   "), "Por favor, ingrese un nombre válido."),
        (_body(name=42), "Por favor, ingrese un nombre válido."),
        (_body(name="x" * 101), "El nombre es demasiado largo (máximo 100 caracteres)."),
        (_body(email=...), "Por favor, ingrese un correo electrónico válido."),
        (_body(email="ana@example"), "Por favor, ingrese un correo electrónico válido."),
        (_body(email="ana example.com"), "Por favor, ingrese un correo electrónico válido."),
        (_body(message=...), "Por favor, ingrese un mensaje."),
        (_body(message="  \n "), "Por favor, ingrese un mensaje."),
        (_body(message="x" * 2001), "El mensaje es demasiado largo (máximo 2000 caracteres)."),
        (_body(phone="call me maybe"), "Por favor, ingrese un número de teléfono válido."),
        (_body(phone="1" * 21), "Por favor, ingrese un número de teléfono válido."),
        (b"not json", "Solicitud inválida."),
        (b"", "Solicitud inválida."),
        (b'["Ana"]', "Solicitud inválida."),
    ])
    def test_invalid_fields_rejected_without_side_effects(self, body, expected_error):
        handler, sender, store = _make_handler()

        outcome = _post(handler, body=body)

        assert outcome.status_code == 400
        assert outcome.body == {"error": expected_error}
        sender.send.assert_not_called()
        store.insert.assert_not_called()
        store.purge_older_than.assert_not_called()

    def test_empty_name_scenario(self):
        handler, sender, store = _make_handler()

        outcome = _post(handler, body=json.dumps({"name": "", "email": "a@b.com", "message": "hi"}).encode())

        assert outcome.status_code == 400
        assert "nombre" in outcome.body["error"]
        sender.send.assert_not_called()
        store.insert.assert_not_called()

    def test_first_failing_field_wins(self):
        handler, _, _ = _make_handler()

        outcome = _post(handler, body=_body(name="", email="bad", message=""))

        assert outcome.body == {"error": "Por favor, ingrese un nombre válido."}

    def test_empty_optional_fields_are_accepted(self):
        handler, sender, _ = _make_handler()

        outcome = _post(handler, body=_body(phone="", date=""))

        assert outcome.status_code == 200
        html = sender.send.call_args[0][0].html
        assert "Teléfono" not in html
        assert "Fecha preferida" not in html


# ===========================================================================
# Send and record
# ===========================================================================

class TestSendAndRecord:

    def test_minimal_submission_sends_and_records_once(self):
        handler, sender, store = _make_handler(count=0)

        outcome = _post(handler)

        assert outcome.status_code == 200
        assert outcome.body == {"success": True}
        store.insert.assert_called_once_with(CLIENT_IP)

        email = sender.send.call_args[0][0]
        assert email.to == [RECIPIENT]
        assert email.subject == "Nueva solicitud de consultoría"
        assert email.from_address == "Consultoría Legal <no-reply@resend.dev>"
        assert email.reply_to == "ana@example.com"
        assert "Ana" in email.html
        assert "Consulta laboral" in email.html
        assert "Teléfono" not in email.html
        assert "Fecha preferida" not in email.html

    def test_optional_fields_are_rendered(self):
        handler, sender, _ = _make_handler()

        _post(handler, body=_body(phone="+34 (600) 123-456", date="lunes, 3 de marzo"))

        html = sender.send.call_args[0][0].html
        assert 'href="tel:+34 (600) 123-456"' in html
        assert "lunes, 3 de marzo" in html

    def test_send_failure_returns_generic_error_and_records_nothing(self):
        handler, sender, store = _make_handler()
        sender.send.side_effect = DeliveryError("Resend rejected the email: invalid API key re_123")

        outcome = _post(handler)

        assert outcome.status_code == 500
        assert outcome.body == {"error": GENERIC_SEND_ERROR}
        assert "re_123" not in json.dumps(outcome.body)
        store.insert.assert_not_called()
        assert outcome.purge_requested is False

    def test_unexpected_sender_exception_is_a_delivery_failure(self):
        handler, sender, store = _make_handler()
        sender.send.side_effect = RuntimeError("boom")

        outcome = _post(handler)

        assert outcome.status_code == 500
        assert outcome.body == {"error": GENERIC_SEND_ERROR}
        store.insert.assert_not_called()

    def test_missing_recipient_is_a_delivery_failure(self):
        handler, sender, store = _make_handler(settings=_make_settings(contact_recipient_email=None))

        outcome = _post(handler)

        assert outcome.status_code == 500
        sender.send.assert_not_called()
        store.insert.assert_not_called()

    def test_insert_failure_does_not_fail_request(self):
        handler, sender, store = _make_handler()
        store.insert.side_effect = StoreUnavailable("timeout")

        outcome = _post(handler)

        assert outcome.status_code == 200
        assert outcome.body == {"success": True}
        sender.send.assert_called_once()

    def test_script_tag_is_escaped_in_email(self):
        handler, sender, _ = _make_handler()

        _post(handler, body=_body(name="<b>Ana</b>", message="<script>alert(1)</script>"))

        html = sender.send.call_args[0][0].html
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
        assert "<script>" not in html
        assert "&lt;b&gt;Ana&lt;/b&gt;" in html


# ===========================================================================
# Purge
# ===========================================================================

class TestPurge:

    def test_purge_requested_when_random_below_probability(self):
        handler, _, _ = _make_handler(random_value=0.005)

        outcome = _post(handler)

        assert outcome.purge_requested is True

    def test_purge_not_requested_otherwise(self):
        handler, _, store = _make_handler(random_value=0.5)

        outcome = _post(handler)

        assert outcome.purge_requested is False
        store.purge_older_than.assert_not_called()

    def test_rejected_requests_never_request_purge(self):
        handler, _, _ = _make_handler(count=5, random_value=0.0)

        outcome = _post(handler)

        assert outcome.status_code == 429
        assert outcome.purge_requested is False

    def test_purge_stale_records_uses_window(self):
        handler, _, store = _make_handler()

        handler.purge_stale_records()

        store.purge_older_than.assert_called_once_with(timedelta(minutes=60))

    def test_purge_failure_is_swallowed(self):
        handler, _, store = _make_handler()
        store.purge_older_than.side_effect = StoreUnavailable("permission denied")

        handler.purge_stale_records()

        store.purge_older_than.assert_called_once()

