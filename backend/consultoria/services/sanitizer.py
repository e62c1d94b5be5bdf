"""
Input validation and HTML escaping for contact submissions.

Public API:
  escape_html(text) -> str
  is_valid_email(text) -> bool
  is_valid_phone(text) -> bool
  validate_submission(payload) -> SanitizedSubmission

Checks run in a fixed order and the first failure wins, so the same bad
payload always produces the same message: name, email, message, phone.
"""

import re
from typing import Any

from consultoria.errors import ValidationFailed
from consultoria.models.contact import SanitizedSubmission

MAX_NAME_LENGTH = 100
MAX_MESSAGE_LENGTH = 2000
MAX_PHONE_LENGTH = 20

_HTML_ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
}
_HTML_SPECIAL_RE = re.compile(r"[&<>\"']")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Digits, whitespace, hyphen, parentheses and plus sign
_PHONE_RE = re.compile(r"^[\d\s\-()+]+$")

# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

MSG_INVALID_BODY = "Solicitud inválida."
MSG_INVALID_NAME = "Por favor, ingrese un nombre válido."
MSG_NAME_TOO_LONG = f"El nombre es demasiado largo (máximo {MAX_NAME_LENGTH} caracteres)."
MSG_INVALID_EMAIL = "Por favor, ingrese un correo electrónico válido."
MSG_INVALID_MESSAGE = "Por favor, ingrese un mensaje."
MSG_MESSAGE_TOO_LONG = f"El mensaje es demasiado largo (máximo {MAX_MESSAGE_LENGTH} caracteres)."
MSG_INVALID_PHONE = "Por favor, ingrese un número de teléfono válido."
MSG_INVALID_DATE = "Por favor, seleccione una fecha válida."


def escape_html(text: str) -> str:
    """Escape the five HTML-special characters (& < > \" ')."""
    return _HTML_SPECIAL_RE.sub(lambda m: _HTML_ENTITIES[m.group(0)], text)


def is_valid_email(text: str) -> bool:
    return bool(_EMAIL_RE.fullmatch(text))


def is_valid_phone(text: str) -> bool:
    return len(text) <= MAX_PHONE_LENGTH and bool(_PHONE_RE.fullmatch(text))


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _optional_value(payload: dict, key: str) -> Any:
    """Return the raw value of an optional field, or None when not provided."""
    value = payload.get(key)
    if _is_blank(value):
        return None
    return value


def validate_submission(payload: Any) -> SanitizedSubmission:
    """
    Validate a decoded JSON payload and return the sanitized submission.

    Args:
        payload: Whatever json.loads produced for the request body.

    Returns:
        SanitizedSubmission with every text field trimmed and HTML-escaped.

    Raises:
        ValidationFailed: for the first field that fails, with a user-safe reason.
    """
    if not isinstance(payload, dict):
        raise ValidationFailed("body", MSG_INVALID_BODY)

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationFailed("name", MSG_INVALID_NAME)
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationFailed("name", MSG_NAME_TOO_LONG)

    email = payload.get("email")
    if not isinstance(email, str) or not is_valid_email(email):
        raise ValidationFailed("email", MSG_INVALID_EMAIL)

    message = payload.get("message")
    if not isinstance(message, str) or not message.strip():
        raise ValidationFailed("message", MSG_INVALID_MESSAGE)
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationFailed("message", MSG_MESSAGE_TOO_LONG)

    phone = _optional_value(payload, "phone")
    if phone is not None and (not isinstance(phone, str) or not is_valid_phone(phone)):
        raise ValidationFailed("phone", MSG_INVALID_PHONE)

    # The site formats the date label itself; only its type is checked here.
    preferred_date = _optional_value(payload, "date")
    if preferred_date is not None and not isinstance(preferred_date, str):
        raise ValidationFailed("date", MSG_INVALID_DATE)

    return SanitizedSubmission(
        name=escape_html(name.strip()),
        email=escape_html(email.strip()),
        message=escape_html(message.strip()),
        phone=escape_html(phone.strip()) if phone else None,
        preferred_date=escape_html(preferred_date.strip()) if preferred_date else None,
        reply_to=email.strip(),
    )
