"""
Pydantic models for the contact submission endpoint.

The request body is deliberately NOT modelled as a pydantic request schema:
FastAPI would reject bad input with a 422 and a field dump, whereas the site
expects a 400 with one localized message for the first failing field. The raw
JSON is validated by services.sanitizer and turned into SanitizedSubmission.
"""

from typing import Optional
from pydantic import BaseModel


class SanitizedSubmission(BaseModel):
    """
    A contact submission that passed validation.

    Every text field is trimmed and HTML-escaped and may be interpolated into
    markup as-is. `reply_to` is the trimmed, unescaped address and is only
    ever used as an email header.
    """

    model_config = {"frozen": True}

    name: str
    email: str
    message: str
    phone: Optional[str] = None
    preferred_date: Optional[str] = None
    reply_to: str


class ContactResponse(BaseModel):
    """Body returned for an accepted submission."""
    success: bool = True


class ErrorResponse(BaseModel):
    """Body returned for every rejected submission."""
    error: str
