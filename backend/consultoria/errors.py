"""
Domain errors for the contact submission flow.

Every SubmissionError carries the HTTP status it maps to and a user-safe
message (Spanish, shown verbatim in the site's toast). Provider and database
details never go into these messages; they are logged server-side instead.
"""

from typing import Optional


class SubmissionError(Exception):
    """Base class for errors that end a submission with a client response."""

    status_code: int = 500
    message: str = "No se pudo enviar el mensaje. Por favor, inténtelo de nuevo más tarde."

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MethodNotAllowed(SubmissionError):
    status_code = 405
    message = "Método no permitido."


class UnauthorizedOrigin(SubmissionError):
    status_code = 403
    message = "Origen no autorizado."


class RateLimited(SubmissionError):
    status_code = 429
    message = "Demasiadas solicitudes. Por favor, inténtelo de nuevo más tarde."


class ValidationFailed(SubmissionError):
    """A single field failed validation. `reason` is safe to show to the user."""

    status_code = 400

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(reason)


class DeliveryFailed(SubmissionError):
    """The email could not be sent. Always surfaces the generic message."""

    status_code = 500


class StoreUnavailable(Exception):
    """
    The rate-limit store could not be reached or rejected the operation.

    Never surfaced to the caller: count failures fail open, insert and purge
    failures are logged only.
    """
