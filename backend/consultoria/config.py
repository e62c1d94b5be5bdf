"""
Application configuration.

Settings are read from the environment (and a local .env file) once by
pydantic-settings, then passed into the handler as an immutable value so
that tests can build their own Settings without touching os.environ.

Environment variables
---------------------
ALLOWED_ORIGINS               Comma-separated extra origins allowed to submit.
ALLOWED_ORIGIN_SUFFIX         Host suffix accepted for any https origin
                              (default: ".lovable.app"; empty disables).
DEFAULT_ALLOWED_ORIGIN        Access-Control-Allow-Origin value sent to
                              origins that are not allowed.
RATE_LIMIT_MAX_REQUESTS       Accepted submissions per IP per window (default: 5).
RATE_LIMIT_WINDOW_MINUTES     Sliding window length (default: 60).
RATE_LIMIT_PURGE_PROBABILITY  Chance per accepted submission of purging
                              stale rate-limit rows (default: 0.01).
EMAIL_PROVIDER                "resend" (default) or "smtp".
EMAIL_FROM                    Sender identity.
EMAIL_SUBJECT                 Subject line of the notification email.
CONTACT_RECIPIENT_EMAIL       The practitioner's inbox. Required to send.
RESEND_API_KEY                Resend credential.
SMTP_HOST / SMTP_PORT / SMTP_USER / SMTP_PASSWORD / SMTP_TIMEOUT_SECONDS
SUPABASE_URL / SUPABASE_SERVICE_KEY
LOG_LEVEL                     Root log level (default: INFO).
"""

from functools import lru_cache
from typing import Annotated, Any, List, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Vite dev server ports used by the site (npm run dev / preview)
_ALWAYS_ALLOWED_ORIGINS = [
    "http://localhost:8080",
    "http://localhost:5173",
]


class Settings(BaseSettings):
    """
    Immutable runtime configuration for the contact backend.

    Field names map to the upper-case environment variables listed above.
    Invalid values raise a pydantic ValidationError (a ValueError) on load.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # ALLOWED_ORIGINS is a comma-separated string, not JSON
    allowed_origins: Annotated[Tuple[str, ...], NoDecode] = tuple(_ALWAYS_ALLOWED_ORIGINS)
    allowed_origin_suffix: Optional[str] = ".lovable.app"
    default_allowed_origin: Optional[str] = None

    rate_limit_max_requests: int = Field(default=5, ge=1)
    rate_limit_window_minutes: int = Field(default=60, ge=1)
    rate_limit_purge_probability: float = Field(default=0.01, ge=0.0, le=1.0)

    email_provider: str = "resend"
    email_from: str = "Consultoría Legal <no-reply@resend.dev>"
    email_subject: str = "Nueva solicitud de consultoría"
    contact_recipient_email: Optional[str] = None
    resend_api_key: Optional[str] = None

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_timeout_seconds: float = 30.0

    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    log_level: str = "INFO"

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def merge_allowed_origins(cls, v: Any) -> Any:
        """
        A comma-separated ALLOWED_ORIGINS value is appended to the
        always-allowed local dev origins; duplicates are removed while
        preserving order. Sequences passed in code are taken as-is.
        """
        if not isinstance(v, str):
            return v

        extra_origins = [o.strip().rstrip("/") for o in v.split(",") if o.strip()]
        seen: set = set()
        origins: List[str] = []
        for origin in _ALWAYS_ALLOWED_ORIGINS + extra_origins:
            if origin not in seen:
                seen.add(origin)
                origins.append(origin)
        return tuple(origins)

    @field_validator(
        "allowed_origin_suffix",
        "default_allowed_origin",
        "contact_recipient_email",
        "resend_api_key",
        "smtp_user",
        "smtp_password",
        "supabase_url",
        "supabase_service_key",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        # An empty variable in .env means "not set"
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("email_provider", mode="before")
    @classmethod
    def normalize_provider(cls, v: Any) -> Any:
        return v.lower().strip() if isinstance(v, str) else v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        return v.upper().strip() if isinstance(v, str) else v

    @property
    def cors_fallback_origin(self) -> str:
        """Origin echoed back to callers that are not allowed."""
        if self.default_allowed_origin:
            return self.default_allowed_origin
        if self.allowed_origins:
            return self.allowed_origins[0]
        return "null"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
