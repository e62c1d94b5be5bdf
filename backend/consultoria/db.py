"""
Database client configuration.
Uses Supabase (PostgREST) for the rate-limit bookkeeping table.

The client is created on first use, not at import time.
"""

from functools import lru_cache

from supabase import create_client, Client

from consultoria.config import get_settings


@lru_cache()
def get_supabase_admin() -> Client:
    """
    Return the service-role Supabase client (bypasses RLS).

    Raises:
        ValueError: if SUPABASE_URL or SUPABASE_SERVICE_KEY is not set.
    """
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment variables")

    return create_client(settings.supabase_url, settings.supabase_service_key)
