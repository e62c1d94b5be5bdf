"""
Supabase-backed rate-limit store for contact submissions.

One row per accepted submission in the contact_rate_limits table
(see supabase/migrations). Rows are never updated; stale rows are removed in
bulk by purge_older_than. The table is shared by every API instance.

Counting and inserting are separate round-trips, so two concurrent requests
from the same IP can both pass the count before either inserts. That
over-admission is accepted.

Every client error is re-raised as StoreUnavailable; callers decide whether
that is fatal (it never is for the contact handler).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from supabase import Client

from consultoria.errors import StoreUnavailable

logger = logging.getLogger(__name__)

RATE_LIMIT_TABLE = "contact_rate_limits"


class RateLimitStore(Protocol):
    def count_since(self, ip_address: str, since: datetime) -> int: ...

    def insert(self, ip_address: str) -> None: ...

    def purge_older_than(self, window: timedelta) -> None: ...


class SupabaseRateLimitStore:
    """RateLimitStore over a Supabase table of (ip_address, created_at) rows."""

    def __init__(self, client: Client, table: str = RATE_LIMIT_TABLE):
        self._client = client
        self._table = table

    def count_since(self, ip_address: str, since: datetime) -> int:
        """Count rows for ip_address with created_at >= since."""
        try:
            result = (
                self._client.table(self._table)
                .select("id", count="exact")
                .eq("ip_address", ip_address)
                .gte("created_at", since.isoformat())
                .execute()
            )
        except Exception as e:
            raise StoreUnavailable(f"Failed to count rate limit rows for {ip_address}: {e}") from e

        if result.count is not None:
            return result.count
        # count header missing (e.g. proxy stripped it): fall back to row count
        return len(result.data or [])

    def insert(self, ip_address: str) -> None:
        """Record one accepted submission. created_at is set by the database."""
        try:
            self._client.table(self._table).insert({"ip_address": ip_address}).execute()
        except Exception as e:
            raise StoreUnavailable(f"Failed to record rate limit row for {ip_address}: {e}") from e

    def purge_older_than(self, window: timedelta) -> None:
        """Delete every row created before now - window."""
        cutoff = datetime.now(timezone.utc) - window
        try:
            self._client.table(self._table).delete().lt("created_at", cutoff.isoformat()).execute()
        except Exception as e:
            raise StoreUnavailable(f"Failed to purge rate limit rows older than {cutoff.isoformat()}: {e}") from e
        logger.info(f"Purged rate limit rows older than {cutoff.isoformat()}")
