"""
Consultoría Legal Backend API
FastAPI application serving the website's contact form.
"""

import logging

from fastapi import FastAPI, HTTPException

from consultoria.config import get_settings
from consultoria.db import get_supabase_admin
from consultoria.routers import contact
from consultoria.services.rate_limit_store import RATE_LIMIT_TABLE

# Configure logging to output to console
logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Consultoría Legal API",
    description="Contact form delivery for the Consultoría Legal website",
    version="0.1.0",
)

# CORS is enforced per request by the contact handler (origin allow-list with
# suffix matching), so no CORSMiddleware is installed here.
app.include_router(contact.router, tags=["contact"])


@app.get("/")
async def root():
    return {"message": "Consultoría Legal API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db():
    """
    Test the Supabase database connection.

    Executes a lightweight query (SELECT 1 row from contact_rate_limits) to
    verify that the service-role client can reach the table. Returns 503 on
    failure.
    """
    try:
        client = get_supabase_admin()
    except ValueError as exc:
        raise HTTPException(
            status_code=503,
            detail=f"Database client unavailable: {exc}",
        )

    try:
        client.table(RATE_LIMIT_TABLE).select("id").limit(1).execute()
        return {"status": "ok", "database": "reachable"}
    except Exception as exc:
        logger.error(f"Database health check failed: {exc}")
        raise HTTPException(
            status_code=503,
            detail="Database connection failed",
        )
