"""
SchemaForge API

FastAPI application that:
1. Validates and analyzes pages
2. Generates JSON-LD through the configured AI provider
3. Bills one credit per URL with refund on any failure
4. Scores, refines and stores generated schemas

Run:
    uvicorn api.main:app --reload
"""

import logging
import sys
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, status

from schemaforge import __version__
from schemaforge.billing import AccountNotFound
from schemaforge.database import check_db_connection, init_db

from .dependencies import Services, close_services, get_account_id, get_services
from .schemas import router as schemas_router

# Configure logging to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(
    title="SchemaForge",
    description="AI-assisted JSON-LD structured data generation",
    version=__version__,
)
app.include_router(schemas_router)


# ============================================================================
# STARTUP / SHUTDOWN
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    """Release the analyzer's HTTP client and finish pending listeners."""
    await close_services()


# ============================================================================
# HEALTH AND CREDITS
# ============================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "SchemaForge"}


@app.get("/api/health")
async def health():
    """Detailed health check including database status."""
    db_connected = False
    try:
        db_connected = check_db_connection()
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")

    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "database": "connected" if db_connected else "disconnected",
    }


@app.get("/api/credits")
async def get_credits(
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    """Current balance and billing policy for the calling account."""
    try:
        balance = services.ledger.balance(account_id)
        policy = services.ledger.get_policy(account_id)
    except AccountNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.to_dict())

    return {
        "account_id": account_id,
        "credit_balance": balance,
        "billing_policy": policy.value,
    }
