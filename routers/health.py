import logging

from fastapi import APIRouter, Request

logger = logging.getLogger("backend.health")

router = APIRouter()


@router.get("/health/db")
async def health_db(request: Request):
    """Lightweight DB health check: runs SELECT 1 against the configured database."""
    try:
        await request.app.state.db.ping()
        return {"status": "ok", "db": True}
    except Exception:
        logger.exception("Database health check failed")
        # Do not leak internals; return a generic failure
        return {"status": "fail", "db": False}
