import time

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from garage.app.db.session import get_db
from garage.app.services.rate_limit import get_rate_limiter

router = APIRouter()

VERSION = "0.1.0"


@router.get("/health")
def health():
    """Constant-time health check without DB verification."""
    return {"status": "healthy"}


@router.get("/health/deep")
def health_deep(db: Session = Depends(get_db)):
    """Deep health check with DB connectivity verification."""
    start_time = time.time()
    try:
        db.execute(text("SELECT 1")).scalar()
    except Exception:
        raise HTTPException(
            status_code=503,
            detail={"code": "DEEP_HEALTH_FAILED", "message": "Deep health check failed"}
        )
    latency_ms = (time.time() - start_time) * 1000
    return {
        "status": "healthy",
        "db": {
            "ok": True,
            "dialect": db.bind.dialect.name,
            "latency_ms": round(latency_ms, 2)
        },
        # One entry per garage seen since start; the limiter never evicts.
        "rate_limiter": {"tracked_garages": len(get_rate_limiter().store)},
    }


@router.get("/version")
async def version():
    return {"version": VERSION}
