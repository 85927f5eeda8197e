"""Health and ready endpoints."""
import redis
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from apps.backend.deps import get_db
from apps.backend.config import get_settings

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "service": "botmaker"}


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    s = get_settings()
    checks = {}
    try:
        db.execute(text("SELECT 1"))
        checks["db"] = "ok"
    except Exception as e:
        return JSONResponse({"status": "error", "detail": f"db: {e}"}, status_code=503)

    try:
        redis.Redis(host=s.redis_host, port=s.redis_port, socket_timeout=2).ping()
        checks["redis"] = "ok"
    except Exception as e:
        return JSONResponse({"status": "error", "detail": f"redis: {e}"}, status_code=503)

    return {"status": "ok", "checks": checks}
