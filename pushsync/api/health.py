from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from pushsync.database import get_db
from pushsync.services import push_service

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(db: Session = Depends(get_db)) -> dict:
    push = "configured" if push_service.is_configured() else "disabled"
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected", "push": push}
    except Exception as exc:
        return {"status": "unhealthy", "database": "disconnected", "push": push, "error": str(exc)}
