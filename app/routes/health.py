from fastapi import APIRouter, Depends
from sqlmodel import Session, text
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime
import logging

from app.database import get_session

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/check")
def health_check(session: Session = Depends(get_session)):
    db_status = "ok"

    try:
        # simple DB ping
        session.exec(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database ping failed")
        db_status = "failed"

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "database": db_status,
        "timestamp": datetime.utcnow().isoformat()
    }
