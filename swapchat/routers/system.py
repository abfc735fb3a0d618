from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from swapchat.config import get_settings
from swapchat.core.app_state import AppState
from swapchat.db import get_db
from swapchat.infra.logging_config import get_logger
from swapchat.routers.utils.dependencies import get_app_state

logger = get_logger("system")

router = APIRouter(
    tags=["system"],
)


@router.get("/health", response_model=dict)
def health(
    app_state: AppState = Depends(get_app_state),
    db: Session = Depends(get_db),
) -> dict:
    """Liveness plus database reachability and live feed usage."""
    s = get_settings()
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Health check database query failed: %s", e)
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "app": s.app_name,
        "environment": s.environment,
        "database": database,
        "realtime_backend": s.realtime_backend,
        "active_subscriptions": app_state.feed.active_subscriptions,
    }
