import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from sojourn_booking.actors import Actor
from sojourn_booking.dependencies import get_actor, get_db_engine
from sojourn_booking.errors import BookingError
from sojourn_booking.routes._reservation_helpers import raise_http_error, validate_admin_or_403
from sojourn_booking.services.reaper import sweep_abandoned

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/admin/reservations/sweep", status_code=status.HTTP_200_OK)
def sweep_reservations(
    dry_run: bool = Query(False, description="Count candidates without deleting"),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, object]:
    """
    Remove abandoned DRAFT and unpaid PENDING reservations now.

    Args:
        dry_run: Only report what would be removed
        actor: Must be an admin
        engine: Database engine

    Returns:
        dict: draft_removed, pending_removed, total_removed and dry_run
    """
    validate_admin_or_403(actor)
    try:
        result = sweep_abandoned(engine, dry_run=dry_run)
        logger.info("sweep_triggered", admin_id=actor.user_id, dry_run=dry_run)
        return {
            "message": "Sweep completed",
            "draft_removed": result.draft_removed,
            "pending_removed": result.pending_removed,
            "total_removed": result.total_removed,
            "dry_run": dry_run,
        }
    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("sweep_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
