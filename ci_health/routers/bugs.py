"""
Bug Management Router - endpoints for the bug mapping sync.

Manual sync trigger and the state of the last sync.
"""
import logging
from typing import Dict
from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from ci_health.config import get_settings
from ci_health.database import get_db
from ci_health.models.schemas import BugSyncStatusSchema
from ci_health.services.bug_updater_service import BugUpdaterService

logger = logging.getLogger(__name__)
router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


def _service(db: Session) -> BugUpdaterService:
    settings = get_settings()
    return BugUpdaterService(
        db=db,
        user=settings.BUG_DATA_USER,
        token=settings.BUG_DATA_TOKEN,
        bug_data_url=settings.BUG_DATA_URL,
        verify_ssl=settings.BUG_DATA_VERIFY_SSL
    )


@router.post("/update")
@limiter.limit("6/hour")
async def trigger_bug_update(
    request: Request,
    db: Session = Depends(get_db)
) -> Dict:
    """
    Manually trigger a bug mappings update.

    Rate limited to prevent hammering the bug data source.

    Args:
        request: FastAPI request object (required by the rate limiter)
        db: Database session

    Returns:
        Update statistics and message

    Raises:
        HTTPException: If update fails
    """
    try:
        stats = _service(db).update_bug_mappings()
    except Exception as e:
        logger.error(f"Manual bug update failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Update failed: {str(e)}")

    return {
        "success": True,
        "message": f"Updated {stats['bugs_updated']} bugs with {stats['mappings_created']} mappings",
        "stats": stats
    }


@router.get("/status", response_model=BugSyncStatusSchema)
async def get_bug_status(db: Session = Depends(get_db)):
    """Get bug counts and the outcome of the latest sync."""
    return BugSyncStatusSchema(**_service(db).get_status())
