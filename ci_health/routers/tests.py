"""
Per-test report router.

Current vs previous period counts for individual tests.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from ci_health.config import get_settings
from ci_health.database import get_db
from ci_health.models.schemas import TestReportSchema
from ci_health.services import report_queries, report_service
from ci_health.utils.helpers import clean_list, not_found_error, validation_error

router = APIRouter()

RELEASE_PATTERN = "^[a-zA-Z0-9._-]+$"


@router.get("/{release}", response_model=List[TestReportSchema])
async def get_tests_by_variant(
    release: str = Path(..., min_length=1, max_length=50, pattern=RELEASE_PATTERN),
    test_filter: List[str] = Query(..., alias="filter", description="Regular expressions on test names"),
    db: Session = Depends(get_db)
):
    """
    Get current vs previous counts of matching tests, one row per job variant.

    Raises:
        HTTPException: If release not found or no usable filter was given
    """
    filters = clean_list(test_filter)
    if not filters:
        raise validation_error("At least one non-empty filter is required")
    if report_service.get_release(db, release) is None:
        raise not_found_error("Release", release)

    settings = get_settings()
    return report_queries.reports_by_variant(
        db, release, filters,
        current_days=settings.REPORT_CURRENT_DAYS,
        previous_days=settings.REPORT_PREVIOUS_DAYS
    )


@router.get("/{release}/{test_name:path}", response_model=List[TestReportSchema])
async def get_test_excluding_variants(
    release: str = Path(..., min_length=1, max_length=50, pattern=RELEASE_PATTERN),
    test_name: str = Path(..., min_length=1),
    exclude_variant: Optional[List[str]] = Query(None, description="Skip runs of jobs with these variants"),
    db: Session = Depends(get_db)
):
    """
    Get current vs previous counts of one test with all variants collapsed.

    Raises:
        HTTPException: If release not found
    """
    if report_service.get_release(db, release) is None:
        raise not_found_error("Release", release)

    settings = get_settings()
    return report_queries.report_excluding_variants(
        db, release, test_name, clean_list(exclude_variant),
        current_days=settings.REPORT_CURRENT_DAYS,
        previous_days=settings.REPORT_PREVIOUS_DAYS
    )
