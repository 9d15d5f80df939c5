"""
Reports API router.
Provides job, platform and defect component summaries of a release.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Path
from fastapi_cache.decorator import cache
from sqlalchemy.orm import Session

from ci_health.config import get_settings
from ci_health.database import get_db
from ci_health.models.schemas import (
    BugzillaComponentSchema,
    ComparisonSchema,
    FailureGroupStatsSchema,
    JobResultSchema,
    JobSummaryResponse,
    ReleaseHealthSchema,
)
from ci_health.services import report_service
from ci_health.services.bug_cache import DatabaseBugCache
from ci_health.services.import_service import find_job
from ci_health.services.report_summary import (
    summarize_jobs_by_platform,
    summarize_jobs_failures_by_bugzilla_component,
)
from ci_health.utils.cache import report_key_builder
from ci_health.utils.helpers import compile_job_filter, not_found_error

logger = logging.getLogger(__name__)
router = APIRouter()

settings = get_settings()

RELEASE_PATTERN = "^[a-zA-Z0-9._-]+$"


def _require_release(db: Session, release: str) -> None:
    if report_service.get_release(db, release) is None:
        raise not_found_error("Release", release)


def _build_report(db: Session, release: str, days: Optional[int], job_filter: Optional[str] = None):
    _require_release(db, release)
    days = days or settings.REPORT_CURRENT_DAYS
    report = report_service.build_test_report(
        db, release, DatabaseBugCache(db),
        start_day=0,
        lookback_day=days,
        job_filter=compile_job_filter(job_filter),
        failure_group_threshold=settings.FAILURE_GROUP_THRESHOLD
    )
    return report, days


@router.get("/{release}/jobs", response_model=JobSummaryResponse)
@cache(expire=settings.CACHE_TTL_SECONDS, namespace="reports", key_builder=report_key_builder)
async def get_jobs(
    release: str = Path(..., min_length=1, max_length=50, pattern=RELEASE_PATTERN),
    days: Optional[int] = Query(None, ge=1, le=90, description="Days of data (default: REPORT_CURRENT_DAYS)"),
    job_filter: Optional[str] = Query(None, description="Regular expression on job names"),
    db: Session = Depends(get_db)
):
    """
    Get regular and infrequent jobs of a release, lowest pass percentage first.

    Raises:
        HTTPException: If release not found or the job filter is invalid
    """
    report, days = _build_report(db, release, days, job_filter)
    return JobSummaryResponse(
        release=release,
        days=days,
        jobs=[JobResultSchema.model_validate(j) for j in report.job_results],
        infrequent_jobs=[JobResultSchema.model_validate(j) for j in report.infrequent_job_results],
    )


@router.get("/{release}/jobs/{job_name}/tests", response_model=List[ComparisonSchema])
async def get_job_test_comparison(
    release: str = Path(..., min_length=1, max_length=50, pattern=RELEASE_PATTERN),
    job_name: str = Path(..., min_length=1, max_length=300),
    db: Session = Depends(get_db)
):
    """
    Compare each test of a job with its pass percentage in the previous period.

    Raises:
        HTTPException: If release or job not found
    """
    _require_release(db, release)
    if find_job(db, release, job_name) is None:
        raise not_found_error("Job", job_name, parent={"type": "Release", "id": release})

    health = report_service.build_release_health(
        db, release, DatabaseBugCache(db),
        current_days=settings.REPORT_CURRENT_DAYS,
        previous_days=settings.REPORT_PREVIOUS_DAYS,
        failure_group_threshold=settings.FAILURE_GROUP_THRESHOLD
    )
    current = health.current.by_job.get(job_name)
    if current is None:
        return []
    comparisons = report_service.compare_tests(current, health.previous.by_job.get(job_name))
    return [ComparisonSchema.model_validate(c) for c in comparisons]


@router.get("/{release}/platforms", response_model=List[JobResultSchema])
@cache(expire=settings.CACHE_TTL_SECONDS, namespace="reports", key_builder=report_key_builder)
async def get_platforms(
    release: str = Path(..., min_length=1, max_length=50, pattern=RELEASE_PATTERN),
    days: Optional[int] = Query(None, ge=1, le=90),
    db: Session = Depends(get_db)
):
    """Get jobs rolled up by platform, lowest pass percentage first."""
    report, _ = _build_report(db, release, days)
    return [JobResultSchema.model_validate(p) for p in summarize_jobs_by_platform(report)]


@router.get("/{release}/components", response_model=List[BugzillaComponentSchema])
@cache(expire=settings.CACHE_TTL_SECONDS, namespace="reports", key_builder=report_key_builder)
async def get_components(
    release: str = Path(..., min_length=1, max_length=50, pattern=RELEASE_PATTERN),
    days: Optional[int] = Query(None, ge=1, le=90),
    db: Session = Depends(get_db)
):
    """Get defect components ranked by the fail percentage of their worst job."""
    report, _ = _build_report(db, release, days)
    return [
        BugzillaComponentSchema.model_validate(c)
        for c in summarize_jobs_failures_by_bugzilla_component(report)
    ]


@router.get("/{release}/health", response_model=ReleaseHealthSchema)
@cache(expire=settings.CACHE_TTL_SECONDS, namespace="reports", key_builder=report_key_builder)
async def get_release_health(
    release: str = Path(..., min_length=1, max_length=50, pattern=RELEASE_PATTERN),
    db: Session = Depends(get_db)
):
    """
    Compare the current period of a release with the previous one.

    Returns:
        Current jobs, platforms and components with previous-period comparisons
        and failure group statistics
    """
    _require_release(db, release)
    health = report_service.build_release_health(
        db, release, DatabaseBugCache(db),
        current_days=settings.REPORT_CURRENT_DAYS,
        previous_days=settings.REPORT_PREVIOUS_DAYS,
        failure_group_threshold=settings.FAILURE_GROUP_THRESHOLD
    )
    return ReleaseHealthSchema(
        release=release,
        jobs=[JobResultSchema.model_validate(j) for j in health.current.job_results],
        infrequent_jobs=[JobResultSchema.model_validate(j) for j in health.current.infrequent_job_results],
        platforms=[JobResultSchema.model_validate(p) for p in health.platforms],
        components=[BugzillaComponentSchema.model_validate(c) for c in health.components],
        job_comparisons=[ComparisonSchema.model_validate(c) for c in health.job_comparisons],
        platform_comparisons=[ComparisonSchema.model_validate(c) for c in health.platform_comparisons],
        component_comparisons=[ComparisonSchema.model_validate(c) for c in health.component_comparisons],
        failure_group_stats=FailureGroupStatsSchema(**health.failure_group_stats._asdict()),
    )
