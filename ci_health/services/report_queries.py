"""
Per-test report queries comparing the current period with the previous one.

Counts are aggregated in SQL; the derived percentage columns are computed
from the aggregated counts.
"""
import logging
import re
import time
from typing import List, Optional

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from ci_health.constants import MILLIS_PER_DAY
from ci_health.models.db_models import Job, JobRun, JobVariant, Release, TestOutcome, TestStatusEnum
from ci_health.models.schemas import TestReportSchema
from ci_health.services.stats import now_millis

logger = logging.getLogger(__name__)


def _period_bounds(now: int, current_days: int, previous_days: int):
    if current_days <= 0 or previous_days <= 0:
        raise ValueError("Reporting periods must be at least one day long")
    current_start = now - current_days * MILLIS_PER_DAY
    previous_start = current_start - previous_days * MILLIS_PER_DAY
    return previous_start, current_start


def _count_columns(current_start: int):
    """SUM(CASE ...) columns for runs/successes/failures/flakes of both periods."""
    in_current = JobRun.timestamp >= current_start
    in_previous = JobRun.timestamp < current_start

    def count(period, label, status=None):
        condition = period if status is None else and_(period, TestOutcome.status == status)
        return func.coalesce(func.sum(case((condition, 1), else_=0)), 0).label(label)

    return [
        count(in_current, 'current_runs'),
        count(in_current, 'current_successes', TestStatusEnum.SUCCESS),
        count(in_current, 'current_failures', TestStatusEnum.FAILURE),
        count(in_current, 'current_flakes', TestStatusEnum.FLAKE),
        count(in_previous, 'previous_runs'),
        count(in_previous, 'previous_successes', TestStatusEnum.SUCCESS),
        count(in_previous, 'previous_failures', TestStatusEnum.FAILURE),
        count(in_previous, 'previous_flakes', TestStatusEnum.FLAKE),
    ]


def _percentage(part: int, runs: int) -> Optional[float]:
    if not runs:
        return None
    return part * 100.0 / runs


def _to_schema(row, release: str, variant: Optional[str] = None) -> TestReportSchema:
    current_pass = _percentage(row.current_successes, row.current_runs)
    previous_pass = _percentage(row.previous_successes, row.previous_runs)
    net_improvement = None
    if current_pass is not None and previous_pass is not None:
        net_improvement = current_pass - previous_pass

    return TestReportSchema(
        name=row.name,
        release=release,
        variant=variant,
        current_runs=row.current_runs,
        current_successes=row.current_successes,
        current_failures=row.current_failures,
        current_flakes=row.current_flakes,
        previous_runs=row.previous_runs,
        previous_successes=row.previous_successes,
        previous_failures=row.previous_failures,
        previous_flakes=row.previous_flakes,
        current_pass_percentage=current_pass,
        current_failure_percentage=_percentage(row.current_failures, row.current_runs),
        previous_pass_percentage=previous_pass,
        previous_failure_percentage=_percentage(row.previous_failures, row.previous_runs),
        net_improvement=net_improvement,
    )


def _base_query(db: Session, columns, release: str, previous_start: int, now: int):
    return db.query(*columns).select_from(TestOutcome).join(
        JobRun, JobRun.id == TestOutcome.job_run_id
    ).join(
        Job, Job.id == JobRun.job_id
    ).join(
        Release, Release.id == Job.release_id
    ).filter(
        Release.name == release,
        JobRun.timestamp >= previous_start,
        JobRun.timestamp <= now
    )


def reports_by_variant(
    db: Session,
    release: str,
    test_substrings: List[str],
    current_days: int = 7,
    previous_days: int = 7,
    now: Optional[int] = None
) -> List[TestReportSchema]:
    """
    Report every test matching any of the substrings, one row per job variant.

    Args:
        db: Database session
        release: Release name
        test_substrings: Regular expressions matched case-insensitively against test names
        current_days: Length of the current period in days
        previous_days: Length of the previous period in days
        now: Override for the current time in ms since epoch

    Returns:
        Rows ordered by test name and variant

    Raises:
        ValueError: If the combined filter is not a valid regular expression
    """
    started = time.monotonic()
    if now is None:
        now = now_millis()
    previous_start, current_start = _period_bounds(now, current_days, previous_days)

    test_filter = "|".join(test_substrings)
    try:
        re.compile(test_filter)
    except re.error as e:
        raise ValueError(f"Invalid test filter '{test_filter}': {e}")

    columns = [TestOutcome.test_name.label('name'), JobVariant.name.label('variant')]
    columns += _count_columns(current_start)

    rows = _base_query(db, columns, release, previous_start, now).join(
        JobVariant, JobVariant.job_id == Job.id
    ).filter(
        TestOutcome.test_name.regexp_match(f"(?i){test_filter}")
    ).group_by(
        TestOutcome.test_name, JobVariant.name
    ).order_by(
        TestOutcome.test_name, JobVariant.name
    ).all()

    reports = [_to_schema(row, release, row.variant) for row in rows]
    logger.info(f"reports_by_variant completed in {time.monotonic() - started:.3f}s "
                f"with {len(reports)} results from db")
    return reports


def report_excluding_variants(
    db: Session,
    release: str,
    test_name: str,
    exclude_variants: Optional[List[str]] = None,
    current_days: int = 7,
    previous_days: int = 7,
    now: Optional[int] = None
) -> List[TestReportSchema]:
    """
    Report one test with all variants collapsed, skipping runs of jobs in excluded variants.

    Args:
        db: Database session
        release: Release name
        test_name: Exact test name
        exclude_variants: Jobs carrying any of these variants are ignored
        current_days: Length of the current period in days
        previous_days: Length of the previous period in days
        now: Override for the current time in ms since epoch

    Returns:
        A single row, or an empty list when the test has no runs in either period
    """
    started = time.monotonic()
    if now is None:
        now = now_millis()
    previous_start, current_start = _period_bounds(now, current_days, previous_days)

    columns = [TestOutcome.test_name.label('name')] + _count_columns(current_start)
    query = _base_query(db, columns, release, previous_start, now).filter(
        TestOutcome.test_name == test_name
    )
    if exclude_variants:
        query = query.filter(~Job.variants.any(JobVariant.name.in_(exclude_variants)))

    rows = query.group_by(TestOutcome.test_name).all()

    reports = [_to_schema(row, release) for row in rows]
    logger.info(f"report_excluding_variants completed in {time.monotonic() - started:.3f}s "
                f"with {len(reports)} results from db")
    return reports
