"""
Statistics helpers shared by the report builders.

Percentages, lookback window boundaries, failure group statistics and
keyed accumulation of per-test results.
"""
import logging
import re
import time
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from ci_health.constants import LOOKBACK_START_SENTINEL, MILLIS_PER_DAY
from ci_health.processing.models import (
    AggregateTestsResult,
    FailureGroup,
    JobResult,
    RawTestResult,
    SortedBugzillaComponentResult,
    TestResult,
)

logger = logging.getLogger(__name__)


class FailureGroupStats(NamedTuple):
    """
    Failure group statistics for the current and previous period.

    median and median_prev are the failure counts of the group at the
    middle position (len // 2) of the input collection. They equal the
    statistical median only when the input is sorted by failure count.
    """
    count: int
    count_prev: int
    median: int
    median_prev: int
    avg: int
    avg_prev: int


def percent(success: int, failure: int) -> float:
    """
    Pass percentage of success over success + failure.

    Returns 0.0 when there is nothing to divide by, so sorting and display
    never see a non-numeric value.
    """
    total = success + failure
    if total == 0:
        return 0.0
    return success / total * 100.0


def now_millis() -> int:
    """Current time in ms since epoch."""
    return int(time.time() * 1000)


def compute_lookback(
    start_day: int,
    lookback_day: int,
    timestamps: Sequence[int],
    now: Optional[int] = None
) -> Tuple[int, int]:
    """
    Locate the index range of a reporting window in descending timestamps.

    The window covers runs between start_day and lookback_day days ago.
    The returned start is the first index older than start_day days ago and
    the returned stop is the first index older than lookback_day days ago,
    or len(timestamps) when no timestamp is that old.

    Args:
        start_day: Days ago at which the window starts (most recent edge)
        lookback_day: Days ago at which the window stops (oldest edge)
        timestamps: ms epoch values ordered from most recent to oldest
        now: Override for the current time in ms since epoch

    Returns:
        (start, stop) index pair. start is LOOKBACK_START_SENTINEL when no
        timestamp is older than the start cutoff.
    """
    if now is None:
        now = now_millis()

    stop_ts = now - lookback_day * MILLIS_PER_DAY
    start_ts = now - start_day * MILLIS_PER_DAY
    logger.debug(f"Lookback window start: {start_ts}, stop: {stop_ts}")

    start = LOOKBACK_START_SENTINEL
    for i, ts in enumerate(timestamps):
        if ts < start_ts and i < start:
            start = i
        if ts < stop_ts:
            return start, i
    return start, len(timestamps)


def compute_failure_group_stats(
    failure_groups: Sequence[FailureGroup],
    failure_groups_prev: Sequence[FailureGroup]
) -> FailureGroupStats:
    """
    Count, midpoint value and average of failures in clustered failure runs.

    Both averages divide the current period's count; avg_prev uses the
    previous period's group count as the denominator. Empty collections
    yield 0 for their midpoint and average.
    """
    count = sum(group.test_failures for group in failure_groups)
    count_prev = sum(group.test_failures for group in failure_groups_prev)

    median = median_prev = avg = avg_prev = 0
    if failure_groups:
        median = failure_groups[len(failure_groups) // 2].test_failures
        avg = count // len(failure_groups)
    if failure_groups_prev:
        median_prev = failure_groups_prev[len(failure_groups_prev) // 2].test_failures
        avg_prev = count // len(failure_groups_prev)

    return FailureGroupStats(count, count_prev, median, median_prev, avg, avg_prev)


def add_test_result(
    category_key: str,
    categories: Dict[str, AggregateTestsResult],
    test_name: str,
    passed: int,
    failed: int,
    flaked: int
) -> None:
    """Add outcome counts for a test to a category, creating either as needed."""
    logger.debug(f"Adding test {test_name} to category {category_key}, "
                 f"passed: {passed}, failed: {failed}, flaked: {flaked}")

    category = categories.get(category_key)
    if category is None:
        category = AggregateTestsResult()
        categories[category_key] = category

    result = category.raw_test_results.get(test_name)
    if result is None:
        result = RawTestResult(name=test_name)
        category.raw_test_results[test_name] = result

    result.successes += passed
    result.failures += failed
    result.flakes += flaked


def relevant_job(job_name: str, job_filter: Optional[re.Pattern] = None) -> bool:
    """Whether a job passes the optional job name filter."""
    if job_filter is not None and not job_filter.search(job_name):
        return False
    return True


def get_prev_test(test: str, test_results: List[TestResult]) -> Optional[TestResult]:
    """Find a test by name in a previous period's results."""
    for result in test_results:
        if result.name == test:
            return result
    return None


def get_job_result_for_job_name(job: str, job_results: List[JobResult]) -> Optional[JobResult]:
    """Find a job by name in a list of job results."""
    for result in job_results:
        if result.name == job:
            return result
    return None


def get_prev_platform(platform: str, jobs_by_platform: List[JobResult]) -> Optional[JobResult]:
    """Find a platform rollup in a previous period's platform results."""
    for result in jobs_by_platform:
        if result.platform == platform:
            return result
    return None


def get_prev_bugzilla_job_failures(
    bz_component: str,
    bugzilla_job_failures: List[SortedBugzillaComponentResult]
) -> Optional[SortedBugzillaComponentResult]:
    """Find a component in a previous period's component ranking."""
    for result in bugzilla_job_failures:
        if result.name == bz_component:
            return result
    return None
