"""
Report builder for release health.

Loads stored job runs for a release, selects a reporting window with
compute_lookback, accumulates per-test results per job and per platform,
groups failures by defect component, and runs the job aggregators.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload, selectinload

from ci_health.constants import ANY_COMPONENT, LOOKBACK_START_SENTINEL
from ci_health.models.db_models import Job, JobRun, Release, TestStatusEnum
from ci_health.processing.models import (
    AggregateTestsResult,
    BugzillaJobResult,
    FailureGroup,
    JobResult,
    RawJobResult,
    RawJobRunResult,
    SortedAggregateTestsResult,
    SortedBugzillaComponentResult,
    TestReport,
    TestResult,
)
from ci_health.services.bug_cache import BugCache
from ci_health.services.job_identification import find_platform
from ci_health.services.job_results import summarize_job_run_results
from ci_health.services.report_summary import (
    summarize_jobs_by_platform,
    summarize_jobs_failures_by_bugzilla_component,
)
from ci_health.services.stats import (
    FailureGroupStats,
    add_test_result,
    compute_failure_group_stats,
    compute_lookback,
    get_job_result_for_job_name,
    get_prev_bugzilla_job_failures,
    get_prev_platform,
    get_prev_test,
    now_millis,
    percent,
    relevant_job,
)

logger = logging.getLogger(__name__)


@dataclass
class Comparison:
    """Current vs previous pass percentage of a job, platform, component or test."""
    name: str
    current_pass_percentage: float
    previous_pass_percentage: Optional[float] = None

    @property
    def net_improvement(self) -> Optional[float]:
        if self.previous_pass_percentage is None:
            return None
        return self.current_pass_percentage - self.previous_pass_percentage


@dataclass
class ReleaseHealth:
    """Current and previous period summaries for one release."""
    release: str
    current: TestReport
    previous: TestReport
    platforms: List[JobResult] = field(default_factory=list)
    components: List[SortedBugzillaComponentResult] = field(default_factory=list)
    job_comparisons: List[Comparison] = field(default_factory=list)
    platform_comparisons: List[Comparison] = field(default_factory=list)
    component_comparisons: List[Comparison] = field(default_factory=list)
    failure_group_stats: FailureGroupStats = FailureGroupStats(0, 0, 0, 0, 0, 0)


def get_release(db: Session, release: str) -> Optional[Release]:
    """Get a release by name."""
    return db.query(Release).filter(Release.name == release).first()


def load_job_runs(db: Session, release: str) -> List[JobRun]:
    """
    All runs of a release, most recent first.

    Args:
        db: Database session
        release: Release name

    Returns:
        JobRun rows with their job and test outcomes loaded
    """
    return db.query(JobRun).join(
        Job, Job.id == JobRun.job_id
    ).join(
        Release, Release.id == Job.release_id
    ).filter(
        Release.name == release
    ).options(
        joinedload(JobRun.job),
        selectinload(JobRun.test_outcomes)
    ).order_by(
        JobRun.timestamp.desc(), JobRun.id.desc()
    ).all()


def select_window(
    runs: List[JobRun],
    start_day: int,
    lookback_day: int,
    now: Optional[int] = None
) -> List[JobRun]:
    """Runs between start_day and lookback_day days ago (runs are most recent first)."""
    start, stop = compute_lookback(start_day, lookback_day, [r.timestamp for r in runs], now)
    if start == LOOKBACK_START_SENTINEL:
        return []
    return runs[start:stop]


def to_raw_job_run_result(run: JobRun) -> RawJobRunResult:
    """Convert a stored run into the aggregators' input type."""
    failed_test_names = [
        o.test_name for o in run.test_outcomes
        if o.status == TestStatusEnum.FAILURE
    ]
    return RawJobRunResult(
        job=run.job.name,
        job_run_url=run.url,
        succeeded=run.succeeded,
        failed=run.failed,
        failed_test_names=failed_test_names,
        test_failures=run.test_failures,
        timestamp=run.timestamp,
    )


def sort_test_results(aggregate: AggregateTestsResult) -> SortedAggregateTestsResult:
    """Summarize a category's tests, lowest pass percentage first."""
    summary = SortedAggregateTestsResult()
    for raw in aggregate.raw_test_results.values():
        summary.successes += raw.successes
        summary.failures += raw.failures
        summary.test_results.append(TestResult(
            name=raw.name,
            successes=raw.successes,
            failures=raw.failures,
            flakes=raw.flakes,
            pass_percentage=percent(raw.successes, raw.failures),
        ))
    summary.test_pass_percentage = percent(summary.successes, summary.failures)
    summary.test_results.sort(key=lambda t: t.pass_percentage)
    return summary


def accumulate_test_results(
    runs: List[JobRun],
    classify: Callable[[str], List[str]] = find_platform
) -> Tuple[Dict[str, AggregateTestsResult], Dict[str, AggregateTestsResult]]:
    """
    Per-test counts keyed by job name and by platform tag.

    A flake passed on retry, so it counts as a success as well as a flake.
    """
    by_job: Dict[str, AggregateTestsResult] = {}
    by_platform: Dict[str, AggregateTestsResult] = {}

    for run in runs:
        platforms = classify(run.job.name)
        for outcome in run.test_outcomes:
            passed = int(outcome.status in (TestStatusEnum.SUCCESS, TestStatusEnum.FLAKE))
            failed = int(outcome.status == TestStatusEnum.FAILURE)
            flaked = int(outcome.status == TestStatusEnum.FLAKE)
            add_test_result(run.job.name, by_job, outcome.test_name, passed, failed, flaked)
            for platform in platforms:
                add_test_result(platform, by_platform, outcome.test_name, passed, failed, flaked)

    return by_job, by_platform


def group_failures_by_component(
    raw_job_results: Dict[str, RawJobResult],
    bug_cache: BugCache,
    release: str
) -> Dict[str, SortedBugzillaComponentResult]:
    """
    Count, per defect component and job, the runs that failed a test linked to that component.

    A run counts at most once per component. Each component's jobs are
    ordered by fail percentage, highest first.
    """
    components: Dict[str, SortedBugzillaComponentResult] = {}

    for job_name in sorted(raw_job_results):
        raw_job = raw_job_results[job_name]
        total_runs = len(raw_job.job_run_results)
        failed_runs_by_component: Dict[str, int] = {}

        for run in raw_job.job_run_results:
            if not run.failed:
                continue
            run_components = set()
            for test_name in run.failed_test_names:
                for bug in bug_cache.list_bugs(release, ANY_COMPONENT, test_name):
                    if bug.component:
                        run_components.add(bug.component)
            for component in run_components:
                failed_runs_by_component[component] = failed_runs_by_component.get(component, 0) + 1

        for component, runs_failed in failed_runs_by_component.items():
            result = components.get(component)
            if result is None:
                result = SortedBugzillaComponentResult(name=component)
                components[component] = result
            result.jobs_failed.append(BugzillaJobResult(
                job_name=job_name,
                bugzilla_component=component,
                number_of_job_runs_failed=runs_failed,
                fail_percentage=percent(runs_failed, total_runs - runs_failed),
                total_runs=total_runs,
            ))

    for result in components.values():
        result.jobs_failed.sort(key=lambda j: j.fail_percentage, reverse=True)

    return components


def find_failure_groups(runs: List[JobRun], threshold: int) -> List[FailureGroup]:
    """Runs with at least threshold test failures, most failures first."""
    groups = [
        FailureGroup(job=r.job.name, url=r.url, test_failures=r.test_failures, timestamp=r.timestamp)
        for r in runs
        if r.test_failures >= threshold
    ]
    groups.sort(key=lambda g: g.test_failures, reverse=True)
    return groups


def build_test_report(
    db: Session,
    release: str,
    bug_cache: BugCache,
    start_day: int = 0,
    lookback_day: int = 7,
    now: Optional[int] = None,
    job_filter: Optional[re.Pattern] = None,
    failure_group_threshold: int = 10
) -> TestReport:
    """
    Build the report of a release for runs between start_day and lookback_day days ago.

    Args:
        db: Database session
        release: Release name
        bug_cache: Bug lookup used for known failure attribution
        start_day: Most recent edge of the window, in days ago
        lookback_day: Oldest edge of the window, in days ago
        now: Override for the current time in ms since epoch
        job_filter: Only include jobs whose name matches
        failure_group_threshold: Min test failures for a run to be a failure group

    Returns:
        TestReport with jobs, per-test summaries and component groupings
    """
    if lookback_day <= start_day:
        raise ValueError(f"lookback_day ({lookback_day}) must be greater than start_day ({start_day})")
    if now is None:
        now = now_millis()

    runs = [r for r in load_job_runs(db, release) if relevant_job(r.job.name, job_filter)]
    window = select_window(runs, start_day, lookback_day, now)

    raw_job_results: Dict[str, RawJobResult] = {}
    for run in window:
        raw_job = raw_job_results.get(run.job.name)
        if raw_job is None:
            raw_job = RawJobResult(job_name=run.job.name, dashboard_url=run.job.dashboard_url or "")
            raw_job_results[run.job.name] = raw_job
        raw_job.job_run_results.append(to_raw_job_run_result(run))

    by_job_raw, by_platform_raw = accumulate_test_results(window)
    report = TestReport(
        release=release,
        timestamp=now,
        by_job={name: sort_test_results(agg) for name, agg in by_job_raw.items()},
        by_platform={name: sort_test_results(agg) for name, agg in by_platform_raw.items()},
        job_failures_by_bugzilla_component=group_failures_by_component(raw_job_results, bug_cache, release),
        failure_groups=find_failure_groups(window, failure_group_threshold),
    )

    report.job_results, report.infrequent_job_results = summarize_job_run_results(
        raw_job_results, report.by_job, bug_cache, release, lookback_day - start_day
    )

    logger.info(f"Built report for release {release}: {len(window)} runs in window "
                f"[{start_day}, {lookback_day}) days, {len(raw_job_results)} jobs")
    return report


def compare_tests(
    current: SortedAggregateTestsResult,
    previous: Optional[SortedAggregateTestsResult]
) -> List[Comparison]:
    """Pair each current test with its pass percentage in the previous period."""
    previous_tests = previous.test_results if previous is not None else []
    comparisons = []
    for test in current.test_results:
        prev = get_prev_test(test.name, previous_tests)
        comparisons.append(Comparison(
            name=test.name,
            current_pass_percentage=test.pass_percentage,
            previous_pass_percentage=prev.pass_percentage if prev is not None else None,
        ))
    return comparisons


def build_release_health(
    db: Session,
    release: str,
    bug_cache: BugCache,
    current_days: int = 7,
    previous_days: int = 7,
    now: Optional[int] = None,
    failure_group_threshold: int = 10
) -> ReleaseHealth:
    """
    Compare the current period of a release with the period before it.

    Args:
        db: Database session
        release: Release name
        bug_cache: Bug lookup used for known failure attribution
        current_days: Length of the current period in days
        previous_days: Length of the previous period in days
        now: Override for the current time in ms since epoch
        failure_group_threshold: Min test failures for a run to be a failure group

    Returns:
        ReleaseHealth with both reports and their comparisons
    """
    if now is None:
        now = now_millis()

    current = build_test_report(
        db, release, bug_cache, 0, current_days, now,
        failure_group_threshold=failure_group_threshold
    )
    previous = build_test_report(
        db, release, bug_cache, current_days, current_days + previous_days, now,
        failure_group_threshold=failure_group_threshold
    )

    platforms = summarize_jobs_by_platform(current)
    previous_platforms = summarize_jobs_by_platform(previous)
    components = summarize_jobs_failures_by_bugzilla_component(current)
    previous_components = summarize_jobs_failures_by_bugzilla_component(previous)

    health = ReleaseHealth(
        release=release,
        current=current,
        previous=previous,
        platforms=platforms,
        components=components,
        failure_group_stats=compute_failure_group_stats(current.failure_groups, previous.failure_groups),
    )

    previous_jobs = previous.job_results + previous.infrequent_job_results
    for job in current.job_results + current.infrequent_job_results:
        prev = get_job_result_for_job_name(job.name, previous_jobs)
        health.job_comparisons.append(Comparison(
            name=job.name,
            current_pass_percentage=job.pass_percentage,
            previous_pass_percentage=prev.pass_percentage if prev is not None else None,
        ))

    for platform in platforms:
        prev = get_prev_platform(platform.platform, previous_platforms)
        health.platform_comparisons.append(Comparison(
            name=platform.name,
            current_pass_percentage=platform.pass_percentage,
            previous_pass_percentage=prev.pass_percentage if prev is not None else None,
        ))

    # Components are ranked by fail percentage; compare their pass side
    for component in components:
        prev = get_prev_bugzilla_job_failures(component.name, previous_components)
        health.component_comparisons.append(Comparison(
            name=component.name,
            current_pass_percentage=100.0 - component.jobs_failed[0].fail_percentage,
            previous_pass_percentage=(
                100.0 - prev.jobs_failed[0].fail_percentage if prev is not None else None
            ),
        ))

    return health
