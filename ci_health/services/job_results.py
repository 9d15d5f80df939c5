"""
Job result aggregation.

Folds raw job runs into per-job pass percentages, crediting failed runs
whose every failing test is linked to a known bug.
"""
import logging
from typing import Dict, List, Mapping, Tuple

from ci_health.constants import ANY_COMPONENT, INFREQUENT_JOB_RUN_FACTOR
from ci_health.processing.models import (
    JobResult,
    RawJobResult,
    RawJobRunResult,
    SortedAggregateTestsResult,
)
from ci_health.services.bug_cache import BugCache
from ci_health.services.stats import percent

logger = logging.getLogger(__name__)


def all_failures_known(run: RawJobRunResult, bug_cache: BugCache, release: str) -> bool:
    """
    Check whether every test failure in a run is attributed to a known bug.

    If any failure is unknown, the run is an "unknown failure" that cannot be
    assumed to pass once the known bugs are fixed. A run without failed
    tests is trivially known.

    Args:
        run: Job run to check
        bug_cache: Bug lookup
        release: Release the bugs must apply to

    Returns:
        True if all failed tests have at least one linked bug
    """
    for test_name in run.failed_test_names:
        if not bug_cache.list_bugs(release, ANY_COMPONENT, test_name):
            return False
    return True


def convert_raw_job_result_to_processed_job_result(
    raw_job_result: RawJobResult,
    by_job: Mapping[str, SortedAggregateTestsResult],
    bug_cache: BugCache,
    release: str
) -> JobResult:
    """
    Aggregate the runs of one job.

    A failed run counts as a failure, otherwise a succeeded run counts as a
    success; a run that is neither is not counted. Failed runs whose
    failures are all known also count as known failures, which the second
    percentage credits as passes.

    Args:
        raw_job_result: Job and its runs
        by_job: Pre-built per-test summaries keyed by job name
        bug_cache: Bug lookup
        release: Release the bugs must apply to

    Returns:
        Aggregated JobResult
    """
    tests = by_job.get(raw_job_result.job_name)
    job = JobResult(
        name=raw_job_result.job_name,
        dashboard_url=raw_job_result.dashboard_url,
        test_results=list(tests.test_results) if tests is not None else [],
    )

    for run in raw_job_result.job_run_results:
        if run.failed:
            job.failures += 1
        elif run.succeeded:
            job.successes += 1
        if run.failed and all_failures_known(run, bug_cache, release):
            job.known_failures += 1

    job.pass_percentage = percent(job.successes, job.failures)
    job.pass_percentage_with_known_failures = percent(
        job.successes + job.known_failures,
        job.failures - job.known_failures
    )
    return job


def is_frequent_job(job: JobResult, number_of_days_of_data: int) -> bool:
    """Whether a job ran more than 1.5 times per day of data."""
    numerator, denominator = INFREQUENT_JOB_RUN_FACTOR
    return job.successes + job.failures > number_of_days_of_data * numerator // denominator


def sort_by_pass_percentage(jobs: List[JobResult]) -> List[JobResult]:
    """Stable sort from lowest to highest pass percentage."""
    return sorted(jobs, key=lambda j: j.pass_percentage)


def summarize_job_run_results(
    raw_job_results: Mapping[str, RawJobResult],
    by_job: Mapping[str, SortedAggregateTestsResult],
    bug_cache: BugCache,
    release: str,
    number_of_days_of_data: int
) -> Tuple[List[JobResult], List[JobResult]]:
    """
    Aggregate all jobs and split regular jobs from infrequent ones.

    Args:
        raw_job_results: Raw results keyed by job name
        by_job: Pre-built per-test summaries keyed by job name
        bug_cache: Bug lookup
        release: Release the bugs must apply to
        number_of_days_of_data: Days covered by the report

    Returns:
        (jobs, infrequent_jobs), each sorted worst pass percentage first
    """
    jobs: List[JobResult] = []
    infrequent_jobs: List[JobResult] = []

    for raw_job_result in raw_job_results.values():
        job = convert_raw_job_result_to_processed_job_result(
            raw_job_result, by_job, bug_cache, release
        )
        if is_frequent_job(job, number_of_days_of_data):
            jobs.append(job)
        else:
            infrequent_jobs.append(job)

    logger.info(f"Summarized {len(jobs)} jobs and {len(infrequent_jobs)} infrequent jobs "
                f"for release {release}")
    return sort_by_pass_percentage(jobs), sort_by_pass_percentage(infrequent_jobs)
