"""
Cross-job rollups of a test report: by platform and by defect component.
"""
import logging
from typing import Callable, Dict, List

from ci_health.processing.models import JobResult, SortedBugzillaComponentResult, TestReport
from ci_health.services.job_identification import find_platform
from ci_health.services.job_results import sort_by_pass_percentage
from ci_health.services.stats import percent

logger = logging.getLogger(__name__)


def summarize_jobs_by_platform(
    report: TestReport,
    classify: Callable[[str], List[str]] = find_platform
) -> List[JobResult]:
    """
    Roll job results up into one JobResult per platform tag.

    A job with several platform tags contributes its full counts to each of
    them. Platform results carry no dashboard URL, and their test results
    come from report.by_platform.

    Args:
        report: Report whose job_results are rolled up
        classify: Job name to platform tags

    Returns:
        Platform results, lowest pass percentage first
    """
    by_platform: Dict[str, JobResult] = {}

    for job in report.job_results:
        for platform in classify(job.name):
            rollup = by_platform.get(platform)
            if rollup is None:
                rollup = JobResult(name=platform, platform=platform)
                by_platform[platform] = rollup
            rollup.successes += job.successes
            rollup.failures += job.failures
            rollup.known_failures += job.known_failures
            tests = report.by_platform.get(platform)
            rollup.test_results = list(tests.test_results) if tests is not None else []

    for rollup in by_platform.values():
        rollup.pass_percentage = percent(rollup.successes, rollup.failures)
        rollup.pass_percentage_with_known_failures = percent(
            rollup.successes + rollup.known_failures,
            rollup.failures - rollup.known_failures
        )

    logger.debug(f"Rolled {len(report.job_results)} jobs up into {len(by_platform)} platforms")
    return sort_by_pass_percentage(list(by_platform.values()))


def summarize_jobs_failures_by_bugzilla_component(report: TestReport) -> List[SortedBugzillaComponentResult]:
    """
    Rank defect components by the fail percentage of their worst job.

    Highest fail percentage first; ties are ordered by component name,
    case-insensitively. Every component must have at least one failed job.
    """
    components = list(report.job_failures_by_bugzilla_component.values())
    return sorted(
        components,
        key=lambda c: (-c.jobs_failed[0].fail_percentage, c.name.lower())
    )
