"""
In-memory data models for report processing.

Raw types are produced by the ingestion layer and consumed read-only by the
aggregators; the aggregated types are built fresh for every report.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class RawJobRunResult:
    """One executed instance of a job."""
    job: str
    job_run_url: str
    succeeded: bool = False
    failed: bool = False
    failed_test_names: List[str] = field(default_factory=list)
    test_failures: int = 0
    timestamp: int = 0  # ms since epoch


@dataclass
class RawJobResult:
    """All runs of one job definition."""
    job_name: str
    dashboard_url: str = ""
    job_run_results: List[RawJobRunResult] = field(default_factory=list)


@dataclass
class RawTestResult:
    """Cumulative outcome counts of one test within a category."""
    name: str
    successes: int = 0
    failures: int = 0
    flakes: int = 0


@dataclass
class AggregateTestsResult:
    """Per-test results for one category (a job or a platform), keyed by test name."""
    raw_test_results: Dict[str, RawTestResult] = field(default_factory=dict)


@dataclass
class TestResult:
    """Summarized outcome of one test."""
    name: str
    successes: int = 0
    failures: int = 0
    flakes: int = 0
    pass_percentage: float = 0.0


@dataclass
class SortedAggregateTestsResult:
    """Per-test summaries of one category, worst pass percentage first."""
    successes: int = 0
    failures: int = 0
    test_pass_percentage: float = 0.0
    test_results: List[TestResult] = field(default_factory=list)


@dataclass
class JobResult:
    """
    Aggregated results of a job, or of a platform when rolled up across jobs.

    Platform rollups set both name and platform to the platform tag and
    never carry a dashboard URL.
    """
    name: str
    platform: Optional[str] = None
    dashboard_url: str = ""
    successes: int = 0
    failures: int = 0
    known_failures: int = 0
    pass_percentage: float = 0.0
    pass_percentage_with_known_failures: float = 0.0
    test_results: List[TestResult] = field(default_factory=list)


@dataclass
class BugzillaJobResult:
    """How often one job failed because of one defect component."""
    job_name: str
    bugzilla_component: str
    number_of_job_runs_failed: int = 0
    fail_percentage: float = 0.0
    total_runs: int = 0


@dataclass
class SortedBugzillaComponentResult:
    """A defect component with the jobs it failed, highest fail percentage first."""
    name: str
    jobs_failed: List[BugzillaJobResult] = field(default_factory=list)


@dataclass(frozen=True)
class FailureGroup:
    """A job run in which many tests failed together."""
    job: str
    url: str
    test_failures: int
    timestamp: int = 0


@dataclass
class TestReport:
    """Everything computed for one release over one reporting window."""
    release: str
    timestamp: int = 0  # ms since epoch, "now" for the report
    by_job: Dict[str, SortedAggregateTestsResult] = field(default_factory=dict)
    by_platform: Dict[str, SortedAggregateTestsResult] = field(default_factory=dict)
    job_results: List[JobResult] = field(default_factory=list)
    infrequent_job_results: List[JobResult] = field(default_factory=list)
    job_failures_by_bugzilla_component: Dict[str, SortedBugzillaComponentResult] = field(default_factory=dict)
    failure_groups: List[FailureGroup] = field(default_factory=list)
