"""
In-memory report processing types.
"""
from ci_health.processing.models import (
    RawJobRunResult,
    RawJobResult,
    RawTestResult,
    AggregateTestsResult,
    TestResult,
    SortedAggregateTestsResult,
    JobResult,
    BugzillaJobResult,
    SortedBugzillaComponentResult,
    FailureGroup,
    TestReport,
)

__all__ = [
    'RawJobRunResult',
    'RawJobResult',
    'RawTestResult',
    'AggregateTestsResult',
    'TestResult',
    'SortedAggregateTestsResult',
    'JobResult',
    'BugzillaJobResult',
    'SortedBugzillaComponentResult',
    'FailureGroup',
    'TestReport',
]
