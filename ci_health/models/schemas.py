"""
Pydantic schemas for API responses.

These schemas define the API contract separate from the database models
and the in-memory processing types.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


class TestResultSchema(BaseModel):
    """Per-test summary within a job or platform."""
    model_config = ConfigDict(from_attributes=True)

    name: str
    successes: int
    failures: int
    flakes: int
    pass_percentage: float


class JobResultSchema(BaseModel):
    """Aggregated results of a job or a platform."""
    model_config = ConfigDict(from_attributes=True)

    name: str
    platform: Optional[str] = None
    dashboard_url: str = ""
    successes: int
    failures: int
    known_failures: int
    pass_percentage: float
    pass_percentage_with_known_failures: float
    test_results: List[TestResultSchema] = []


class JobSummaryResponse(BaseModel):
    """Regular and infrequent jobs of a reporting window."""
    release: str
    days: int
    jobs: List[JobResultSchema]
    infrequent_jobs: List[JobResultSchema]


class BugzillaJobResultSchema(BaseModel):
    """Failures of one job attributed to one defect component."""
    model_config = ConfigDict(from_attributes=True)

    job_name: str
    bugzilla_component: str
    number_of_job_runs_failed: int
    fail_percentage: float
    total_runs: int


class BugzillaComponentSchema(BaseModel):
    """Defect component with the jobs it failed."""
    model_config = ConfigDict(from_attributes=True)

    name: str
    jobs_failed: List[BugzillaJobResultSchema]


class ComparisonSchema(BaseModel):
    """Current vs previous pass percentage."""
    model_config = ConfigDict(from_attributes=True)

    name: str
    current_pass_percentage: float
    previous_pass_percentage: Optional[float] = None
    net_improvement: Optional[float] = None


class FailureGroupStatsSchema(BaseModel):
    """Failure group statistics; median fields hold the midpoint value of the sorted groups."""
    count: int
    count_prev: int
    median: int
    median_prev: int
    avg: int
    avg_prev: int


class ReleaseHealthSchema(BaseModel):
    """Current vs previous period summary of a release."""
    release: str
    jobs: List[JobResultSchema]
    infrequent_jobs: List[JobResultSchema]
    platforms: List[JobResultSchema]
    components: List[BugzillaComponentSchema]
    job_comparisons: List[ComparisonSchema]
    platform_comparisons: List[ComparisonSchema]
    component_comparisons: List[ComparisonSchema]
    failure_group_stats: FailureGroupStatsSchema


class TestReportSchema(BaseModel):
    """Per-test counts for the current and previous period."""
    name: str
    release: str
    variant: Optional[str] = None
    current_runs: int = 0
    current_successes: int = 0
    current_failures: int = 0
    current_flakes: int = 0
    previous_runs: int = 0
    previous_successes: int = 0
    previous_failures: int = 0
    previous_flakes: int = 0
    current_pass_percentage: Optional[float] = Field(None, description="None when the period has no runs")
    current_failure_percentage: Optional[float] = None
    previous_pass_percentage: Optional[float] = None
    previous_failure_percentage: Optional[float] = None
    net_improvement: Optional[float] = Field(None, description="Current minus previous pass percentage")


class BugSyncStatusSchema(BaseModel):
    """Status of the bug mapping sync."""
    total_bugs: int
    active_bugs: int
    mappings: int
    last_sync_status: Optional[str] = None
    last_sync_started_at: Optional[datetime] = None
    last_sync_completed_at: Optional[datetime] = None
    last_sync_error: Optional[str] = None
