"""
Tests for platform and defect component rollups.
"""
import pytest

from ci_health.processing.models import (
    BugzillaJobResult,
    JobResult,
    SortedAggregateTestsResult,
    SortedBugzillaComponentResult,
    TestReport,
    TestResult,
)
from ci_health.services.report_summary import (
    summarize_jobs_by_platform,
    summarize_jobs_failures_by_bugzilla_component,
)

PLATFORMS = {
    "e2e-aws-ovn": ["aws", "ovn"],
    "e2e-aws": ["aws"],
    "e2e-gcp": ["gcp"],
    "e2e-unknown": [],
}


def classify(job_name):
    return PLATFORMS[job_name]


def job(name, successes, failures, known=0):
    return JobResult(
        name=name,
        dashboard_url=f"https://testgrid.example.com/#{name}",
        successes=successes,
        failures=failures,
        known_failures=known,
    )


def component(name, fail_percentage):
    return SortedBugzillaComponentResult(
        name=name,
        jobs_failed=[BugzillaJobResult(job_name="job-a", bugzilla_component=name,
                                       fail_percentage=fail_percentage)]
    )


class TestSummarizeJobsByPlatform:
    """Tests for summarize_jobs_by_platform."""

    def test_job_contributes_to_every_platform(self):
        """Test that a multi-platform job adds its full counts to each platform."""
        report = TestReport(release="4.9", job_results=[
            job("e2e-aws-ovn", 6, 4, known=2),
            job("e2e-aws", 4, 0),
        ])

        platforms = {p.name: p for p in summarize_jobs_by_platform(report, classify)}

        assert set(platforms) == {"aws", "ovn"}
        assert (platforms["aws"].successes, platforms["aws"].failures, platforms["aws"].known_failures) == (10, 4, 2)
        assert (platforms["ovn"].successes, platforms["ovn"].failures, platforms["ovn"].known_failures) == (6, 4, 2)
        assert platforms["ovn"].pass_percentage == pytest.approx(60.0)
        assert platforms["ovn"].pass_percentage_with_known_failures == pytest.approx(80.0)

    def test_platform_fields(self):
        """Test that name and platform are the tag and no URL is set."""
        report = TestReport(release="4.9", job_results=[job("e2e-gcp", 1, 1)])

        [platform] = summarize_jobs_by_platform(report, classify)

        assert platform.name == "gcp"
        assert platform.platform == "gcp"
        assert platform.dashboard_url == ""

    def test_jobs_without_platform_are_skipped(self):
        report = TestReport(release="4.9", job_results=[job("e2e-unknown", 1, 1)])
        assert summarize_jobs_by_platform(report, classify) == []

    def test_test_results_from_platform_summary(self):
        """Test that test results are taken from report.by_platform, not accumulated."""
        summary = SortedAggregateTestsResult(test_results=[TestResult(name="t1")])
        first = job("e2e-aws-ovn", 1, 0)
        first.test_results = [TestResult(name="job-level")]
        report = TestReport(
            release="4.9",
            by_platform={"aws": summary},
            job_results=[first, job("e2e-aws", 1, 0)],
        )

        platforms = {p.name: p for p in summarize_jobs_by_platform(report, classify)}

        assert [t.name for t in platforms["aws"].test_results] == ["t1"]
        assert platforms["ovn"].test_results == []

    def test_sorted_ascending(self):
        """Test lowest pass percentage first."""
        report = TestReport(release="4.9", job_results=[
            job("e2e-aws", 9, 1),
            job("e2e-gcp", 1, 9),
        ])
        assert [p.name for p in summarize_jobs_by_platform(report, classify)] == ["gcp", "aws"]

    def test_default_classifier(self):
        """Test the job name classifier used by default."""
        report = TestReport(release="4.9", job_results=[
            job("periodic-ci-openshift-release-master-ci-4.9-e2e-azure-upgrade", 3, 1),
        ])
        assert sorted(p.name for p in summarize_jobs_by_platform(report)) == ["azure", "upgrade"]


class TestSummarizeJobsFailuresByBugzillaComponent:
    """Tests for summarize_jobs_failures_by_bugzilla_component."""

    def test_descending_fail_percentage(self):
        """Test that the component with the worst job comes first."""
        report = TestReport(release="4.9", job_failures_by_bugzilla_component={
            "Storage": component("Storage", 60.0),
            "Networking": component("Networking", 80.0),
        })
        ranked = summarize_jobs_failures_by_bugzilla_component(report)
        assert [c.name for c in ranked] == ["Networking", "Storage"]

    def test_ties_ordered_case_insensitively(self):
        """Test that equal fail percentages are ordered by lowercased name."""
        report = TestReport(release="4.9", job_failures_by_bugzilla_component={
            "XYZ": component("XYZ", 50.0),
            "abc": component("abc", 50.0),
            "Mid": component("Mid", 50.0),
        })
        ranked = summarize_jobs_failures_by_bugzilla_component(report)
        assert [c.name for c in ranked] == ["abc", "Mid", "XYZ"]

    def test_only_first_job_is_ranked(self):
        """Test that ranking uses the first (worst) job of each component."""
        networking = component("Networking", 40.0)
        networking.jobs_failed.append(BugzillaJobResult(job_name="job-b", bugzilla_component="Networking",
                                                        fail_percentage=90.0))
        report = TestReport(release="4.9", job_failures_by_bugzilla_component={
            "Networking": networking,
            "Storage": component("Storage", 50.0),
        })
        ranked = summarize_jobs_failures_by_bugzilla_component(report)
        assert [c.name for c in ranked] == ["Storage", "Networking"]

    def test_empty(self):
        assert summarize_jobs_failures_by_bugzilla_component(TestReport(release="4.9")) == []
