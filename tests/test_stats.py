"""
Tests for the shared statistics helpers.
"""
import re

import pytest

from ci_health.constants import LOOKBACK_START_SENTINEL, MILLIS_PER_DAY
from ci_health.processing.models import (
    AggregateTestsResult,
    FailureGroup,
    JobResult,
    SortedBugzillaComponentResult,
    TestResult,
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
    percent,
    relevant_job,
)

NOW = 1_633_046_400_000  # 2021-10-01T00:00:00Z


def daily_timestamps(days):
    """One timestamp per day, most recent first, each half a day past the day boundary."""
    return [NOW - int((d + 0.5) * MILLIS_PER_DAY) for d in range(days)]


def group(failures, job="job-a"):
    return FailureGroup(job=job, url=f"https://prow.example.com/{job}/{failures}", test_failures=failures)


class TestPercent:
    """Tests for percent."""

    def test_zero_total_is_zero(self):
        """Test that no data yields 0.0 instead of an error."""
        assert percent(0, 0) == 0.0

    def test_all_success(self):
        """Test 100% pass."""
        assert percent(5, 0) == 100.0

    def test_all_failure(self):
        """Test 0% pass."""
        assert percent(0, 5) == 0.0

    def test_fraction(self):
        """Test a regular ratio."""
        assert percent(7, 3) == pytest.approx(70.0)
        assert percent(1, 2) == pytest.approx(33.333333, rel=1e-6)

    @pytest.mark.parametrize("successes", range(4))
    @pytest.mark.parametrize("failures", range(4))
    def test_monotonic(self, successes, failures):
        """Test that one more success never lowers the result and one more failure never raises it."""
        assert percent(successes + 1, failures) >= percent(successes, failures)
        assert percent(successes, failures + 1) <= percent(successes, failures)

    def test_floor_next_to_single_runs(self):
        assert percent(1, 0) > percent(0, 0)
        assert percent(0, 1) == percent(0, 0)


class TestComputeLookback:
    """Tests for compute_lookback."""

    def test_current_week(self):
        """Test that the current window starts at index 0 and stops at the 7 day crossing."""
        timestamps = daily_timestamps(10)
        assert compute_lookback(0, 7, timestamps, now=NOW) == (0, 7)

    def test_previous_week(self):
        """Test the window between 7 and 14 days ago."""
        timestamps = daily_timestamps(20)
        assert compute_lookback(7, 14, timestamps, now=NOW) == (7, 14)

    def test_stop_not_reached_returns_length(self):
        """Test that stop is len(timestamps) when nothing is older than the stop cutoff."""
        timestamps = daily_timestamps(5)
        assert compute_lookback(0, 7, timestamps, now=NOW) == (0, 5)

    def test_no_timestamp_older_than_start_keeps_sentinel(self):
        """Test the unmodified start sentinel when nothing is older than start_day."""
        timestamps = daily_timestamps(3)
        start, stop = compute_lookback(7, 14, timestamps, now=NOW)
        assert start == LOOKBACK_START_SENTINEL
        assert stop == 3

    def test_empty_timestamps(self):
        """Test empty input."""
        assert compute_lookback(0, 7, [], now=NOW) == (LOOKBACK_START_SENTINEL, 0)

    def test_inverted_window_returns_at_first_stop_crossing(self):
        """
        Test start_day=7, lookback_day=1 over 10 days of data.

        The scan returns at the 1 day crossing before any timestamp is older
        than 7 days, so start keeps the sentinel.
        """
        timestamps = daily_timestamps(10)
        start, stop = compute_lookback(7, 1, timestamps, now=NOW)
        assert stop == 1
        assert start == LOOKBACK_START_SENTINEL

    def test_timestamp_equal_to_cutoff_is_not_older(self):
        """Test that the comparison against the cutoffs is strict."""
        timestamps = [NOW - 7 * MILLIS_PER_DAY, NOW - 7 * MILLIS_PER_DAY - 1]
        assert compute_lookback(0, 7, timestamps, now=NOW) == (0, 1)

    def test_defaults_to_current_time(self):
        """Test that now defaults to the wall clock."""
        assert compute_lookback(0, 7, []) == (LOOKBACK_START_SENTINEL, 0)


class TestComputeFailureGroupStats:
    """Tests for compute_failure_group_stats."""

    def test_counts_midpoint_and_average(self):
        """Test the statistics of sorted groups."""
        current = [group(30), group(20), group(10)]
        previous = [group(25), group(15)]
        stats = compute_failure_group_stats(current, previous)

        assert stats == FailureGroupStats(
            count=60, count_prev=40, median=20, median_prev=15, avg=20, avg_prev=30
        )

    def test_avg_prev_divides_current_count(self):
        """Test that the previous average divides the current count by the previous length."""
        stats = compute_failure_group_stats([group(12)], [group(100), group(100), group(100), group(100)])
        assert stats.count_prev == 400
        assert stats.avg_prev == 12 // 4

    def test_midpoint_depends_on_order(self):
        """Test that the midpoint reads position len // 2 as given."""
        stats = compute_failure_group_stats([group(10), group(50), group(11), group(12)], [])
        assert stats.median == 11

    def test_integer_division(self):
        """Test that averages are truncated."""
        stats = compute_failure_group_stats([group(10), group(11)], [])
        assert stats.avg == 10

    def test_empty_collections(self):
        """Test that empty collections yield zeros."""
        assert compute_failure_group_stats([], []) == FailureGroupStats(0, 0, 0, 0, 0, 0)

    def test_empty_current_with_previous(self):
        """Test previous groups with no current groups."""
        stats = compute_failure_group_stats([], [group(15), group(25)])
        assert stats.count == 0
        assert stats.count_prev == 40
        assert stats.median_prev == 25
        assert stats.avg == 0
        assert stats.avg_prev == 0


class TestAddTestResult:
    """Tests for add_test_result."""

    def test_creates_category_and_test(self):
        """Test get-or-create of both levels."""
        categories = {}
        add_test_result("aws", categories, "test-a", 1, 0, 0)

        assert "aws" in categories
        result = categories["aws"].raw_test_results["test-a"]
        assert (result.successes, result.failures, result.flakes) == (1, 0, 0)

    def test_accumulates_additively(self):
        """Test that repeated contributions to one test are summed."""
        categories = {"aws": AggregateTestsResult()}
        add_test_result("aws", categories, "test-a", 1, 0, 0)
        add_test_result("aws", categories, "test-a", 0, 1, 0)
        add_test_result("aws", categories, "test-a", 1, 0, 1)

        assert len(categories["aws"].raw_test_results) == 1
        result = categories["aws"].raw_test_results["test-a"]
        assert (result.successes, result.failures, result.flakes) == (2, 1, 1)

    def test_categories_are_independent(self):
        """Test that categories do not share results."""
        categories = {}
        add_test_result("aws", categories, "test-a", 1, 0, 0)
        add_test_result("gcp", categories, "test-a", 0, 1, 0)

        assert categories["aws"].raw_test_results["test-a"].failures == 0
        assert categories["gcp"].raw_test_results["test-a"].successes == 0


class TestLookupHelpers:
    """Tests for job filter and previous-period lookups."""

    def test_relevant_job_without_filter(self):
        assert relevant_job("e2e-aws") is True

    def test_relevant_job_with_filter(self):
        job_filter = re.compile(r"-aws")
        assert relevant_job("periodic-e2e-aws-ovn", job_filter) is True
        assert relevant_job("periodic-e2e-gcp", job_filter) is False

    def test_get_prev_test(self):
        results = [TestResult(name="a", pass_percentage=50.0), TestResult(name="b")]
        assert get_prev_test("a", results).pass_percentage == 50.0
        assert get_prev_test("missing", results) is None

    def test_get_job_result_for_job_name(self):
        jobs = [JobResult(name="job-a"), JobResult(name="job-b")]
        assert get_job_result_for_job_name("job-b", jobs) is jobs[1]
        assert get_job_result_for_job_name("job-c", jobs) is None

    def test_get_prev_platform_matches_platform_field(self):
        platforms = [JobResult(name="aws", platform="aws"), JobResult(name="gcp", platform="gcp")]
        assert get_prev_platform("gcp", platforms) is platforms[1]
        assert get_prev_platform("azure", platforms) is None

    def test_get_prev_bugzilla_job_failures(self):
        components = [SortedBugzillaComponentResult(name="Networking")]
        assert get_prev_bugzilla_job_failures("Networking", components) is components[0]
        assert get_prev_bugzilla_job_failures("Storage", components) is None
