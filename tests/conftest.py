"""
Pytest configuration and fixtures for testing.
"""
import sys
from pathlib import Path
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to path
TESTS_DIR = Path(__file__).resolve().parent
PROJECT_DIR = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_DIR))

from ci_health.constants import MILLIS_PER_DAY
from ci_health.models.db_models import Base
from ci_health.services.stats import now_millis

RELEASE = "4.9"
AWS_JOB = "periodic-ci-openshift-release-master-ci-4.9-e2e-aws-ovn"
GCP_JOB = "periodic-ci-openshift-release-master-ci-4.9-e2e-gcp-upgrade"
NETWORK_TEST = "[sig-network] pods should be able to connect to services"
API_TEST = "[sig-api-machinery] list pods should succeed"
UPGRADE_TEST = "[sig-cluster-lifecycle] cluster upgrade should complete"


@pytest.fixture(scope="session", autouse=True)
def initialize_cache():
    """
    Initialize FastAPI cache for all tests.

    Without this, any endpoint using the @cache decorator will fail with
    'You must call init first!' error.
    """
    from fastapi_cache import FastAPICache
    from fastapi_cache.backends.inmemory import InMemoryBackend

    FastAPICache.init(InMemoryBackend())
    yield
    FastAPICache.reset()


@pytest.fixture(scope="function")
def test_db():
    """
    Create a temporary in-memory database for testing.
    Each test gets a fresh database.

    StaticPool keeps a single connection so the TestClient's worker thread
    sees the same in-memory database as the fixtures.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    TestSessionLocal = sessionmaker(bind=engine)
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture(scope="function")
def now():
    """Fixed "current time" in ms since epoch shared by a test's fixtures."""
    return now_millis()


def days_ago(now: int, days: float) -> int:
    """Timestamp the given number of days before now."""
    return int(now - days * MILLIS_PER_DAY)


def run_payload(url, timestamp, failed_tests=(), passed_tests=(API_TEST,), succeeded=None):
    """One job run entry of an import payload."""
    failed = bool(failed_tests)
    if succeeded is None:
        succeeded = not failed
    tests = [{"name": t, "status": "SUCCESS"} for t in passed_tests]
    tests += [{"name": t, "status": "FAILURE"} for t in failed_tests]
    return {
        "url": url,
        "timestamp": timestamp,
        "succeeded": succeeded,
        "failed": failed,
        "tests": tests,
    }


@pytest.fixture(scope="function")
def job_runs_payload(now):
    """
    Import payload for release 4.9.

    Current period (last 7 days):
        aws job: 12 runs, 9 succeeded, 3 failed on NETWORK_TEST
        gcp job: 3 runs, 1 succeeded, 2 failed on UPGRADE_TEST
    Previous period (7 to 14 days ago):
        aws job: 4 runs, 2 succeeded, 2 failed on NETWORK_TEST
    """
    aws_runs = []
    for i in range(12):
        url = f"https://prow.example.com/view/{AWS_JOB}/{1000 + i}"
        failed_tests = (NETWORK_TEST,) if i % 4 == 0 else ()
        aws_runs.append(run_payload(url, days_ago(now, 0.25 + i * 0.5), failed_tests))
    for i in range(4):
        url = f"https://prow.example.com/view/{AWS_JOB}/{900 + i}"
        failed_tests = (NETWORK_TEST,) if i < 2 else ()
        aws_runs.append(run_payload(url, days_ago(now, 8 + i), failed_tests))

    gcp_runs = [
        run_payload(f"https://prow.example.com/view/{GCP_JOB}/1", days_ago(now, 1)),
        run_payload(f"https://prow.example.com/view/{GCP_JOB}/2", days_ago(now, 2), (UPGRADE_TEST,)),
        run_payload(f"https://prow.example.com/view/{GCP_JOB}/3", days_ago(now, 3), (UPGRADE_TEST,)),
    ]

    return {
        "release": RELEASE,
        "jobs": [
            {
                "name": AWS_JOB,
                "dashboard_url": f"https://testgrid.example.com/redhat-openshift-ocp-release-4.9#{AWS_JOB}",
                "variants": ["aws", "ovn"],
                "runs": aws_runs,
            },
            {
                "name": GCP_JOB,
                "dashboard_url": f"https://testgrid.example.com/redhat-openshift-ocp-release-4.9#{GCP_JOB}",
                "variants": ["gcp", "upgrade"],
                "runs": gcp_runs,
            },
        ],
    }


@pytest.fixture(scope="function")
def sample_runs(test_db, job_runs_payload):
    """Import the sample payload and commit it."""
    from ci_health.services.import_service import import_job_runs

    stats = import_job_runs(test_db, job_runs_payload)
    test_db.commit()
    return stats


@pytest.fixture(scope="function")
def sample_bugs(test_db):
    """Active networking bug linked to NETWORK_TEST for 4.9, plus an inactive bug."""
    from ci_health.models.db_models import BugMetadata, BugTestMapping

    network_bug = BugMetadata(
        bug_id="2001234",
        url="https://bugzilla.example.com/show_bug.cgi?id=2001234",
        summary="pods cannot reach services after node reboot",
        status="ASSIGNED",
        component="Networking",
        is_active=True
    )
    stale_bug = BugMetadata(
        bug_id="1990001",
        url="https://bugzilla.example.com/show_bug.cgi?id=1990001",
        summary="cluster upgrade hangs on machine-config",
        status="CLOSED",
        component="Machine Config Operator",
        is_active=False
    )
    test_db.add_all([network_bug, stale_bug])
    test_db.flush()

    test_db.add_all([
        BugTestMapping(bug_pk=network_bug.id, test_name=NETWORK_TEST, release=RELEASE),
        BugTestMapping(bug_pk=stale_bug.id, test_name=UPGRADE_TEST, release=None),
    ])
    test_db.commit()
    return [network_bug, stale_bug]


@pytest.fixture(scope="function")
def override_get_db(test_db):
    """
    Override FastAPI's database dependency to use the test database.

    Usage in test files:
        def test_endpoint(client, sample_runs, override_get_db):
            response = client.get("/api/v1/reports/4.9/jobs")
    """
    from ci_health.main import app
    from ci_health.database import get_db

    def get_test_db():
        try:
            yield test_db
        finally:
            pass  # Don't close test_db here, conftest handles it

    app.dependency_overrides[get_db] = get_test_db
    yield
    app.dependency_overrides.clear()


class StubBugCache:
    """BugCache returning fixed bugs per test name and counting lookups."""

    def __init__(self, bugs_by_test=None):
        self.bugs_by_test = bugs_by_test or {}
        self.calls = []

    def list_bugs(self, release, component, test_name):
        self.calls.append((release, component, test_name))
        bugs = self.bugs_by_test.get(test_name, [])
        if component:
            return [b for b in bugs if b.component == component]
        return list(bugs)


@pytest.fixture
def stub_bug_cache():
    """Factory for StubBugCache instances."""
    return StubBugCache
