"""
Import service for storing job run observations.

Validates job run payloads with pydantic and converts them into database
records. Runs already stored (same job and run URL) are skipped, so the
same payload can be imported repeatedly.
"""
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ci_health.models.db_models import (
    Job, JobRun, JobVariant, Release, TestOutcome, TestStatusEnum
)

logger = logging.getLogger(__name__)


class TestOutcomeImport(BaseModel):
    """Outcome of one test in an imported run."""
    name: str = Field(..., min_length=1)
    status: TestStatusEnum


class JobRunImport(BaseModel):
    """One imported run."""
    url: str = Field(..., min_length=1)
    timestamp: int = Field(..., ge=0, description="ms since epoch")
    succeeded: bool = False
    failed: bool = False  # counted as a failure in reports even when succeeded is also set
    tests: List[TestOutcomeImport] = Field(default_factory=list)


class JobImport(BaseModel):
    """A job with the runs to import."""
    name: str = Field(..., min_length=1)
    dashboard_url: str = ""
    variants: List[str] = Field(default_factory=list)
    runs: List[JobRunImport] = Field(default_factory=list)


class JobRunsPayload(BaseModel):
    """Root structure of a job run import."""
    release: str = Field(..., min_length=1, max_length=50)
    jobs: List[JobImport] = Field(default_factory=list)


def get_or_create_release(db: Session, release_name: str) -> Release:
    """Get existing release or create new one."""
    release = db.query(Release).filter(Release.name == release_name).first()
    if not release:
        logger.info(f"Auto-creating release: {release_name}")
        release = Release(name=release_name)
        db.add(release)
        db.flush()
    return release


def get_or_create_job(db: Session, release: Release, job_import: JobImport) -> Job:
    """
    Get existing job or create new one, adding any new variants.

    The dashboard URL is updated when the import provides one.
    """
    job = db.query(Job).filter(
        Job.release_id == release.id,
        Job.name == job_import.name
    ).first()

    if not job:
        job = Job(release_id=release.id, name=job_import.name, dashboard_url=job_import.dashboard_url)
        db.add(job)
        db.flush()
    elif job_import.dashboard_url:
        job.dashboard_url = job_import.dashboard_url

    existing_variants = {v.name for v in job.variants}
    for variant in job_import.variants:
        if variant not in existing_variants:
            job.variants.append(JobVariant(name=variant))
            existing_variants.add(variant)

    return job


def import_job_runs(db: Session, payload: Dict) -> Dict[str, int]:
    """
    Import job runs for one release.

    Args:
        db: Database session (flushed, not committed)
        payload: Raw payload matching JobRunsPayload

    Returns:
        Statistics dict: {'jobs': int, 'runs_imported': int, 'runs_skipped': int, 'test_outcomes': int}

    Raises:
        ValidationError: If the payload does not match JobRunsPayload
    """
    data = JobRunsPayload.model_validate(payload)
    release = get_or_create_release(db, data.release)

    stats = {'jobs': 0, 'runs_imported': 0, 'runs_skipped': 0, 'test_outcomes': 0}

    for job_import in data.jobs:
        job = get_or_create_job(db, release, job_import)
        stats['jobs'] += 1

        known_urls = {
            url for (url,) in db.query(JobRun.url).filter(JobRun.job_id == job.id).all()
        }

        for run_import in job_import.runs:
            if run_import.url in known_urls:
                stats['runs_skipped'] += 1
                continue
            known_urls.add(run_import.url)

            run = JobRun(
                job_id=job.id,
                url=run_import.url,
                timestamp=run_import.timestamp,
                succeeded=run_import.succeeded,
                failed=run_import.failed,
                test_failures=count_failures(run_import.tests),
            )
            run.test_outcomes = [
                TestOutcome(test_name=t.name, status=t.status) for t in run_import.tests
            ]
            db.add(run)
            stats['runs_imported'] += 1
            stats['test_outcomes'] += len(run_import.tests)

    db.flush()
    logger.info(f"Imported job runs for release {data.release}: {stats}")
    return stats


def count_failures(tests: List[TestOutcomeImport]) -> int:
    """Number of hard test failures in a run."""
    return sum(1 for t in tests if t.status == TestStatusEnum.FAILURE)


def find_job(db: Session, release: str, job_name: str) -> Optional[Job]:
    """Get a job of a release by name."""
    return db.query(Job).join(Release, Release.id == Job.release_id).filter(
        Release.name == release,
        Job.name == job_name
    ).first()
