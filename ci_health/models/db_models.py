"""
SQLAlchemy database models for the CI health dashboard.

This module defines the schema for job runs, per-test outcomes and the
bug-to-test mappings used to attribute failures to known defects.
"""
from datetime import datetime, timezone
import enum
from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, DateTime, Text, ForeignKey,
    Enum as SQLEnum, Index
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class TestStatusEnum(str, enum.Enum):
    """Outcome of one test within one job run.

    FLAKE means the test failed and then passed on retry within the run; it
    is not counted as a hard failure.
    """
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    FLAKE = "FLAKE"


class Release(Base):
    """Release branch whose CI jobs are tracked."""
    __tablename__ = "releases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)  # e.g., "4.9"
    created_at = Column(DateTime, default=utcnow)

    jobs = relationship("Job", back_populates="release", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Release(name='{self.name}')>"


class Job(Base):
    """A named CI job definition within a release."""
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    release_id = Column(Integer, ForeignKey("releases.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(300), nullable=False)
    dashboard_url = Column(String(2000))
    created_at = Column(DateTime, default=utcnow)

    release = relationship("Release", back_populates="jobs")
    variants = relationship("JobVariant", back_populates="job", cascade="all, delete-orphan")
    runs = relationship("JobRun", back_populates="job", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_release_job', 'release_id', 'name', unique=True),
    )

    @property
    def variant_names(self):
        return sorted(v.name for v in self.variants)

    def __repr__(self):
        return f"<Job(name='{self.name}', release_id={self.release_id})>"


class JobVariant(Base):
    """Variant label of a job (e.g., "aws", "upgrade", "ovn")."""
    __tablename__ = "job_variants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)

    job = relationship("Job", back_populates="variants")

    __table_args__ = (
        Index('idx_job_variant', 'job_id', 'name', unique=True),
        Index('idx_variant_name', 'name'),
    )

    def __repr__(self):
        return f"<JobVariant(job_id={self.job_id}, name='{self.name}')>"


class JobRun(Base):
    """One executed instance of a job."""
    __tablename__ = "job_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    url = Column(String(2000), nullable=False)
    timestamp = Column(BigInteger, nullable=False)  # ms since epoch

    # A run may be neither succeeded nor failed (e.g., aborted)
    succeeded = Column(Boolean, default=False, nullable=False)
    failed = Column(Boolean, default=False, nullable=False)
    test_failures = Column(Integer, default=0, nullable=False)  # Denormalized count

    job = relationship("Job", back_populates="runs")
    test_outcomes = relationship("TestOutcome", back_populates="job_run",
                                 cascade="all, delete-orphan",
                                 order_by="TestOutcome.id")

    __table_args__ = (
        Index('idx_job_run_url', 'job_id', 'url', unique=True),
        Index('idx_job_run_timestamp', 'timestamp'),
    )

    def __repr__(self):
        return f"<JobRun(job_id={self.job_id}, timestamp={self.timestamp}, failed={self.failed})>"


class TestOutcome(Base):
    """Result of a single test within a job run."""
    __tablename__ = "test_outcomes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_run_id = Column(Integer, ForeignKey("job_runs.id", ondelete="CASCADE"), nullable=False)
    test_name = Column(Text, nullable=False)
    status = Column(SQLEnum(TestStatusEnum), nullable=False, index=True)

    job_run = relationship("JobRun", back_populates="test_outcomes")

    __table_args__ = (
        Index('idx_outcome_run_status', 'job_run_id', 'status'),
    )

    def __repr__(self):
        return f"<TestOutcome(test_name='{self.test_name}', status={self.status.value})>"


class BugMetadata(Base):
    """Defect tracker entry that can explain test failures."""
    __tablename__ = "bug_metadata"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bug_id = Column(String(50), nullable=False, unique=True)
    url = Column(String(500), nullable=False)
    summary = Column(Text)
    status = Column(String(50))
    component = Column(String(200))
    is_active = Column(Boolean, default=True, nullable=False)  # Whether bug is in the latest payload
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    mappings = relationship("BugTestMapping", back_populates="bug",
                            cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_bug_component', 'component'),
        Index('idx_bug_is_active', 'is_active'),
    )

    def __repr__(self):
        return f"<BugMetadata(bug_id='{self.bug_id}', component='{self.component}')>"


class BugTestMapping(Base):
    """Links a bug to a test name, optionally scoped to one release."""
    __tablename__ = "bug_test_mappings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bug_pk = Column(Integer, ForeignKey('bug_metadata.id', ondelete='CASCADE'), nullable=False)
    test_name = Column(Text, nullable=False)
    release = Column(String(50))  # NULL applies to every release
    created_at = Column(DateTime, default=utcnow)

    bug = relationship("BugMetadata", back_populates="mappings")

    __table_args__ = (
        Index('idx_mapping_bug', 'bug_pk'),
        Index('idx_mapping_release', 'release'),
    )

    def __repr__(self):
        return f"<BugTestMapping(bug_pk={self.bug_pk}, release='{self.release}')>"


class BugSyncLog(Base):
    """Logs bug mapping sync attempts and results."""
    __tablename__ = "bug_sync_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(String(20), nullable=False)  # 'success', 'failed'
    bugs_updated = Column(Integer, default=0)
    mappings_created = Column(Integer, default=0)
    error_message = Column(Text)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime)

    __table_args__ = (
        Index('idx_bug_sync_started', 'started_at'),
    )

    def __repr__(self):
        return f"<BugSyncLog(id={self.id}, status='{self.status}', started_at={self.started_at})>"
