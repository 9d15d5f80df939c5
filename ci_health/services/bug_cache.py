"""
Bug lookup used to attribute test failures to known defects.

The aggregators only depend on the BugCache protocol; DatabaseBugCache is
the implementation backed by the synced bug mapping tables.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ci_health.constants import ANY_COMPONENT
from ci_health.models.db_models import BugMetadata, BugTestMapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bug:
    """A known defect linked to a failing test."""
    bug_id: str
    url: str
    summary: Optional[str] = None
    status: Optional[str] = None
    component: Optional[str] = None


class BugCache(Protocol):
    """Lookup of the known bugs that explain a test failure."""

    def list_bugs(self, release: str, component: str, test_name: str) -> List[Bug]:
        """
        Bugs linked to test_name for the release.

        An empty component matches bugs in any component. An empty result
        means the failure is unknown.
        """
        ...


class DatabaseBugCache:
    """
    BugCache backed by the bug_metadata and bug_test_mappings tables.

    Lookups are memoized for the lifetime of the instance so that one
    report build sees a single consistent snapshot. Create a new instance
    per report.
    """

    def __init__(self, db: Session):
        self.db = db
        self._by_test: Dict[Tuple[str, str], List[Bug]] = {}

    def list_bugs(self, release: str, component: str, test_name: str) -> List[Bug]:
        key = (release, test_name)
        bugs = self._by_test.get(key)
        if bugs is None:
            bugs = self._load(release, test_name)
            self._by_test[key] = bugs

        if component == ANY_COMPONENT:
            return list(bugs)
        return [bug for bug in bugs if bug.component == component]

    def _load(self, release: str, test_name: str) -> List[Bug]:
        mappings = self.db.query(BugTestMapping).options(
            joinedload(BugTestMapping.bug)
        ).join(
            BugMetadata, BugMetadata.id == BugTestMapping.bug_pk
        ).filter(
            BugTestMapping.test_name == test_name,
            BugMetadata.is_active == True,
            or_(BugTestMapping.release == release, BugTestMapping.release.is_(None))
        ).order_by(BugMetadata.bug_id).all()

        bugs = []
        seen = set()
        for mapping in mappings:
            if mapping.bug.bug_id in seen:
                continue
            seen.add(mapping.bug.bug_id)
            bugs.append(Bug(
                bug_id=mapping.bug.bug_id,
                url=mapping.bug.url,
                summary=mapping.bug.summary,
                status=mapping.bug.status,
                component=mapping.bug.component,
            ))

        logger.debug(f"Found {len(bugs)} bugs for test '{test_name}' in release {release}")
        return bugs
