"""
Bug Updater Service - Downloads and updates bug-to-test mappings.

Responsibilities:
- Download the bug mapping JSON document
- Validate it with pydantic
- UPSERT the bug_metadata table and deactivate bugs no longer listed
- Recreate bug_test_mappings
- Record each attempt in bug_sync_logs
"""
import logging
from typing import Dict, List, Optional, Tuple

import requests
from requests.auth import HTTPBasicAuth
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from ci_health.constants import SYNC_STATUS_FAILED, SYNC_STATUS_SUCCESS
from ci_health.models.db_models import BugMetadata, BugSyncLog, BugTestMapping, utcnow

logger = logging.getLogger(__name__)


# Pydantic schemas for validating the downloaded JSON
class BugRecord(BaseModel):
    """One bug and the tests it explains."""
    id: str
    url: str
    summary: Optional[str] = None
    status: Optional[str] = None
    component: Optional[str] = None
    target_releases: List[str] = Field(default_factory=list)
    test_names: List[str] = Field(default_factory=list)


class BugData(BaseModel):
    """Root structure of the bug mapping JSON."""
    bugs: List[BugRecord] = Field(default_factory=list)


class BugUpdaterService:
    """Service for updating bug mappings from the bug data URL."""

    def __init__(self, db: Session, user: str, token: str,
                 bug_data_url: str, verify_ssl: bool = True):
        """
        Initialize service.

        Args:
            db: Database session
            user: Username for basic auth (empty for anonymous access)
            token: API token for basic auth
            bug_data_url: URL of the bug mapping JSON
            verify_ssl: Whether to verify SSL certificates (default: True)
        """
        self.db = db
        self.auth = HTTPBasicAuth(user, token) if user else None
        self.bug_data_url = bug_data_url
        self.verify_ssl = verify_ssl

    def update_bug_mappings(self) -> Dict[str, int]:
        """
        Download the bug document and replace the stored bugs and mappings.

        Returns:
            Statistics dict: {
                'bugs_updated': int,
                'bugs_deactivated': int,
                'mappings_created': int
            }
        """
        logger.info(f"Syncing bug mappings from {self.bug_data_url}")
        sync_log = BugSyncLog(status=SYNC_STATUS_FAILED, started_at=utcnow())

        try:
            bug_data = self._download_json()
            bugs_data, mappings_data = self._parse_bugs(bug_data)
            bug_ids = self._upsert_bugs(bugs_data)
            deactivated = self._deactivate_missing(bug_ids)
            mappings_count = self._recreate_mappings(mappings_data)

            stats = {
                'bugs_updated': len(bugs_data),
                'bugs_deactivated': deactivated,
                'mappings_created': mappings_count
            }

            sync_log.status = SYNC_STATUS_SUCCESS
            sync_log.bugs_updated = stats['bugs_updated']
            sync_log.mappings_created = mappings_count
            sync_log.completed_at = utcnow()
            self.db.add(sync_log)
            self.db.commit()

            logger.info(f"Bug update complete: {stats}")
            return stats

        except Exception as e:
            self.db.rollback()
            logger.error(f"Bug update failed: {e}", exc_info=True)
            sync_log.error_message = str(e)
            sync_log.completed_at = utcnow()
            self.db.add(sync_log)
            self.db.commit()
            raise

    def _download_json(self) -> BugData:
        """
        Download and validate the bug mapping JSON.

        Returns:
            Validated BugData object

        Raises:
            ValidationError: If JSON structure doesn't match expected schema
            requests.RequestException: If download fails
        """
        if not self.bug_data_url:
            raise ValueError("BUG_DATA_URL is not configured")

        logger.info(f"Downloading bug data from {self.bug_data_url}")
        if not self.verify_ssl:
            logger.warning("SSL verification is disabled for bug data download")

        response = requests.get(
            self.bug_data_url,
            auth=self.auth,
            timeout=30,
            verify=self.verify_ssl
        )
        response.raise_for_status()

        try:
            bug_data = BugData.model_validate(response.json())
        except ValidationError as e:
            logger.error(f"Bug data validation failed: {e}")
            raise

        logger.info(f"Downloaded and validated {len(bug_data.bugs)} bugs")
        return bug_data

    def _parse_bugs(self, bug_data: BugData) -> Tuple[List[Dict], List[Dict]]:
        """
        Split validated data into bug rows and mapping rows.

        A bug without target releases applies to every release and yields
        mappings with release None.

        Returns:
            (bugs_data, mappings_data)
        """
        bugs_data = []
        mappings_data = []

        for bug in bug_data.bugs:
            bugs_data.append({
                'bug_id': bug.id,
                'url': bug.url,
                'summary': bug.summary,
                'status': bug.status,
                'component': bug.component,
            })

            releases = bug.target_releases or [None]
            for test_name in bug.test_names:
                test_name = test_name.strip()
                if not test_name:
                    continue
                for release in releases:
                    mappings_data.append({
                        'bug_id': bug.id,
                        'test_name': test_name,
                        'release': release
                    })

        logger.info(f"Parsed {len(bugs_data)} bugs and {len(mappings_data)} mappings")
        return bugs_data, mappings_data

    def _upsert_bugs(self, bugs_data: List[Dict]) -> List[str]:
        """
        Insert new bugs and update existing ones, marking all of them active.

        Returns:
            Bug ids present in the payload
        """
        existing = {
            bug.bug_id: bug
            for bug in self.db.query(BugMetadata).filter(
                BugMetadata.bug_id.in_([b['bug_id'] for b in bugs_data])
            ).all()
        } if bugs_data else {}

        for record in bugs_data:
            bug = existing.get(record['bug_id'])
            if bug is None:
                bug = BugMetadata(bug_id=record['bug_id'])
                self.db.add(bug)
                existing[record['bug_id']] = bug
            bug.url = record['url']
            bug.summary = record['summary']
            bug.status = record['status']
            bug.component = record['component']
            bug.is_active = True

        self.db.flush()
        return list(existing)

    def _deactivate_missing(self, bug_ids: List[str]) -> int:
        """Mark bugs that are no longer in the payload inactive."""
        query = self.db.query(BugMetadata).filter(BugMetadata.is_active == True)
        if bug_ids:
            query = query.filter(BugMetadata.bug_id.notin_(bug_ids))
        count = query.update({BugMetadata.is_active: False}, synchronize_session=False)
        if count:
            logger.info(f"Deactivated {count} bugs missing from the latest payload")
        return count

    def _recreate_mappings(self, mappings_data: List[Dict]) -> int:
        """
        Recreate bug_test_mappings.

        Mappings are replaced wholesale, so a test unlinked from a bug
        stops being attributed to it on the next sync.

        Returns:
            Number of mappings created
        """
        self.db.query(BugTestMapping).delete()

        bug_ids = list(set(m['bug_id'] for m in mappings_data))
        bug_pk_map = {}
        if bug_ids:
            bug_pk_map = {
                bug.bug_id: bug.id
                for bug in self.db.query(BugMetadata).filter(BugMetadata.bug_id.in_(bug_ids)).all()
            }

        mapping_records = []
        seen_mappings = set()

        for mapping in mappings_data:
            bug_pk = bug_pk_map.get(mapping['bug_id'])
            if bug_pk is None:
                continue
            mapping_key = (bug_pk, mapping['test_name'], mapping['release'])
            if mapping_key in seen_mappings:
                continue
            seen_mappings.add(mapping_key)
            mapping_records.append(BugTestMapping(
                bug_pk=bug_pk,
                test_name=mapping['test_name'],
                release=mapping['release']
            ))

        self.db.bulk_save_objects(mapping_records)

        logger.info(f"Created {len(mapping_records)} bug-test mappings "
                    f"(deduplicated from {len(mappings_data)} total)")
        return len(mapping_records)

    def get_status(self) -> Dict:
        """Bug counts and the outcome of the latest sync."""
        last_sync = self.db.query(BugSyncLog).order_by(BugSyncLog.started_at.desc(), BugSyncLog.id.desc()).first()
        return {
            'total_bugs': self.db.query(BugMetadata).count(),
            'active_bugs': self.db.query(BugMetadata).filter(BugMetadata.is_active == True).count(),
            'mappings': self.db.query(BugTestMapping).count(),
            'last_sync_status': last_sync.status if last_sync else None,
            'last_sync_started_at': last_sync.started_at if last_sync else None,
            'last_sync_completed_at': last_sync.completed_at if last_sync else None,
            'last_sync_error': last_sync.error_message if last_sync else None,
        }
