"""
Tests for the bug sync scheduler.
"""
from unittest.mock import MagicMock, patch

from ci_health.config import Settings
from ci_health.tasks import scheduler


class TestSchedulerLifecycle:
    """Tests for start_scheduler and stop_scheduler."""

    def test_start_registers_bug_sync(self):
        """Test that the sync job is added when enabled with a URL."""
        settings = Settings(BUG_SYNC_ENABLED=True, BUG_DATA_URL="https://bugs.example.com/m.json",
                            BUG_SYNC_INTERVAL_HOURS=6)
        mock_scheduler = MagicMock(running=False)

        with patch.object(scheduler, 'scheduler', mock_scheduler), \
                patch.object(scheduler, 'get_settings', return_value=settings):
            scheduler.start_scheduler()

        mock_scheduler.add_job.assert_called_once()
        kwargs = mock_scheduler.add_job.call_args.kwargs
        assert kwargs['id'] == scheduler.BUG_SYNC_JOB_ID
        assert kwargs['max_instances'] == 1
        assert kwargs['trigger'].interval.total_seconds() == 6 * 3600
        mock_scheduler.start.assert_called_once()

    def test_start_without_url_skips_bug_sync(self):
        settings = Settings(BUG_SYNC_ENABLED=True, BUG_DATA_URL="")
        mock_scheduler = MagicMock(running=False)

        with patch.object(scheduler, 'scheduler', mock_scheduler), \
                patch.object(scheduler, 'get_settings', return_value=settings):
            scheduler.start_scheduler()

        mock_scheduler.add_job.assert_not_called()
        mock_scheduler.start.assert_called_once()

    def test_start_when_disabled(self):
        settings = Settings(BUG_SYNC_ENABLED=False, BUG_DATA_URL="https://bugs.example.com/m.json")
        mock_scheduler = MagicMock(running=True)

        with patch.object(scheduler, 'scheduler', mock_scheduler), \
                patch.object(scheduler, 'get_settings', return_value=settings):
            scheduler.start_scheduler()

        mock_scheduler.add_job.assert_not_called()
        mock_scheduler.start.assert_not_called()

    def test_stop_scheduler_shuts_down(self):
        mock_scheduler = MagicMock(running=True)
        with patch.object(scheduler, 'scheduler', mock_scheduler):
            scheduler.stop_scheduler()
        mock_scheduler.shutdown.assert_called_once_with(wait=False)

    def test_stop_scheduler_when_not_running(self):
        mock_scheduler = MagicMock(running=False)
        with patch.object(scheduler, 'scheduler', mock_scheduler):
            scheduler.stop_scheduler()
        mock_scheduler.shutdown.assert_not_called()


class TestUpdateBugsTask:
    """Tests for the scheduled task body."""

    def test_failure_does_not_propagate(self, caplog):
        """Test that a failed sync is logged and the schedule keeps running."""
        with patch.object(scheduler, 'get_db_context') as mock_context, \
                patch('ci_health.services.bug_updater_service.BugUpdaterService.update_bug_mappings',
                      side_effect=RuntimeError("boom")):
            mock_context.return_value.__enter__.return_value = MagicMock()
            scheduler.update_bugs_task()

        assert "Scheduled bug update failed" in caplog.text
