"""
Periodic driver for the sheets sync and the Drive backup.

Both jobs share one lock so a backup never copies the database while a
sync cycle is writing to it. Manual triggers collapse: while one is pending
or a cycle is running, further triggers are dropped.
"""
import logging
import queue
import threading
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler

from google_clients import SyncConfigurationError

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "sheets_sync"
BACKUP_JOB_ID = "drive_backup"


class SyncScheduler:
    def __init__(self, sync_fn, backup_fn=None, interval=1, backup_interval=360, scheduler=None, lock=None):
        """
        sync_fn: runs one reconciliation cycle and returns its report.
        backup_fn: uploads one backup; optional.
        interval / backup_interval: minutes.
        lock: shared with callers that run a sync or backup outside the scheduler.
        """
        self.sync_fn = sync_fn
        self.backup_fn = backup_fn
        self.interval = interval
        self.backup_interval = backup_interval
        self._scheduler = scheduler or BackgroundScheduler()
        self._lock = lock if lock is not None else threading.Lock()
        self._state_lock = threading.Lock()
        self._pending = queue.Queue(maxsize=1)
        self._syncing = False
        self._started = False
        self.last_report = None

    @property
    def running(self):
        return self._started

    def _drain(self):
        while True:
            try:
                self._pending.get_nowait()
            except queue.Empty:
                return

    def run_once(self, reason="scheduled"):
        """Run one sync cycle under the shared lock. Errors are logged, never raised."""
        with self._lock:
            with self._state_lock:
                self._syncing = True
                self._drain()
            logger.info(f"Starting sheets sync ({reason})")
            try:
                report = self.sync_fn()
            except SyncConfigurationError as exc:
                logger.error(f"Sheets sync not configured: {exc}")
                return None
            except Exception:
                logger.exception("Sheets sync error")
                return None
            finally:
                with self._state_lock:
                    self._syncing = False
            self.last_report = report
            logger.info(f"Sheets sync completed ({reason})")
            return report

    def run_backup(self):
        if self.backup_fn is None:
            return None
        with self._lock:
            logger.info("Starting scheduled Drive backup")
            try:
                result = self.backup_fn()
            except SyncConfigurationError as exc:
                logger.error(f"Drive backup not configured: {exc}")
                return None
            except Exception:
                logger.exception("Drive backup error")
                return None
            logger.info("Drive backup finished")
            return result

    def _tick(self):
        reason = "manual trigger" if not self._pending.empty() else "scheduled"
        self.run_once(reason)

    def start(self, interval=None):
        """Register the jobs (first sync runs immediately) and start the scheduler."""
        if interval:
            self.interval = interval
        self._scheduler.add_job(
            self._tick,
            "interval",
            minutes=self.interval,
            id=SYNC_JOB_ID,
            replace_existing=True,
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
        )
        if self.backup_fn is not None:
            self._scheduler.add_job(
                self.run_backup,
                "interval",
                minutes=self.backup_interval,
                id=BACKUP_JOB_ID,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        self._started = True
        logger.info(
            f"Sync scheduler started: sync every {self.interval} min, "
            f"backup every {self.backup_interval} min"
        )
        if not self._scheduler.running:
            self._scheduler.start()

    def stop(self):
        self._started = False
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Sync scheduler stopped")

    def trigger_now(self):
        """
        Ask for an immediate cycle. Returns False when the request was dropped
        because a cycle is running or another trigger is already waiting.
        """
        with self._state_lock:
            if self._syncing:
                return False
            try:
                self._pending.put_nowait(True)
            except queue.Full:
                return False
        if self._started and self._scheduler.get_job(SYNC_JOB_ID) is not None:
            # Moving next_run_time also restarts the interval from this run
            self._scheduler.modify_job(SYNC_JOB_ID, next_run_time=datetime.now())
        return True
