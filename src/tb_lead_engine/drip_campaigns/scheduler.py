"""Periodic tick driver for the enrollment tracker."""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, Mapping, Optional

from .tracker import EnrollmentTracker
from ..storage.models import Contact

logger = logging.getLogger(__name__)


class SequenceScheduler:
    """Run EnrollmentTracker.process_all on a fixed interval."""

    def __init__(
        self,
        tracker: EnrollmentTracker,
        contact_loader: Callable[[], Mapping[int, Contact]],
        interval_seconds: int = 300,
        max_workers: int = 1,
    ):
        self.tracker = tracker
        self.contact_loader = contact_loader
        self.interval_seconds = interval_seconds
        self.max_workers = max_workers
        self.last_run_at: Optional[datetime] = None
        self.last_results: Dict[str, int] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> Dict[str, int]:
        """One tick over whatever is active right now."""
        contacts = self.contact_loader()
        results = self.tracker.process_all(contacts, max_workers=self.max_workers)
        self.last_run_at = datetime.now()
        self.last_results = results
        logger.info(
            f"Tick complete: {results['sent']} sent, {results['waiting']} waiting, "
            f"{results['skipped']} skipped, {results['failed']} failed"
        )
        return results

    def start(self):
        """Start the background scheduler."""
        if self.running:
            return

        self._stop.clear()

        def run():
            while not self._stop.is_set():
                try:
                    self.run_once()
                except Exception:
                    logger.exception("Sequence tick failed")
                self._stop.wait(self.interval_seconds)

        self._thread = threading.Thread(target=run, name="sequence-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Sequence scheduler started, interval {self.interval_seconds}s")

    def stop(self, timeout: float = 5):
        """Stop the background scheduler."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Sequence scheduler stopped")
