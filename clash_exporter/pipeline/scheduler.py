"""
APScheduler wrapper driving run_once() on a fixed interval in a background
thread. The HTTP front keeps the main thread.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers import SchedulerNotRunningError
from apscheduler.schedulers.background import BackgroundScheduler

from clash_exporter.connectors.base import Connector
from clash_exporter.core.errors import SnapshotDecodeError
from clash_exporter.core.metrics import ExporterMetrics
from clash_exporter.pipeline.run_once import run_once

LOG = logging.getLogger(__name__)

JOB_ID = "collect"


class PollLoop:
    def __init__(self,
                 connector: Connector,
                 metrics: ExporterMetrics,
                 interval: float,
                 on_decode_error: str = "exit",
                 on_fatal: Optional[Callable[[BaseException], None]] = None):
        self.connector = connector
        self.metrics = metrics
        self.interval = interval
        self.on_decode_error = on_decode_error
        self.on_fatal = on_fatal
        self.fatal_error: Optional[BaseException] = None
        self._fatal_lock = threading.Lock()
        self.sched = BackgroundScheduler(daemon=True)

    @property
    def running(self) -> bool:
        return self.sched.running

    def run_cycle(self) -> bool:
        """Run one collection synchronously; see run_once()."""
        return run_once(self.connector, self.metrics, self.on_decode_error)

    def _tick(self) -> None:
        try:
            self.run_cycle()
        except SnapshotDecodeError as e:
            self._fail(e)

    def _fail(self, exc: BaseException) -> None:
        with self._fatal_lock:
            if self.fatal_error is not None:
                return
            self.fatal_error = exc
        LOG.critical("Stopping collection after fatal error", extra={"error": str(exc)})
        self.stop(wait=False)
        if self.on_fatal is not None:
            self.on_fatal(exc)

    def start(self) -> None:
        LOG.info("Collecting from clash", extra={
            "url": getattr(self.connector, "url", None),
            "interval": self.interval,
        })
        self.sched.add_job(
            self._tick, "interval",
            seconds=self.interval,
            id=JOB_ID,
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
        )
        self.sched.start()

    def stop(self, wait: bool = True) -> None:
        try:
            self.sched.shutdown(wait=wait)
        except SchedulerNotRunningError:
            pass
