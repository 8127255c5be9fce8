"""Background sync scheduler.

One daemon worker thread runs a sync cycle immediately on start and then
once per interval. A cycle imports every active auto-sync integration and
then recomputes all overtime balances. Cycles never overlap: a trigger that
arrives while a cycle is running is dropped.
"""

from __future__ import annotations

import logging
import threading
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable

from sqlalchemy.orm import Session

from peopleflow.config import Settings, get_settings
from peopleflow.database import get_session
from peopleflow.errors import SyncCancelledError
from peopleflow.providers import create_provider
from peopleflow.services.import_service import ImportPipeline, ProviderSyncResult
from peopleflow.services.integration_service import IntegrationService, ProviderFactory
from peopleflow.services.locking_service import EmployeeLockRegistry, employee_locks
from peopleflow.services.overtime_service import OvertimeEngine, RecomputeAllResult

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractContextManager[Session]]


@dataclass
class SyncCycleResult:
    """What one scheduler cycle did."""

    started_at: datetime
    finished_at: datetime | None = None
    providers: list[ProviderSyncResult] = field(default_factory=list)
    recompute: RecomputeAllResult | None = None
    cancelled: bool = False


class SyncScheduler:
    """Drives the import pipeline and overtime recompute on a timer."""

    def __init__(
        self,
        settings: Settings | None = None,
        session_scope: SessionScope = get_session,
        provider_factory: ProviderFactory = create_provider,
        locks: EmployeeLockRegistry | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.settings = settings or get_settings()
        self.interval = self.settings.sync_interval_seconds
        self.session_scope = session_scope
        self.provider_factory = provider_factory
        self.locks = locks or employee_locks
        self.today = today

        self._stop_event = threading.Event()
        self._cycle_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self.last_cycle: SyncCycleResult | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the worker thread; no-op when already running."""
        with self._state_lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._loop, name="peopleflow-sync", daemon=True
            )
            self._thread.start()
        logger.info("Sync scheduler started (interval %ss)", self.interval)

    def stop(self, timeout: float | None = None) -> None:
        """Signal cancellation and wait for the in-flight cycle; no-op when stopped."""
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            thread.join(timeout)
            self._thread = None
        logger.info("Sync scheduler stopped")

    def trigger(self) -> SyncCycleResult | None:
        """Run one cycle on the calling thread.

        Returns None when a cycle is already running; the trigger is
        coalesced into it.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Sync cycle already running, trigger coalesced")
            return None
        try:
            cycle = self._run_cycle()
        finally:
            self._cycle_lock.release()
        self.last_cycle = cycle
        return cycle

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.trigger()
            except Exception:
                logger.exception("Sync cycle failed")
            if self._stop_event.wait(self.interval):
                break

    def _run_cycle(self) -> SyncCycleResult:
        cycle = SyncCycleResult(started_at=datetime.now())

        with self.session_scope() as session:
            providers = [
                i.provider
                for i in IntegrationService(session, self.settings).list_auto_sync()
            ]

        # One transaction per provider so a failure keeps earlier imports
        for provider in providers:
            if self._stop_event.is_set():
                cycle.cancelled = True
                break
            try:
                with self.session_scope() as session:
                    pipeline = ImportPipeline(
                        session,
                        self.settings,
                        provider_factory=self.provider_factory,
                        stop_event=self._stop_event,
                        locks=self.locks,
                        today=self.today,
                    )
                    cycle.providers.append(pipeline.sync_provider(provider))
            except SyncCancelledError:
                logger.info("Sync of %s cancelled", provider)
                cycle.cancelled = True
                break
            except Exception:
                logger.exception("Sync of %s failed", provider)

        if not cycle.cancelled:
            try:
                with self.session_scope() as session:
                    engine = OvertimeEngine(session, self.settings, self.locks)
                    cycle.recompute = engine.recompute_all()
            except Exception:
                logger.exception("Overtime recompute failed")

        cycle.finished_at = datetime.now()
        logger.info(
            "Sync cycle finished: %d providers, cancelled=%s",
            len(cycle.providers),
            cycle.cancelled,
        )
        return cycle
