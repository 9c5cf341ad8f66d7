from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.storage.errors import ProbeError
from core.storage.notifier import AdminSource, Notifier
from core.storage.probe import CapacityProbe
from core.storage.registry import BackendRegistry
from core.storage.types import CapacityAlert, StorageBackend, UsageSnapshot

logger = logging.getLogger(__name__)

DEFAULT_ALERT_THRESHOLD = 0.90
MONITOR_JOB_ID = "storage_capacity_monitor"


class MonitorState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    ALERTING = "alerting"


def build_alert_message(snapshot: UsageSnapshot) -> str:
    return (
        f"ALERT: storage backend '{snapshot.backend_id}' is at {snapshot.ratio:.1%} of its quota "
        f"({snapshot.used_bytes} of {snapshot.total_bytes} bytes). "
        "Consider moving files to another backend."
    )


class CapacityMonitor:
    """Background poll of every active backend with threshold alerting.

    Each tick probes the active backends concurrently, persists fresh usage
    figures and raises one alert per backend at or above the threshold. A
    backend that keeps failing its probe keeps its last-known figures.

    ``alert_cooldown_seconds`` controls repeat alerts while a backend stays
    above the threshold: 0 alerts on every tick, otherwise a backend is
    re-alerted only once the window has elapsed. The window opens only when an
    alert reached at least one administrator. Dropping below the threshold
    clears the window so the next crossing alerts immediately.
    """

    def __init__(
        self,
        *,
        registry: BackendRegistry,
        probe: CapacityProbe,
        notifier: Notifier,
        admin_source: AdminSource,
        threshold: float = DEFAULT_ALERT_THRESHOLD,
        alert_cooldown_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._probe = probe
        self._notifier = notifier
        self._admin_source = admin_source
        self._threshold = threshold
        self._alert_cooldown_seconds = alert_cooldown_seconds
        self._clock = clock
        self._last_alerted_at: dict[str, float] = {}
        self._tick_lock = asyncio.Lock()
        self.state = MonitorState.IDLE

    async def run_once(self) -> list[CapacityAlert]:
        if self._tick_lock.locked():
            logger.warning("Capacity poll still running; skipping this tick")
            return []

        async with self._tick_lock:
            try:
                self.state = MonitorState.POLLING
                backends = await self._registry.list_active()
                results = await asyncio.gather(*(self._poll_backend(backend) for backend in backends))
                alerts = [self._evaluate(snapshot) for snapshot in results if snapshot is not None]
                alerts = [alert for alert in alerts if alert is not None]
                if alerts:
                    self.state = MonitorState.ALERTING
                    await self._dispatch(alerts)
                return alerts
            finally:
                self.state = MonitorState.IDLE

    async def _poll_backend(self, backend: StorageBackend) -> UsageSnapshot | None:
        try:
            snapshot = await self._probe.probe(backend)
        except ProbeError as err:
            logger.warning("Skipping backend %s this cycle: %s", backend.id, err.message)
            return None

        try:
            await self._registry.update_usage(backend.id, snapshot.used_bytes, snapshot.total_bytes)
        except Exception:
            logger.exception("Could not record usage for backend %s; skipping this cycle", backend.id)
            return None
        logger.debug(
            "Backend %s usage %d/%d (%.2f%%)",
            backend.id,
            snapshot.used_bytes,
            snapshot.total_bytes,
            snapshot.ratio * 100,
        )
        return snapshot

    def _evaluate(self, snapshot: UsageSnapshot) -> CapacityAlert | None:
        now = self._clock()
        if snapshot.ratio < self._threshold:
            self._last_alerted_at.pop(snapshot.backend_id, None)
            return None

        last = self._last_alerted_at.get(snapshot.backend_id)
        if last is not None and self._alert_cooldown_seconds and now - last < self._alert_cooldown_seconds:
            logger.info("Backend %s still above threshold; alert suppressed by cool-down", snapshot.backend_id)
            return None

        return CapacityAlert(
            backend_id=snapshot.backend_id,
            usage_ratio=snapshot.ratio,
            message=build_alert_message(snapshot),
            created_at=int(now),
        )

    async def _dispatch(self, alerts: list[CapacityAlert]) -> None:
        try:
            admins = await self._admin_source()
        except Exception:
            logger.exception("Could not load administrator accounts; %d alert(s) not delivered", len(alerts))
            return

        if not admins:
            logger.warning("No administrator accounts found to receive storage alerts")
            return

        for alert in alerts:
            logger.warning(alert.message)
            delivered = False
            for admin in admins:
                try:
                    await self._notifier.notify(admin.id, alert.message)
                    delivered = True
                except Exception:
                    logger.exception("Storage alert for backend %s not delivered to admin %s", alert.backend_id, admin.id)
            if delivered:
                self._last_alerted_at[alert.backend_id] = self._clock()

    def schedule(self, scheduler: BaseScheduler, *, interval_minutes: int) -> None:
        scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=MONITOR_JOB_ID,
            name="Storage capacity monitor",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Storage capacity monitor scheduled every %d minute(s)", interval_minutes)
