"""Periodic trigger for drainer ticks and retention sweeps."""

import logging
import signal
import time
from datetime import datetime, timedelta
from typing import Callable, Optional
from pydantic import BaseModel, Field
from .models import utcnow
from .storage import Storage

logger = logging.getLogger(__name__)

TRIGGER_PREFIX = "trigger:"
TRIGGER_PRESETS = (5, 15, 30, 60)
DRAIN_HANDLER = "drain"
DEFAULT_INTERVAL_MINUTES = 15
SWEEP_EVERY = timedelta(days=1)


class Trigger(BaseModel):
    handler: str
    interval_minutes: int
    installed_at: datetime = Field(default_factory=utcnow)


class TriggerRegistry:
    """One persisted trigger per handler. Installing again replaces it."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def install(self, handler: str, interval_minutes: int) -> Trigger:
        if interval_minutes not in TRIGGER_PRESETS:
            presets = ", ".join(str(p) for p in TRIGGER_PRESETS)
            raise ValueError(f"Interval must be one of {presets} minutes, got {interval_minutes}")
        previous = self.get(handler)
        trigger = Trigger(handler=handler, interval_minutes=interval_minutes)
        self.storage.put(TRIGGER_PREFIX + handler, trigger.model_dump(mode="json"))
        if previous:
            logger.info(
                "Replaced %s trigger (%d -> %d minutes)",
                handler, previous.interval_minutes, interval_minutes,
            )
        else:
            logger.info("Installed %s trigger every %d minutes", handler, interval_minutes)
        return trigger

    def get(self, handler: str) -> Optional[Trigger]:
        data = self.storage.get(TRIGGER_PREFIX + handler)
        return Trigger(**data) if data else None

    def remove(self, handler: str) -> bool:
        return self.storage.delete(TRIGGER_PREFIX + handler)

    def interval_minutes(self, handler: str = DRAIN_HANDLER) -> int:
        trigger = self.get(handler)
        return trigger.interval_minutes if trigger else DEFAULT_INTERVAL_MINUTES


class Scheduler:
    """Foreground loop standing in for an external timer.

    Each iteration builds a fresh service from ``service_factory``, so the
    loop carries nothing from one tick to the next.
    """

    def __init__(
        self,
        service_factory: Callable,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = utcnow,
    ):
        self.service_factory = service_factory
        self.sleep = sleep
        self.now = now
        self.running = True

    def _handle_shutdown(self, signum, frame):
        """Handle shutdown signal gracefully."""
        logger.info("Shutdown requested, stopping after the current tick")
        self.running = False

    def run(self, max_ticks: Optional[int] = None, install_signal_handlers: bool = True) -> int:
        """Run ticks until stopped. Returns the number of ticks run."""
        if install_signal_handlers:
            signal.signal(signal.SIGTERM, self._handle_shutdown)
            signal.signal(signal.SIGINT, self._handle_shutdown)

        ticks = 0
        while self.running:
            service = self.service_factory()
            interval = service.triggers.interval_minutes(DRAIN_HANDLER)
            try:
                service.run_tick()
                if self._sweep_due(service):
                    service.run_sweep()
            except Exception:
                logger.exception("Scheduled run failed")
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            self._wait(interval * 60)
        return ticks

    def _sweep_due(self, service) -> bool:
        last = service.sweeper.last_run()
        return last is None or self.now() - last >= SWEEP_EVERY

    def _wait(self, seconds: float) -> None:
        remaining = seconds
        while self.running and remaining > 0:
            step = min(1.0, remaining)
            self.sleep(step)
            remaining -= step
