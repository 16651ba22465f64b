"""Periodic escalation sweep, run as a background task of the app."""

from __future__ import annotations

import asyncio
import logging

from app.services.orchestrator import DispatchOrchestrator

logger = logging.getLogger(__name__)


class EscalationScheduler:
    def __init__(self, orchestrator: DispatchOrchestrator, interval_seconds: float = 60):
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._loop(), name="escalation-sweep")
        logger.info("Escalation sweep started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop.set()
        await self._task
        self._task = None
        logger.info("Escalation sweep stopped")

    async def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                await self.orchestrator.run_escalation_sweep()
            except Exception:
                # Sweep errors are per-tick; keep the loop alive for the next one.
                logger.exception("Escalation sweep tick failed")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue
