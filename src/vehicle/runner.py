"""Background loop driving the vehicle simulation."""

import asyncio
import contextlib
import logging

from vehicle.service import VehicleTrackingService

logger = logging.getLogger(__name__)


class SimulationRunner:
    """Periodically runs a simulation cycle in a worker thread."""

    def __init__(self, service: VehicleTrackingService, interval: float = 2.0) -> None:
        self._service = service
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self.cycles = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Vehicle simulation started (every {self._interval}s)")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("Vehicle simulation stopped")

    async def _run_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval)
                outcomes = await asyncio.to_thread(self._service.tick)
                self.cycles += 1
                if outcomes:
                    logger.debug(f"Simulation cycle {self.cycles}: {len(outcomes)} vehicles")
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in vehicle simulation loop")
