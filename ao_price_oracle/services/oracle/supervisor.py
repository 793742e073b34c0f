"""Lifecycle supervisor owning the recurring update timer and the service state."""

import asyncio
import logging
from dataclasses import dataclass

from ao_price_oracle.core.types import CycleResult, ServiceStatus
from ao_price_oracle.services.oracle.controller import UpdateCycleController

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OracleServiceState:
    """Mutable service state; only start() and stop() change it."""

    process_id: str
    update_interval_ms: int
    is_running: bool = False
    timer_handle: asyncio.Task | None = None


class LifecycleSupervisor:
    """Starts, stops and reports on the recurring oracle schedule.

    Ticks are anchored to the moment the timer is armed, so a slow cycle does
    not shift later ticks. With ``serialize_cycles`` a tick is skipped while the
    previous cycle is still running; otherwise cycles may overlap.
    start() and stop() must be called from a single control task.
    """

    def __init__(
        self,
        controller: UpdateCycleController,
        process_id: str,
        update_interval_ms: int,
        serialize_cycles: bool = False,
    ) -> None:
        self.controller = controller
        self.serialize_cycles = serialize_cycles
        self._state = OracleServiceState(process_id=process_id, update_interval_ms=update_interval_ms)
        self._in_flight: set[asyncio.Task] = set()

    @property
    def interval_s(self) -> float:
        return self._state.update_interval_ms / 1000.0

    def status(self) -> ServiceStatus:
        return ServiceStatus(
            is_running=self._state.is_running,
            process_id=self._state.process_id,
            update_interval_ms=self._state.update_interval_ms,
            timer_armed=self._state.timer_handle is not None,
            cycles_in_flight=len(self._in_flight),
        )

    async def start(self) -> None:
        if self._state.is_running:
            logger.info("oracle_already_running")
            return

        logger.info(
            "oracle_starting",
            extra={
                "process_id": self._state.process_id,
                "update_interval_s": self.interval_s,
                "serialize_cycles": self.serialize_cycles,
            },
        )
        await self.controller.run_cycle()

        self._state.timer_handle = asyncio.create_task(self._tick_loop(), name="oracle-timer")
        self._state.is_running = True
        logger.info("oracle_started")

    def stop(self) -> None:
        if not self._state.is_running:
            logger.info("oracle_not_running")
            return

        logger.info("oracle_stopping", extra={"cycles_in_flight": len(self._in_flight)})
        if self._state.timer_handle is not None:
            self._state.timer_handle.cancel()
            self._state.timer_handle = None
        self._state.is_running = False
        logger.info("oracle_stopped")

    async def run_once(self) -> CycleResult:
        logger.info("oracle_single_update")
        return await self.controller.run_cycle()

    async def wait_idle(self) -> None:
        """Wait for in-flight cycles to finish; stop() never aborts them."""

        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def serve(self, shutdown_event: asyncio.Event) -> None:
        """Run the schedule until ``shutdown_event`` is set, then drain."""

        await self.start()
        await shutdown_event.wait()
        self.stop()
        await self.wait_idle()

    async def _tick_loop(self) -> None:
        loop = asyncio.get_running_loop()
        interval_s = self.interval_s
        next_tick = loop.time() + interval_s

        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            self._on_tick()

            next_tick += interval_s
            now = loop.time()
            if next_tick <= now:
                missed = int((now - next_tick) // interval_s) + 1
                next_tick += missed * interval_s
                logger.warning("oracle_ticks_missed", extra={"missed": missed})

    def _on_tick(self) -> None:
        if self.serialize_cycles and self._in_flight:
            logger.warning("oracle_tick_skipped", extra={"cycles_in_flight": len(self._in_flight)})
            return

        task = asyncio.create_task(self.controller.run_cycle(), name="oracle-cycle")
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
