"""
Host drivers for the density accumulator.

``run_to_completion`` steps synchronously until the map is finished.
``DensityRunner`` steps at a fixed rate on a background thread so a UI or
server loop stays responsive; one lock guards the accumulator's histogram,
maximum and cursor as a unit.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from cvfield.density.accumulator import DensityAccumulator, Phase, RunResult
from cvfield.errors import InvalidConfiguration

logger = logging.getLogger(__name__)


def run_to_completion(
    accumulator: DensityAccumulator,
    budget: int,
    on_progress: Optional[Callable[[RunResult], None]] = None,
    max_steps: Optional[int] = None,
) -> RunResult:
    """Call ``step(budget)`` until the accumulator reports completion.

    Raises:
        RuntimeError: max_steps calls were made without completing (a
            paused accumulator never completes).
    """
    steps = 0
    while True:
        if max_steps is not None and steps >= max_steps:
            raise RuntimeError(
                f"Density map not complete after {steps} steps "
                f"({accumulator.state.position}/{accumulator.state.total})"
            )
        result = accumulator.step(budget)
        steps += 1
        if on_progress:
            on_progress(result)
        if result.completed:
            return result


class DensityRunner:
    """Fixed-rate background driver for a DensityAccumulator.

    Usage::

        runner = DensityRunner(acc, budget=500, on_complete=redraw)
        runner.restart(12, 12, 60)
        # ... later ...
        runner.stop()
    """

    DEFAULT_FREQUENCY = 60.0  # Hz, one chunk per displayed frame

    def __init__(
        self,
        accumulator: DensityAccumulator,
        budget: int = 500,
        frequency: float = DEFAULT_FREQUENCY,
        on_progress: Optional[Callable[[RunResult], None]] = None,
        on_complete: Optional[Callable[[RunResult], None]] = None,
    ):
        if isinstance(budget, bool) or not isinstance(budget, int) or budget < 1:
            raise InvalidConfiguration(f"budget must be a positive integer, got {budget!r}")
        if frequency <= 0:
            raise InvalidConfiguration(f"frequency must be positive, got {frequency}")
        self.accumulator = accumulator
        self.budget = budget
        self.frequency = frequency
        self.dt = 1.0 / frequency
        self.on_progress = on_progress
        self.on_complete = on_complete

        self._lock = threading.Lock()
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._step_count = 0
        self._last_result: Optional[RunResult] = None
        self._error: Optional[BaseException] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def step_count(self) -> int:
        return self._step_count

    @property
    def last_result(self) -> Optional[RunResult]:
        return self._last_result

    @property
    def error(self) -> Optional[BaseException]:
        """Exception that stopped the background thread, if any."""
        return self._error

    def start(self) -> None:
        """Start stepping on a background thread."""
        if self._running:
            logger.warning("Density runner already running")
            return
        if self.accumulator.state.phase is Phase.IDLE:
            raise RuntimeError("Accumulator has not been reset")

        self._running = True
        self._error = None
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="DensityRunner", daemon=True)
        self._thread.start()
        logger.info("Density runner started at %.0f Hz (budget %d)", self.frequency, self.budget)

    def stop(self) -> None:
        if not self._running:
            return
        self._stop_event.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self._thread = None
        self._running = False
        logger.info("Density runner stopped after %d steps", self._step_count)

    def restart(self, N: int, M: int, PHI: int) -> None:
        """Discard progress, reset to N x M x PHI and (re)start the thread."""
        with self._lock:
            self.accumulator.reset(N, M, PHI)
            self._step_count = 0
            needs_start = not self._running
        if needs_start:
            self.start()

    def pause(self) -> None:
        with self._lock:
            self.accumulator.pause()

    def resume(self) -> None:
        with self._lock:
            self.accumulator.resume()

    def step_once(self) -> RunResult:
        """Run one chunk under the lock."""
        with self._lock:
            result = self.accumulator.step(self.budget)
            self._step_count += 1
            self._last_result = result
        return result

    def snapshot(self) -> dict:
        """Consistent checkpoint taken under the lock."""
        with self._lock:
            return self.accumulator.checkpoint()

    def _run(self) -> None:
        """Main loop body: runs in a background thread."""
        while not self._stop_event.is_set():
            cycle_start = time.monotonic()
            try:
                result = self.step_once()
            except Exception as e:
                logger.error("Density runner step failed: %s", e)
                self._error = e
                break

            if self.on_progress:
                self.on_progress(result)
            if result.completed:
                if self.on_complete:
                    self.on_complete(result)
                if self._finish_unless_restarted():
                    return
                continue

            remaining = self.dt - (time.monotonic() - cycle_start)
            if remaining > 0:
                self._stop_event.wait(timeout=remaining)

        self._running = False

    def _finish_unless_restarted(self) -> bool:
        """Mark the runner stopped unless a restart re-armed the accumulator."""
        with self._lock:
            if self.accumulator.state.phase is Phase.RUNNING:
                return False
            self._running = False
            return True
