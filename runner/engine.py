"""Background tick loop driving a simulator."""

import logging
import threading
from typing import Optional


class SimulationEngine:
    """Runs ``simulator.tick()`` on a fixed cadence in one daemon thread.

    The first tick happens as soon as the engine starts. Between ticks the
    loop waits on a stop event, so ``stop()`` takes effect without waiting
    out the full interval.
    """

    def __init__(self, simulator, interval_sec: float = 15.0, name: str = "simulator"):
        if interval_sec <= 0:
            raise ValueError(f"interval_sec must be positive, got {interval_sec}")
        self.simulator = simulator
        self.interval_sec = interval_sec
        self.name = name
        self.logger = logging.getLogger(f"engine.{name}")

        self.ticks = 0
        self.failed_ticks = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            raise RuntimeError(f"Engine {self.name} is already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name=f"engine-{self.name}", daemon=True)
        self._thread.start()
        self.logger.info(f"Tick loop started, interval {self.interval_sec}s")

    def run(self) -> None:
        while not self._stop_event.is_set():
            self._tick_once()
            if self._stop_event.wait(self.interval_sec):
                break
        self.logger.info(f"Tick loop stopped after {self.ticks} ticks")

    def _tick_once(self) -> None:
        try:
            self.simulator.tick()
            self.ticks += 1
        except Exception as e:
            # One bad tick must not end the loop
            self.failed_ticks += 1
            self.logger.exception(f"Tick failed: {e}")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
