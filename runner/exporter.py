"""Exporter bootstrap: wires registry, simulator, tick loop and HTTP server."""

import random
import socket
import logging
import threading
from typing import Dict, Any, Optional

from runner.engine import SimulationEngine
from runner.metric_registry import MetricRegistry
from runner.snapshot_server import SnapshotServer
from simulators.chassis_simulator import ChassisSimulator
from simulators.gpu_simulator import GPUSimulator


EXPORTER_KINDS = ('gpu', 'chassis')


class ExporterStartupError(RuntimeError):
    """The exporter cannot start: listener bind or hostname lookup failed."""


def resolve_hostname() -> str:
    try:
        hostname = socket.gethostname()
    except OSError as e:
        raise ExporterStartupError(f"Failed to get hostname: {e}") from e
    if not hostname:
        raise ExporterStartupError("Failed to get hostname: empty host name")
    return hostname


def build_simulator(kind: str, registry: MetricRegistry, interval_sec: float = 15.0,
                    rng: Optional[random.Random] = None):
    """Create the simulator for an exporter kind, registering its metrics."""
    if kind == 'gpu':
        return GPUSimulator(registry, interval_sec=interval_sec, rng=rng)
    if kind == 'chassis':
        return ChassisSimulator(registry, resolve_hostname(), rng=rng)
    raise ValueError(f"Unknown exporter kind: {kind}")


class Exporter:
    """One simulated exporter process: a single writer and a read-only endpoint."""

    def __init__(self, kind: str, settings: Dict[str, Any]):
        if kind not in EXPORTER_KINDS:
            raise ValueError(f"Unknown exporter kind: {kind}")
        self.kind = kind
        self.settings = settings
        self.logger = logging.getLogger(f"exporter.{kind}")

        self.registry: Optional[MetricRegistry] = None
        self.simulator = None
        self.engine: Optional[SimulationEngine] = None
        self.server: Optional[SnapshotServer] = None
        self._stopped = threading.Event()

    def start(self) -> None:
        self._stopped.clear()
        interval_sec = self.settings['interval_sec']
        seed = self.settings.get('seed')
        rng = random.Random(seed) if seed is not None else random.Random()

        self.registry = MetricRegistry()
        self.simulator = build_simulator(self.kind, self.registry, interval_sec, rng)

        self.server = SnapshotServer(
            self.registry,
            self.settings['port'],
            self.settings.get('listen_address', '0.0.0.0'),
        )
        try:
            self.server.start()
        except OSError as e:
            self.server = None
            raise ExporterStartupError(
                f"Cannot listen on {self.settings.get('listen_address', '0.0.0.0')}:{self.settings['port']}: {e}"
            ) from e

        self.engine = SimulationEngine(self.simulator, interval_sec, name=self.kind)
        self.engine.start()
        self.logger.info(f"Exporter started, access metrics at {self.server.url}")

    def serve_forever(self) -> None:
        """Start and block until stop() or Ctrl-C."""
        self.start()
        try:
            self._stopped.wait()
        except KeyboardInterrupt:
            self.logger.info("Interrupted")
        finally:
            self.stop()

    def request_stop(self) -> None:
        """Make serve_forever() return; safe to call from a signal handler."""
        self._stopped.set()

    def stop(self) -> None:
        self._stopped.set()
        if self.engine is None and self.server is None:
            return
        if self.engine is not None:
            self.engine.stop(timeout=5.0)
            self.engine = None
        if self.server is not None:
            self.server.stop()
            self.server = None
        self.logger.info("Exporter stopped")
