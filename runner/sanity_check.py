"""Offline sanity validation of the simulators."""

import json
import random
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from checks.chassis_telemetry_check import ChassisTelemetryCheck
from checks.gpu_telemetry_check import GPUTelemetryCheck
from runner.exporter import build_simulator
from runner.metric_registry import MetricRegistry


class SanityCheck:
    """Runs a simulator for a number of ticks and validates every tick."""

    CHECK_REGISTRY = {
        'gpu': GPUTelemetryCheck,
        'chassis': ChassisTelemetryCheck,
    }

    def __init__(self, kind: str, ticks: int, output_dir: Path,
                 seed: Optional[int] = None, interval_sec: float = 15.0):
        if kind not in self.CHECK_REGISTRY:
            raise ValueError(f"Unknown exporter kind: {kind}")
        if ticks < 1:
            raise ValueError(f"ticks must be at least 1, got {ticks}")

        self.kind = kind
        self.ticks = ticks
        self.output_dir = Path(output_dir)
        self.seed = seed
        self.interval_sec = interval_sec
        self.logger = logging.getLogger(f"sanity.{kind}")

        self.results = {
            'exporter': kind,
            'timestamp': datetime.now().isoformat(),
            'ticks_requested': ticks,
            'seed': seed,
            'checks': [],
            'overall_status': 'PASS'
        }

    def run(self) -> Dict[str, Any]:
        """Tick the simulator without sleeping and check each snapshot."""
        self.logger.info(f"Sanity check: {self.ticks} ticks of the {self.kind} simulator")

        registry = MetricRegistry()
        rng = random.Random(self.seed)
        simulator = build_simulator(self.kind, registry, self.interval_sec, rng)
        check = self.CHECK_REGISTRY[self.kind](registry, simulator)

        for tick in range(1, self.ticks + 1):
            simulator.tick()
            result = check.execute()
            result['tick'] = tick
            self.results['checks'].append(result)

            if result['status'] == 'FAIL':
                self.results['overall_status'] = 'FAIL'
                self._build_failure_summary(result)
                break

        self.results['ticks_run'] = len(self.results['checks'])
        self._write_results()
        return self.results

    def _build_failure_summary(self, failed_check: Dict[str, Any]) -> None:
        """Generate failure summary for triage."""
        self.results['failure_summary'] = {
            'tick': failed_check['tick'],
            'subsystem': failed_check.get('subsystem', 'unknown'),
            'root_cause': failed_check.get('failure_reason', 'unknown'),
        }

    def _write_results(self) -> None:
        """Write results to JSON file."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_file = self.output_dir / f"{self.kind}_{timestamp}_sanity.json"

        with open(output_file, 'w') as f:
            json.dump(self.results, f, indent=2)

        self.results['report_path'] = str(output_file)
        self.logger.info(f"Results written to {output_file}")
