"""Chassis (IPMI) telemetry sanity check module."""

import logging
from typing import Dict, Any

from runner.metric_registry import MetricRegistry
from simulators.chassis_simulator import (
    CATEGORY_METRICS,
    COLLECTORS,
    NOMINAL_STATE,
    SEL_FREE_SPACE_BYTES,
    SEL_LOGS_COUNT,
    ChassisSimulator,
)


class ChassisTelemetryCheck:
    """Validates published IPMI sensor telemetry after each tick."""

    def __init__(self, registry: MetricRegistry, simulator: ChassisSimulator):
        self.registry = registry
        self.simulator = simulator
        self.logger = logging.getLogger("check.chassis")

    def execute(self) -> Dict[str, Any]:
        """Execute chassis telemetry checks against the registry."""
        registry = self.registry

        for sensor in self.simulator.sensors:
            value_metric, _, state_metric = CATEGORY_METRICS[sensor.category]
            labels = sensor.labels()

            value = registry.value(value_metric, labels)
            if value is None or not sensor.low <= value <= sensor.high:
                return self._fail(
                    f"{sensor.name} (id {sensor.id}) reading {value} not in [{sensor.low}, {sensor.high}]",
                    sensor.category,
                )

            state = registry.value(state_metric, labels)
            if state != NOMINAL_STATE:
                return self._fail(f"{sensor.name} (id {sensor.id}) state {state} is not nominal", sensor.category)

        if registry.value('node_uname_info', {'nodename': self.simulator.hostname}) != 1:
            return self._fail(f"node_uname_info missing for {self.simulator.hostname}", 'node')

        if registry.value('ipmi_sel_free_space_bytes') != SEL_FREE_SPACE_BYTES:
            return self._fail("SEL free space changed", 'sel')

        if registry.value('ipmi_sel_logs_count') != SEL_LOGS_COUNT:
            return self._fail("SEL log count changed", 'sel')

        for collector in COLLECTORS:
            if registry.value('ipmi_up', {'collector': collector}) != 1:
                return self._fail(f"Collector {collector} reported down", 'bmc')

        duration = registry.value('ipmi_scrape_duration_seconds')
        if duration is None or duration < 0:
            return self._fail(f"Invalid scrape duration {duration}", 'bmc')

        return {
            'name': 'chassis_telemetry',
            'status': 'PASS',
            'sensors': len(self.simulator.sensors),
            'scrape_duration_sec': duration,
        }

    def _fail(self, reason: str, subsystem: str) -> Dict[str, Any]:
        self.logger.error(reason)
        return {
            'name': 'chassis_telemetry',
            'status': 'FAIL',
            'failure_reason': reason,
            'subsystem': subsystem,
        }
