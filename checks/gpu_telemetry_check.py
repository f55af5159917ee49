"""GPU telemetry sanity check module."""

import math
import logging
from typing import Dict, Any, Optional

from runner.metric_registry import MetricRegistry
from simulators.gpu_simulator import (
    ENERGY_METRIC,
    PCIE_REPLAY_METRIC,
    GPUSimulator,
    SM_CLOCK_HIGH_RANGE,
    SM_CLOCK_LOW_RANGE,
    SM_CLOCK_UTIL_THRESHOLD,
)
from simulators.sensor_model import GPU_TOTAL_MEMORY_MB


# Closed intervals every published gauge must stay inside
GAUGE_BOUNDS = {
    'DCGM_FI_DEV_GPU_UTIL': (0.0, 100.0),
    'DCGM_FI_DEV_MEM_CLOCK': (1590.0, 1595.0),
    'DCGM_FI_DEV_SM_CLOCK': (210.0, 1410.0),
    'DCGM_FI_DEV_GPU_TEMP': (28.0, 82.0),
    'DCGM_FI_DEV_MEMORY_TEMP': (25.0, 90.0),
    'DCGM_FI_DEV_POWER_USAGE': (50.0, 450.0),
    'DCGM_FI_DEV_MEM_COPY_UTIL': (0.0, 90.0),
    'DCGM_FI_DEV_FB_USED': (0.0, float(GPU_TOTAL_MEMORY_MB)),
    'DCGM_FI_DEV_FB_FREE': (0.0, float(GPU_TOTAL_MEMORY_MB)),
    'DCGM_FI_DEV_ENC_UTIL': (0.0, 1.0),
    'DCGM_FI_DEV_DEC_UTIL': (0.0, 1.0),
}


def _within(value: float, bounds) -> bool:
    low, high = bounds
    return low <= value <= high


class GPUTelemetryCheck:
    """Validates published DCGM telemetry after each tick."""

    def __init__(self, registry: MetricRegistry, simulator: GPUSimulator):
        self.registry = registry
        self.simulator = simulator
        self.logger = logging.getLogger("check.gpu")
        self._previous_counters: Dict[tuple, float] = {}

    def execute(self) -> Dict[str, Any]:
        """Execute GPU telemetry checks against the registry."""
        for device in self.simulator.devices:
            labels = device.labels()
            failure = (
                self._check_bounds(device.gpu, labels)
                or self._check_frame_buffer(device.gpu, labels)
                or self._check_sm_clock(device.gpu, labels)
                or self._check_counters(device.gpu, labels)
                or self._check_energy(device.gpu, labels)
            )
            if failure:
                self.logger.error(f"GPU {device.gpu}: {failure['failure_reason']}")
                return failure

        return {
            'name': 'gpu_telemetry',
            'status': 'PASS',
            'gpus': len(self.simulator.devices),
        }

    def _fail(self, gpu: str, reason: str, subsystem: str) -> Dict[str, Any]:
        return {
            'name': 'gpu_telemetry',
            'status': 'FAIL',
            'gpu': gpu,
            'failure_reason': reason,
            'subsystem': subsystem,
        }

    def _check_bounds(self, gpu: str, labels: Dict[str, str]) -> Optional[Dict[str, Any]]:
        for metric, bounds in GAUGE_BOUNDS.items():
            value = self.registry.value(metric, labels)
            if value is None:
                return self._fail(gpu, f"{metric} has no value", 'gpu')
            if not _within(value, bounds):
                return self._fail(gpu, f"{metric} out of range: {value} not in {list(bounds)}", 'gpu')
        return None

    def _check_frame_buffer(self, gpu: str, labels: Dict[str, str]) -> Optional[Dict[str, Any]]:
        used = self.registry.value('DCGM_FI_DEV_FB_USED', labels)
        free = self.registry.value('DCGM_FI_DEV_FB_FREE', labels)
        if not math.isclose(used + free, GPU_TOTAL_MEMORY_MB, rel_tol=1e-9):
            return self._fail(gpu, f"Frame buffer used+free {used + free} != {GPU_TOTAL_MEMORY_MB}", 'memory')
        return None

    def _check_sm_clock(self, gpu: str, labels: Dict[str, str]) -> Optional[Dict[str, Any]]:
        util = self.registry.value('DCGM_FI_DEV_GPU_UTIL', labels)
        sm_clock = self.registry.value('DCGM_FI_DEV_SM_CLOCK', labels)
        band = SM_CLOCK_HIGH_RANGE if util > SM_CLOCK_UTIL_THRESHOLD else SM_CLOCK_LOW_RANGE
        if not _within(sm_clock, band):
            return self._fail(gpu, f"SM clock {sm_clock} outside {list(band)} at {util}% utilization", 'clocks')
        return None

    def _check_counters(self, gpu: str, labels: Dict[str, str]) -> Optional[Dict[str, Any]]:
        for metric in (ENERGY_METRIC, PCIE_REPLAY_METRIC):
            value = self.registry.value(metric, labels)
            key = (metric, gpu)
            previous = self._previous_counters.get(key)
            if value is None:
                return self._fail(gpu, f"{metric} has no value", 'counters')
            if previous is not None and value < previous:
                return self._fail(gpu, f"{metric} decreased: {previous} -> {value}", 'counters')
            self._previous_counters[key] = value
        return None

    def _check_energy(self, gpu: str, labels: Dict[str, str]) -> Optional[Dict[str, Any]]:
        exported = self.registry.value(ENERGY_METRIC, labels)
        accumulated = self.simulator.energy_mj[gpu]
        if not math.isclose(exported, accumulated, rel_tol=1e-9):
            return self._fail(gpu, f"Energy counter {exported} != accumulator {accumulated}", 'power')
        return None
