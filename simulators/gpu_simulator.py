"""NVIDIA DCGM GPU telemetry simulator."""

import random
import logging
from typing import Dict, Any, Iterable, Optional

from runner.metric_registry import MetricRegistry
from simulators.sensor_model import GPU_DEVICES, GPU_LABEL_NAMES, GPU_TOTAL_MEMORY_MB, GPUDevice


ENERGY_METRIC = 'DCGM_FI_DEV_TOTAL_ENERGY_CONSUMPTION'
PCIE_REPLAY_METRIC = 'DCGM_FI_DEV_PCIE_REPLAY_COUNTER'

# (name, help, kind)
GPU_METRICS = [
    ('DCGM_FI_DEV_SM_CLOCK', 'SM clock frequency (in MHz).', 'gauge'),
    ('DCGM_FI_DEV_MEM_CLOCK', 'Memory clock frequency (in MHz).', 'gauge'),
    ('DCGM_FI_DEV_MEMORY_TEMP', 'Memory temperature (in C).', 'gauge'),
    ('DCGM_FI_DEV_GPU_TEMP', 'GPU temperature (in C).', 'gauge'),
    ('DCGM_FI_DEV_POWER_USAGE', 'Power draw (in W).', 'gauge'),
    (ENERGY_METRIC, 'Total energy consumption since boot (in mJ).', 'counter'),
    ('DCGM_FI_DEV_GPU_UTIL', 'GPU utilization (in %).', 'gauge'),
    ('DCGM_FI_DEV_MEM_COPY_UTIL', 'Memory utilization (in %).', 'gauge'),
    ('DCGM_FI_DEV_ENC_UTIL', 'Encoder utilization (in %).', 'gauge'),
    ('DCGM_FI_DEV_DEC_UTIL', 'Decoder utilization (in %).', 'gauge'),
    ('DCGM_FI_DEV_FB_FREE', 'Frame buffer memory free (in MB).', 'gauge'),
    ('DCGM_FI_DEV_FB_USED', 'Frame buffer memory used (in MB).', 'gauge'),
    (PCIE_REPLAY_METRIC, 'Total number of PCIe retries.', 'counter'),
]

# Reading key -> gauge it is published to
GAUGE_READINGS = {
    'gpu_util': 'DCGM_FI_DEV_GPU_UTIL',
    'mem_clock': 'DCGM_FI_DEV_MEM_CLOCK',
    'sm_clock': 'DCGM_FI_DEV_SM_CLOCK',
    'gpu_temp': 'DCGM_FI_DEV_GPU_TEMP',
    'memory_temp': 'DCGM_FI_DEV_MEMORY_TEMP',
    'power_usage': 'DCGM_FI_DEV_POWER_USAGE',
    'mem_copy_util': 'DCGM_FI_DEV_MEM_COPY_UTIL',
    'fb_used': 'DCGM_FI_DEV_FB_USED',
    'fb_free': 'DCGM_FI_DEV_FB_FREE',
    'enc_util': 'DCGM_FI_DEV_ENC_UTIL',
    'dec_util': 'DCGM_FI_DEV_DEC_UTIL',
}

ACTIVE_PROBABILITY = 0.8
ACTIVE_UTIL_RANGE = (60.0, 100.0)
IDLE_UTIL_RANGE = (0.0, 15.0)
MEM_CLOCK_RANGE = (1590.0, 1595.0)
SM_CLOCK_HIGH_RANGE = (1380.0, 1410.0)
SM_CLOCK_LOW_RANGE = (210.0, 300.0)
SM_CLOCK_UTIL_THRESHOLD = 50.0
ACTIVE_MEM_UTIL_RANGE = (10.0, 90.0)
IDLE_MEM_UTIL_RANGE = (0.0, 5.0)
CODEC_UTIL_RANGE = (0.0, 1.0)
IDLE_POWER_W = 60.0
POWER_SWING_W = 380.0
PCIE_REPLAY_PROBABILITY = 0.01
ENERGY_SEED_RANGE_MJ = (1.2e12, 1.8e12)


class GPUSimulator:
    """Simulates DCGM exporter telemetry for a fixed set of GPUs.

    Every tick draws a fresh activity flag per GPU and derives the other
    readings from it: clocks, temperatures and power follow utilization,
    frame buffer usage follows memory utilization. Only the energy
    accumulator carries over between ticks.
    """

    def __init__(self, registry: MetricRegistry, interval_sec: float = 15.0,
                 rng: Optional[random.Random] = None,
                 devices: Iterable[GPUDevice] = GPU_DEVICES):
        self.registry = registry
        self.interval_sec = interval_sec
        self.rng = rng or random.Random()
        self.devices = list(devices)
        self.logger = logging.getLogger("simulator.gpu")

        for name, documentation, kind in GPU_METRICS:
            if kind == 'counter':
                # dcgm-exporter exposes its counters without the _total suffix
                registry.register_counter(name, documentation, GPU_LABEL_NAMES, bare_name=True)
            else:
                registry.register_gauge(name, documentation, GPU_LABEL_NAMES)

        # Energy since boot (mJ), seeded once per process
        self.energy_mj: Dict[str, float] = {}
        for device in self.devices:
            seed = self.rng.uniform(*ENERGY_SEED_RANGE_MJ)
            self.energy_mj[device.gpu] = seed
            registry.increment(ENERGY_METRIC, seed, device.labels())
            registry.increment(PCIE_REPLAY_METRIC, 0, device.labels())

        self.last_readings: Dict[str, Dict[str, Any]] = {}
        self.ticks = 0
        self.logger.info(f"GPU simulator ready: {len(self.devices)} GPUs, interval {interval_sec}s")

    def sample(self, device: GPUDevice) -> Dict[str, Any]:
        """Draw one reading for a GPU and advance its energy accumulator."""
        rng = self.rng

        # Fresh draw every tick, no memory of the previous state
        active = rng.random() < ACTIVE_PROBABILITY

        gpu_util = rng.uniform(*(ACTIVE_UTIL_RANGE if active else IDLE_UTIL_RANGE))
        mem_clock = rng.uniform(*MEM_CLOCK_RANGE)

        if gpu_util > SM_CLOCK_UTIL_THRESHOLD:
            sm_clock = rng.uniform(*SM_CLOCK_HIGH_RANGE)
        else:
            sm_clock = rng.uniform(*SM_CLOCK_LOW_RANGE)

        base_temp = 30.0 + gpu_util * 0.5
        gpu_temp = base_temp + rng.uniform(-2.0, 2.0)
        memory_temp = base_temp + rng.uniform(-5.0, 10.0)

        base_power = IDLE_POWER_W + POWER_SWING_W * gpu_util / 100
        power_usage = base_power + rng.uniform(-10.0, 10.0)

        mem_copy_util = rng.uniform(*(ACTIVE_MEM_UTIL_RANGE if active else IDLE_MEM_UTIL_RANGE))
        fb_used = GPU_TOTAL_MEMORY_MB * mem_copy_util / 100
        fb_free = GPU_TOTAL_MEMORY_MB - fb_used

        enc_util = rng.uniform(*CODEC_UTIL_RANGE)
        dec_util = rng.uniform(*CODEC_UTIL_RANGE)

        # W * s -> mJ
        energy_delta_mj = base_power * self.interval_sec * 1000
        self.energy_mj[device.gpu] += energy_delta_mj

        pcie_replays = 1 if rng.random() < PCIE_REPLAY_PROBABILITY else 0

        return {
            'active': active,
            'gpu_util': gpu_util,
            'mem_clock': mem_clock,
            'sm_clock': sm_clock,
            'gpu_temp': gpu_temp,
            'memory_temp': memory_temp,
            'base_power': base_power,
            'power_usage': power_usage,
            'mem_copy_util': mem_copy_util,
            'fb_used': fb_used,
            'fb_free': fb_free,
            'enc_util': enc_util,
            'dec_util': dec_util,
            'energy_delta_mj': energy_delta_mj,
            'pcie_replays': pcie_replays,
        }

    def tick(self) -> None:
        """Publish one fresh reading for every GPU."""
        for device in self.devices:
            reading = self.sample(device)
            labels = device.labels()

            for key, metric in GAUGE_READINGS.items():
                self.registry.set(metric, reading[key], labels)

            self.registry.increment(ENERGY_METRIC, reading['energy_delta_mj'], labels)
            if reading['pcie_replays']:
                self.registry.increment(PCIE_REPLAY_METRIC, reading['pcie_replays'], labels)
                self.logger.debug(f"PCIe replay on GPU {device.gpu}")

            self.last_readings[device.gpu] = reading

        self.ticks += 1
        self.logger.debug(f"GPU tick {self.ticks} published")
