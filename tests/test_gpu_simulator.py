"""Unit tests for the DCGM GPU simulator."""

import random

import pytest

from conftest import FixedRandom
from runner.metric_registry import MetricRegistry
from simulators.gpu_simulator import (
    ENERGY_METRIC,
    ENERGY_SEED_RANGE_MJ,
    GAUGE_READINGS,
    GPU_METRICS,
    PCIE_REPLAY_METRIC,
    GPUSimulator,
)
from simulators.sensor_model import GPU_DEVICES, GPU_TOTAL_MEMORY_MB


TICKS = 200


@pytest.fixture
def readings(gpu_simulator):
    """Readings of every GPU over many ticks."""
    collected = []
    for _ in range(TICKS):
        gpu_simulator.tick()
        collected.extend(gpu_simulator.last_readings.values())
    return collected


class TestGPUSimulator:
    def test_registers_dcgm_metrics(self, registry, gpu_simulator):
        assert registry.names() == [name for name, _, _ in GPU_METRICS]
        assert registry.kind(ENERGY_METRIC) == 'counter'
        assert registry.kind(PCIE_REPLAY_METRIC) == 'counter'
        assert registry.kind('DCGM_FI_DEV_GPU_UTIL') == 'gauge'

    def test_energy_seeded_before_first_tick(self, registry, gpu_simulator):
        low, high = ENERGY_SEED_RANGE_MJ
        for device in GPU_DEVICES:
            seed = gpu_simulator.energy_mj[device.gpu]
            assert low <= seed <= high
            assert registry.value(ENERGY_METRIC, device.labels()) == seed
            assert registry.value(PCIE_REPLAY_METRIC, device.labels()) == 0

    def test_tick_publishes_every_gpu(self, registry, gpu_simulator):
        gpu_simulator.tick()

        assert gpu_simulator.ticks == 1
        for device in GPU_DEVICES:
            reading = gpu_simulator.last_readings[device.gpu]
            for key, metric in GAUGE_READINGS.items():
                assert registry.value(metric, device.labels()) == reading[key]

    def test_readings_stay_in_bounds(self, readings):
        for reading in readings:
            assert 0 <= reading['gpu_util'] <= 100
            assert 1590 <= reading['mem_clock'] <= 1595
            assert 0 <= reading['mem_copy_util'] <= 90
            assert 0 <= reading['enc_util'] <= 1
            assert 0 <= reading['dec_util'] <= 1
            assert 0 <= reading['fb_used'] <= GPU_TOTAL_MEMORY_MB

            if reading['active']:
                assert 60 <= reading['gpu_util'] <= 100
                assert 10 <= reading['mem_copy_util'] <= 90
            else:
                assert 0 <= reading['gpu_util'] <= 15
                assert 0 <= reading['mem_copy_util'] <= 5

    def test_temperature_and_power_follow_utilization(self, readings):
        for reading in readings:
            base_temp = 30 + 0.5 * reading['gpu_util']
            assert base_temp - 2 <= reading['gpu_temp'] <= base_temp + 2
            assert base_temp - 5 <= reading['memory_temp'] <= base_temp + 10

            base_power = 60 + 380 * reading['gpu_util'] / 100
            assert reading['base_power'] == pytest.approx(base_power)
            assert base_power - 10 <= reading['power_usage'] <= base_power + 10

    def test_sm_clock_bands(self, readings):
        for reading in readings:
            if reading['gpu_util'] > 50:
                assert 1380 <= reading['sm_clock'] <= 1410
            else:
                assert 210 <= reading['sm_clock'] <= 300

    def test_frame_buffer_sums_to_total(self, readings):
        for reading in readings:
            assert reading['fb_used'] + reading['fb_free'] == pytest.approx(GPU_TOTAL_MEMORY_MB)

    def test_activity_is_independent_draw(self, readings):
        active = sum(1 for reading in readings if reading['active'])
        assert active / len(readings) == pytest.approx(0.8, abs=0.05)

    def test_energy_accumulates(self, registry, gpu_simulator):
        expected = dict(gpu_simulator.energy_mj)

        for _ in range(25):
            gpu_simulator.tick()
            for device in GPU_DEVICES:
                reading = gpu_simulator.last_readings[device.gpu]
                assert reading['energy_delta_mj'] == pytest.approx(reading['base_power'] * 15 * 1000)
                expected[device.gpu] += reading['energy_delta_mj']

        for device in GPU_DEVICES:
            assert gpu_simulator.energy_mj[device.gpu] == pytest.approx(expected[device.gpu])
            assert registry.value(ENERGY_METRIC, device.labels()) == pytest.approx(expected[device.gpu])

    def test_counters_never_decrease(self, registry, gpu_simulator):
        previous = {}
        for _ in range(50):
            gpu_simulator.tick()
            for device in GPU_DEVICES:
                for metric in (ENERGY_METRIC, PCIE_REPLAY_METRIC):
                    value = registry.value(metric, device.labels())
                    key = (metric, device.gpu)
                    if key in previous:
                        assert value >= previous[key]
                    previous[key] = value

    def test_energy_uses_tick_interval(self):
        registry = MetricRegistry()
        simulator = GPUSimulator(registry, interval_sec=1.0, rng=random.Random(5))
        simulator.tick()
        reading = simulator.last_readings['0']
        assert reading['energy_delta_mj'] == pytest.approx(reading['base_power'] * 1000)

    def test_pcie_replay_increments_on_rare_draw(self, registry):
        # Every draw at 0.0: always active, always a PCIe retry
        simulator = GPUSimulator(registry, rng=FixedRandom(0.0))
        for _ in range(3):
            simulator.tick()

        for device in GPU_DEVICES:
            assert registry.value(PCIE_REPLAY_METRIC, device.labels()) == 3
            reading = simulator.last_readings[device.gpu]
            assert reading['active'] is True
            assert reading['gpu_util'] == 60.0
            assert reading['sm_clock'] == 1380.0

    def test_idle_gpu(self, registry):
        simulator = GPUSimulator(registry, rng=FixedRandom(0.99))
        simulator.tick()

        for device in GPU_DEVICES:
            reading = simulator.last_readings[device.gpu]
            assert reading['active'] is False
            assert reading['gpu_util'] == pytest.approx(14.85)
            assert 210 <= reading['sm_clock'] <= 300
            assert reading['pcie_replays'] == 0
            assert registry.value(PCIE_REPLAY_METRIC, device.labels()) == 0

    def test_device_labels(self):
        labels = GPU_DEVICES[2].labels()
        assert labels == {
            'gpu': '2',
            'UUID': 'GPU-3e59d793-a4c9-8da2-093c-716183e7049a',
            'device': 'nvidia2',
            'modelName': 'NVIDIA A100-SXM4-80GB',
            'Hostname': 'g001',
            'DCGM_FI_DRIVER_VERSION': '560.35.03',
        }

    def test_counters_exposed_without_total_suffix(self, registry, gpu_simulator):
        gpu_simulator.tick()
        text = registry.render().decode('utf-8')

        for metric in (ENERGY_METRIC, PCIE_REPLAY_METRIC):
            assert f"# TYPE {metric} counter" in text
            rows = [line for line in text.splitlines() if line.startswith(metric + '{')]
            assert len(rows) == len(GPU_DEVICES)
            assert f"{metric}_total" not in text
            assert f"{metric}_created" not in text

    def test_gauges_change_between_ticks(self, registry, gpu_simulator):
        gpu_simulator.tick()
        first = {
            (metric, device.gpu): registry.value(metric, device.labels())
            for metric in GAUGE_READINGS.values()
            for device in GPU_DEVICES
        }
        gpu_simulator.tick()

        for (metric, gpu), value in first.items():
            labels = GPU_DEVICES[int(gpu)].labels()
            assert registry.value(metric, labels) != value, (metric, gpu)
