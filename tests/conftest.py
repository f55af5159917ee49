"""Shared fixtures for the simulator and exporter tests."""

import random
import time
import urllib.request
from collections import defaultdict

import pytest
from prometheus_client.parser import text_string_to_metric_families

from runner.metric_registry import MetricRegistry
from simulators.chassis_simulator import ChassisSimulator
from simulators.gpu_simulator import GPUSimulator


class FixedRandom(random.Random):
    """random.Random whose every draw lands on the same fraction."""

    def __init__(self, fraction):
        super().__init__(0)
        self.fraction = fraction

    def random(self):
        return self.fraction


def wait_for(predicate, timeout=5.0, interval=0.01):
    """Poll until predicate() is truthy or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def scrape(url):
    with urllib.request.urlopen(url, timeout=5) as response:
        return response.status, response.headers.get('Content-Type'), response.read().decode('utf-8')


def samples_by_name(text):
    """Group exposition samples by sample name.

    The text parser names every counter sample `<name>_total`, whether or
    not the wire name carries the suffix.
    """
    by_name = defaultdict(list)
    for family in text_string_to_metric_families(text):
        for sample in family.samples:
            by_name[sample.name].append(sample)
    return by_name


@pytest.fixture
def registry():
    return MetricRegistry()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def gpu_simulator(registry, rng):
    return GPUSimulator(registry, interval_sec=15.0, rng=rng)


@pytest.fixture
def chassis_simulator(registry, rng):
    return ChassisSimulator(registry, "test-node", rng=rng)
