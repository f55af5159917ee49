"""IPMI chassis sensor simulator."""

import time
import random
import logging
from typing import Iterable, Optional

from runner.metric_registry import MetricRegistry
from simulators.sensor_model import CHASSIS_SENSORS, SENSOR_LABEL_NAMES, SensorDescriptor


NOMINAL_STATE = 0

SEL_FREE_SPACE_BYTES = 15632
SEL_LOGS_COUNT = 47

COLLECTORS = ('ipmi', 'sel')

STATE_HELP = "Reported state of a {} sensor (0=nominal, 1=warning, 2=critical)."

# category -> (value metric, value help, state metric)
CATEGORY_METRICS = {
    'fan': ('ipmi_fan_speed_rpm', "Fan speed in rotations per minute.", 'ipmi_fan_speed_state'),
    'temperature': ('ipmi_temperature_celsius', "Temperature reading in degree Celsius.", 'ipmi_temperature_state'),
    'power': ('ipmi_power_watts', "Power reading in Watts.", 'ipmi_power_state'),
    'current': ('ipmi_current_amperes', "Current reading in Amperes.", 'ipmi_current_state'),
    'voltage': ('ipmi_voltage_volts', "Voltage reading in Volts.", 'ipmi_voltage_state'),
}

STATE_NOUNS = {
    'fan': 'fan speed',
    'temperature': 'temperature',
    'power': 'power',
    'current': 'current',
    'voltage': 'voltage',
}


class ChassisSimulator:
    """Simulates ipmi_exporter output for a single GPU server chassis."""

    def __init__(self, registry: MetricRegistry, hostname: str,
                 rng: Optional[random.Random] = None,
                 sensors: Iterable[SensorDescriptor] = CHASSIS_SENSORS):
        self.registry = registry
        self.hostname = hostname
        self.rng = rng or random.Random()
        self.sensors = list(sensors)
        self.logger = logging.getLogger("simulator.chassis")
        self.ticks = 0

        self._register()
        self.logger.info(f"Chassis simulator ready for node {hostname}: {len(self.sensors)} sensors")

    def _register(self) -> None:
        registry = self.registry
        registry.register_gauge(
            'node_uname_info',
            "Labeled system information as provided by the uname system call.",
            ['nodename'],
        )

        for category, (value_metric, value_help, state_metric) in CATEGORY_METRICS.items():
            registry.register_gauge(value_metric, value_help, SENSOR_LABEL_NAMES)
            registry.register_gauge(state_metric, STATE_HELP.format(STATE_NOUNS[category]), SENSOR_LABEL_NAMES)

        # Generic sensors, exposed for compatibility with ipmi_exporter
        registry.register_gauge(
            'ipmi_sensor_state',
            "Indicates the severity of the state reported by an IPMI sensor (0=nominal, 1=warning, 2=critical).",
            ['id', 'name', 'type'],
        )
        registry.register_gauge(
            'ipmi_sensor_value',
            "Generic data read from an IPMI sensor of unknown type, relying on labels for context.",
            ['id', 'name', 'type'],
        )

        registry.register_gauge('ipmi_sel_free_space_bytes', "Current free space remaining for new SEL entries.")
        registry.register_gauge('ipmi_sel_logs_count', "Current number of log entries in the SEL.")
        registry.register_gauge(
            'ipmi_scrape_duration_seconds',
            "Returns how long the scrape took to complete in seconds.",
        )
        registry.register_gauge(
            'ipmi_up',
            "'1' if a scrape of the IPMI device was successful, '0' otherwise.",
            ['collector'],
        )

    def tick(self) -> None:
        """Redraw every sensor reading and refresh the fixed gauges."""
        start = time.perf_counter()
        registry = self.registry

        registry.set('node_uname_info', 1, {'nodename': self.hostname})

        for sensor in self.sensors:
            value_metric, _, state_metric = CATEGORY_METRICS[sensor.category]
            labels = sensor.labels()
            registry.set(value_metric, self.rng.uniform(sensor.low, sensor.high), labels)
            registry.set(state_metric, NOMINAL_STATE, labels)

        registry.set('ipmi_sel_free_space_bytes', SEL_FREE_SPACE_BYTES)
        registry.set('ipmi_sel_logs_count', SEL_LOGS_COUNT)

        # The simulated BMC never fails
        for collector in COLLECTORS:
            registry.set('ipmi_up', 1, {'collector': collector})

        duration = time.perf_counter() - start
        registry.set('ipmi_scrape_duration_seconds', duration)

        self.ticks += 1
        self.logger.debug(f"Chassis tick {self.ticks} took {duration:.6f}s")
