"""Static description of the simulated GPUs and chassis sensors."""

from dataclasses import dataclass
from typing import Dict, List, Tuple


GPU_LABEL_NAMES = (
    'gpu',
    'UUID',
    'device',
    'modelName',
    'Hostname',
    'DCGM_FI_DRIVER_VERSION',
)

# 80GB A100, reported in MB
GPU_TOTAL_MEMORY_MB = 81920


@dataclass(frozen=True)
class GPUDevice:
    """One GPU as seen by the DCGM exporter."""

    gpu: str
    uuid: str
    device: str
    model_name: str = "NVIDIA A100-SXM4-80GB"
    hostname: str = "g001"
    driver_version: str = "560.35.03"

    def labels(self) -> Dict[str, str]:
        return {
            'gpu': self.gpu,
            'UUID': self.uuid,
            'device': self.device,
            'modelName': self.model_name,
            'Hostname': self.hostname,
            'DCGM_FI_DRIVER_VERSION': self.driver_version,
        }


GPU_DEVICES = (
    GPUDevice('0', 'GPU-10ac97a8-6854-4d04-4b34-354b379055b8', 'nvidia0'),
    GPUDevice('1', 'GPU-a3194300-a020-e3ba-ac84-a37dc730aeb8', 'nvidia1'),
    GPUDevice('2', 'GPU-3e59d793-a4c9-8da2-093c-716183e7049a', 'nvidia2'),
    GPUDevice('3', 'GPU-890b2d19-ed6f-15b1-3f1b-bdd34a7fa7c6', 'nvidia3'),
)


SENSOR_LABEL_NAMES = ('id', 'name')


@dataclass(frozen=True)
class SensorDescriptor:
    """A chassis sensor and the band its readings are drawn from."""

    id: str
    name: str
    category: str
    low: float
    high: float

    def labels(self) -> Dict[str, str]:
        return {'id': self.id, 'name': self.name}

    @property
    def band(self) -> Tuple[float, float]:
        return (self.low, self.high)


def _around(baseline: float, spread: float) -> Tuple[float, float]:
    return (baseline - spread, baseline + spread)


def _fan_sensors() -> List[SensorDescriptor]:
    """18 fan pairs: A fans on ids 4-21, B fans on ids 22-39."""
    fans = []
    for i in range(1, 19):
        fans.append(SensorDescriptor(str(i + 3), f"Fan{i}A", 'fan', 5880.0, 6120.0))
        fans.append(SensorDescriptor(str(i + 21), f"Fan{i}B", 'fan', 5040.0, 5520.0))
    return fans


# Temperature bands by sensor name
TEMPERATURE_BANDS = {
    'Temp': (54.0, 57.0),
    'Inlet Temp': (21.0, 23.0),
    'Exhaust Temp': (31.0, 34.0),
    'GPU Temp': (39.0, 41.0),
}


def _temperature_sensor(sensor_id: str, name: str) -> SensorDescriptor:
    if name in TEMPERATURE_BANDS:
        low, high = TEMPERATURE_BANDS[name]
    else:
        low, high = TEMPERATURE_BANDS['GPU Temp']
    return SensorDescriptor(sensor_id, name, 'temperature', low, high)


VOLTAGE_BANDS = {
    'VCORE VR': (1.18, 1.20),
    'MEMABCD VR': (1.21, 1.22),
    'MEMEFGH VR': (1.21, 1.22),
    'main': (238.0, 242.0),
}


def _voltage_sensor(sensor_id: str, name: str) -> SensorDescriptor:
    low, high = VOLTAGE_BANDS.get(name, VOLTAGE_BANDS['main'])
    return SensorDescriptor(sensor_id, name, 'voltage', low, high)


FAN_SENSORS = tuple(_fan_sensors())

TEMPERATURE_SENSORS = tuple(
    _temperature_sensor(sensor_id, name)
    for sensor_id, name in [
        ('1', 'Temp'),
        ('2', 'Temp'),
        ('3', 'Inlet Temp'),
        ('171', 'GPU21 Temp'),
        ('172', 'GPU22 Temp'),
        ('173', 'GPU23 Temp'),
        ('174', 'GPU24 Temp'),
        ('180', 'Exhaust Temp'),
    ]
)

POWER_SENSORS = (
    SensorDescriptor('91', 'Pwr Consumption', 'power', *_around(1160.0, 20.0)),
)

CURRENT_SENSORS = (
    SensorDescriptor('81', 'Current 1', 'current', *_around(1.6, 0.05)),
    SensorDescriptor('82', 'Current 2', 'current', *_around(0.2, 0.05)),
    SensorDescriptor('251', 'Current 3', 'current', *_around(1.6, 0.05)),
    SensorDescriptor('252', 'Current 4', 'current', *_around(1.6, 0.05)),
)

VOLTAGE_SENSORS = tuple(
    _voltage_sensor(sensor_id, name)
    for sensor_id, name in [
        ('303', 'VCORE VR'),
        ('304', 'VCORE VR'),
        ('305', 'MEMABCD VR'),
        ('306', 'MEMEFGH VR'),
        ('307', 'MEMABCD VR'),
        ('308', 'MEMEFGH VR'),
        ('83', 'Voltage 1'),
        ('84', 'Voltage 2'),
        ('253', 'Voltage 3'),
        ('254', 'Voltage 4'),
    ]
)

CHASSIS_SENSORS = (
    FAN_SENSORS
    + TEMPERATURE_SENSORS
    + POWER_SENSORS
    + CURRENT_SENSORS
    + VOLTAGE_SENSORS
)
