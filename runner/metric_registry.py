"""Process-owned metric registry backed by prometheus_client."""

import logging
from typing import Dict, List, Optional, Sequence, Union

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, generate_latest


Instrument = Union[Gauge, Counter]


class MetricRegistry:
    """Named gauges and counters behind a private CollectorRegistry.

    One instance is shared by a simulator (the only writer) and the
    snapshot server (readers). prometheus_client guards every labelled
    value with its own lock, so single cell updates are atomic.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.logger = logging.getLogger("registry")
        self._instruments: Dict[str, Instrument] = {}
        self._kinds: Dict[str, str] = {}
        self._label_names: Dict[str, tuple] = {}
        self._bare_counters: List[str] = []

    def register_gauge(self, name: str, documentation: str,
                       label_names: Sequence[str] = ()) -> Gauge:
        """Register a gauge; raises ValueError if the name is taken."""
        self._check_free(name)
        gauge = Gauge(name, documentation, labelnames=tuple(label_names), registry=self.registry)
        self._remember(name, 'gauge', gauge, label_names)
        return gauge

    def register_counter(self, name: str, documentation: str,
                         label_names: Sequence[str] = (), bare_name: bool = False) -> Counter:
        """Register a monotonic counter; raises ValueError if the name is taken.

        With ``bare_name`` the counter is rendered under ``name`` itself, the
        way client_golang exporters such as dcgm-exporter expose it, instead
        of prometheus_client's ``name_total`` with a ``name_created`` series.
        """
        self._check_free(name)
        counter = Counter(name, documentation, labelnames=tuple(label_names), registry=self.registry)
        self._remember(name, 'counter', counter, label_names)
        if bare_name:
            self._bare_counters.append(name[:-6] if name.endswith('_total') else name)
        return counter

    def set(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        if self.kind(name) != 'gauge':
            raise TypeError(f"{name} is a {self.kind(name)}, only gauges can be set")
        self._cell(name, labels).set(value)

    def increment(self, name: str, delta: float = 1.0,
                  labels: Optional[Dict[str, str]] = None) -> None:
        if self.kind(name) != 'counter':
            raise TypeError(f"{name} is a {self.kind(name)}, only counters can be incremented")
        # Counter.inc rejects negative amounts with ValueError
        self._cell(name, labels).inc(delta)

    def value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Current value of one label combination, or None if never written."""
        sample_name = name
        if self.kind(name) == 'counter':
            base = name[:-6] if name.endswith('_total') else name
            sample_name = f"{base}_total"
        return self.registry.get_sample_value(sample_name, labels or {})

    def kind(self, name: str) -> str:
        if name not in self._kinds:
            raise KeyError(f"Unknown metric: {name}")
        return self._kinds[name]

    def names(self) -> List[str]:
        return list(self._instruments)

    def render(self) -> bytes:
        """Text exposition of every registered instrument."""
        output = generate_latest(self.registry)
        if not self._bare_counters:
            return output

        lines = []
        for line in output.decode('utf-8').split('\n'):
            line = self._bare_line(line)
            if line is not None:
                lines.append(line)
        return '\n'.join(lines).encode('utf-8')

    def _bare_line(self, line: str) -> Optional[str]:
        """Rename one exposition line of a bare counter; None drops the line."""
        text = line[7:] if line.startswith(('# HELP ', '# TYPE ')) else line
        for name in self._bare_counters:
            if text.startswith((f"{name}_created ", f"{name}_created{{")):
                return None
            if text.startswith((f"{name}_total ", f"{name}_total{{")):
                return line.replace(f"{name}_total", name, 1)
        return line

    def _check_free(self, name: str) -> None:
        if name in self._instruments:
            raise ValueError(f"Metric already registered: {name}")

    def _remember(self, name: str, kind: str, instrument: Instrument,
                  label_names: Sequence[str]) -> None:
        self._instruments[name] = instrument
        self._kinds[name] = kind
        self._label_names[name] = tuple(label_names)
        self.logger.debug(f"Registered {kind} {name} labels={list(label_names)}")

    def _cell(self, name: str, labels: Optional[Dict[str, str]]):
        instrument = self._instruments[name]
        if self._label_names[name]:
            return instrument.labels(**(labels or {}))
        if labels:
            raise ValueError(f"{name} takes no labels, got {sorted(labels)}")
        return instrument
