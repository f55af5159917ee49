"""YAML exporter configuration loader."""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional


DEFAULTS = {
    'gpu': {
        'listen_address': '0.0.0.0',
        'port': 9400,
        'interval_sec': 15.0,
        'seed': None,
    },
    'chassis': {
        'listen_address': '0.0.0.0',
        'port': 9290,
        'interval_sec': 15.0,
        'seed': None,
    },
}


class ConfigLoader:
    """Loads exporter settings from defaults and an optional YAML file."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None
        if self.config_path is not None and not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

    def load(self, kind: str, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Resolve settings for an exporter kind.

        Precedence is defaults, then the file's ``exporter`` mapping, then
        ``overrides`` entries that are not None (CLI flags).
        """
        if kind not in DEFAULTS:
            raise ValueError(f"Unknown exporter kind: {kind}")

        settings = dict(DEFAULTS[kind])

        if self.config_path is not None:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
            self._validate_file(config)
            settings.update(config['exporter'] or {})

        for key, value in (overrides or {}).items():
            if value is not None:
                settings[key] = value

        self._validate(settings)
        settings['interval_sec'] = float(settings['interval_sec'])
        return settings

    def _validate_file(self, config: Dict[str, Any]) -> None:
        """Validate config file structure."""
        if not isinstance(config, dict) or 'exporter' not in config:
            raise ValueError("Config must contain 'exporter' key")

        exporter = config['exporter'] or {}
        if not isinstance(exporter, dict):
            raise ValueError("'exporter' must be a mapping")

        unknown = set(exporter) - set(DEFAULTS['gpu'])
        if unknown:
            raise ValueError(f"Unknown exporter settings: {', '.join(sorted(unknown))}")

    def _validate(self, settings: Dict[str, Any]) -> None:
        port = settings['port']
        if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 65535:
            raise ValueError(f"port must be an integer in [0, 65535], got {port!r}")

        interval = settings['interval_sec']
        if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval <= 0:
            raise ValueError(f"interval_sec must be a positive number, got {interval!r}")

        seed = settings['seed']
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            raise ValueError(f"seed must be an integer, got {seed!r}")

        if not isinstance(settings['listen_address'], str):
            raise ValueError("listen_address must be a string")
