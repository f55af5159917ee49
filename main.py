#!/usr/bin/env python3
"""
hwsim-exporter CLI entry point.
Runs simulated DCGM (GPU) and IPMI (chassis) Prometheus exporters.
"""

import click
import sys
import signal
import logging
from pathlib import Path
from typing import Optional

from prometheus_client import disable_created_metrics

from runner.config_loader import ConfigLoader
from runner.exporter import Exporter, ExporterStartupError
from runner.sanity_check import SanityCheck


LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(level: str, log_file: Optional[str] = None) -> logging.Logger:
    """Configure process-wide logging."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT, handlers=handlers)

    logger = logging.getLogger("hwsim")
    if log_file:
        logger.info(f"Logging to {log_file}")
    return logger


def exporter_options(func):
    """Options shared by the exporter commands."""
    options = [
        click.option('--config', type=click.Path(exists=True), help='Exporter YAML config'),
        click.option('--listen-address', default=None, help='Address to bind (default 0.0.0.0)'),
        click.option('--port', type=int, default=None, help='Port to serve /metrics on'),
        click.option('--interval', 'interval_sec', type=float, default=None,
                     help='Seconds between simulation ticks (default 15)'),
        click.option('--seed', type=int, default=None, help='Random seed for reproducible output'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def run_exporter(kind: str, config: Optional[str], **overrides) -> None:
    logger = logging.getLogger("hwsim")

    try:
        settings = ConfigLoader(config).load(kind, overrides)
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    exporter = Exporter(kind, settings)
    signal.signal(signal.SIGTERM, lambda signum, frame: exporter.request_stop())

    logger.info(f"Starting fake {kind} metrics exporter on {settings['listen_address']}:{settings['port']}")
    try:
        exporter.serve_forever()
    except ExporterStartupError as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)


@click.group()
@click.option('--log-level', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']), help='Log level')
@click.option('--log-file', default=None, help='Also write logs to this file')
def cli(log_level: str, log_file: Optional[str]):
    """hwsim-exporter - Simulated GPU and chassis telemetry for Prometheus."""
    setup_logging(log_level, log_file)
    # DCGM and ipmi_exporter do not expose *_created series
    disable_created_metrics()


@cli.command()
@exporter_options
def gpu(config, listen_address, port, interval_sec, seed):
    """Serve simulated DCGM GPU metrics (default port 9400)."""
    run_exporter('gpu', config, listen_address=listen_address, port=port,
                 interval_sec=interval_sec, seed=seed)


@cli.command()
@exporter_options
def chassis(config, listen_address, port, interval_sec, seed):
    """Serve simulated IPMI chassis metrics (default port 9290)."""
    run_exporter('chassis', config, listen_address=listen_address, port=port,
                 interval_sec=interval_sec, seed=seed)


@cli.command()
@click.option('--kind', required=True, type=click.Choice(['gpu', 'chassis']), help='Simulator to check')
@click.option('--ticks', default=20, type=click.IntRange(min=1), help='Number of ticks to validate')
@click.option('--seed', type=int, default=None, help='Random seed for reproducible output')
@click.option('--output-dir', default='reports', help='Output directory for results')
def check(kind: str, ticks: int, seed: Optional[int], output_dir: str):
    """Run the simulator offline and validate every tick."""
    logger = logging.getLogger("hwsim")

    try:
        results = SanityCheck(kind, ticks, Path(output_dir), seed=seed).run()
    except ExporterStartupError as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

    if results['overall_status'] == 'PASS':
        logger.info(f"✓ {kind} simulator PASSED {results['ticks_run']} ticks")
        sys.exit(0)

    logger.error(f"✗ {kind} simulator FAILED")
    logger.error(f"  Tick: {results['failure_summary']['tick']}")
    logger.error(f"  Subsystem: {results['failure_summary']['subsystem']}")
    logger.error(f"  Root cause: {results['failure_summary']['root_cause']}")
    sys.exit(1)


if __name__ == '__main__':
    cli()
