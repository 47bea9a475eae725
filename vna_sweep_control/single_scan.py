"""
Measurement sequences for one channel of the VNA.

``run_single_scan`` configures the sweep, loads the calibration archive,
fires one sweep, waits for ``*OPC?`` and reads the formatted trace plus the
settings back. ``run_calibration`` only configures, stores/loads the archive
and reads the settings back.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

from .config import SweepConfig
from .vna_keysight_pna import VNA

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    trace: np.ndarray = field(default_factory=lambda: np.empty(0))
    trace_truncated: bool = False
    settings: Dict[str, str] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)


def parse_trace(response: str):
    """
    Convierte la respuesta FDATA (valores separados por comas) en un array.

    Si la respuesta no termina en '\\n' la lectura se cortó en read_size y el
    último valor está incompleto: se descarta.

    Returns:
        (np.ndarray, truncated)
    """
    truncated = bool(response) and not response.endswith("\n")
    parts = [p.strip() for p in response.strip().split(",")]
    if truncated:
        parts = parts[:-1]

    values = []
    for p in parts:
        if not p:
            continue
        try:
            values.append(float(p))
        except ValueError:
            logger.warning("Skipping non-numeric trace value %r", p)
    return np.asarray(values, dtype=float), truncated


def configure_channel(vna: VNA, config: SweepConfig):
    s = config.sweep
    vna.set_span(s.start_ghz, s.stop_ghz)
    vna.set_sweep_points(s.points)
    vna.set_if_bandwidth(s.if_bandwidth_hz)


def run_single_scan(vna: VNA, config: SweepConfig, check_errors: bool = False) -> SweepReport:
    vna.reset()
    configure_channel(vna, config)

    if config.calibration.archive:
        vna.load_calibration_archive(config.calibration.archive)

    # Un solo barrido
    vna.continuous(False)
    vna.trigger_single()
    vna.wait_for_operation_complete(poll_interval_s=config.timing.poll_interval_s,
                                    max_attempts=config.timing.max_polls)
    vna.abort()

    _, data = vna.fetch_formatted_data()
    trace, truncated = parse_trace(data)
    if truncated:
        logger.warning("Trace response filled the %d byte read; last value dropped",
                       config.connection.read_size)

    report = SweepReport(trace=trace, trace_truncated=truncated,
                         settings=vna.read_settings())
    if check_errors:
        report.errors = vna.check_errors()
    return report


def run_calibration(vna: VNA, config: SweepConfig, check_errors: bool = False) -> SweepReport:
    configure_channel(vna, config)

    archive = config.calibration.archive
    if archive:
        if config.calibration.store:
            vna.store_calibration_archive(archive)
        vna.load_calibration_archive(archive)
    else:
        logger.warning("No calibration archive configured; only the sweep settings are applied")

    report = SweepReport(settings=vna.read_settings())
    if check_errors:
        report.errors = vna.check_errors()
    return report
