"""
Sweep configuration: connection, sweep, calibration and timing settings.

Defaults reproduce the fixed setup of the lab bench (Keysight VNA on
172.141.11.202, 0.5-3.0 GHz, 501 points, 300 Hz IFBW, archive ``cal_1_4``).
A YAML file may override any of them::

    connection:
      resource: "TCPIP0::172.141.11.202::5025::SOCKET"
      backend: null          # '@py' for pyvisa-py
      timeout_ms: 50000
      read_size: 2048
    sweep:
      start_ghz: 0.5
      stop_ghz: 3.0
      points: 501
      if_bandwidth_hz: 300
    calibration:
      archive: cal_1_4       # without the .csa suffix; null to skip
      store: false
    timing:
      settle_s: 0.5
      poll_interval_s: 1.0
      max_polls: null        # null polls *OPC? forever
"""

import logging
from dataclasses import dataclass, field, fields
from typing import Optional

import yaml

from .vna_keysight_pna import (BUFFER_SIZE, DEFAULT_RESOURCE, POLL_INTERVAL_S,
                               SETTLE_S, TIMEOUT_MS)

logger = logging.getLogger(__name__)


@dataclass
class ConnectionConfig:
    resource: str = DEFAULT_RESOURCE
    backend: Optional[str] = None
    timeout_ms: int = TIMEOUT_MS
    read_size: int = BUFFER_SIZE


@dataclass
class SweepSettings:
    start_ghz: float = 0.5
    stop_ghz: float = 3.0
    points: int = 501
    if_bandwidth_hz: float = 300.0


@dataclass
class CalibrationConfig:
    archive: Optional[str] = "cal_1_4"
    store: bool = False


@dataclass
class TimingConfig:
    settle_s: float = SETTLE_S
    poll_interval_s: float = POLL_INTERVAL_S
    max_polls: Optional[int] = None


@dataclass
class SweepConfig:
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    sweep: SweepSettings = field(default_factory=SweepSettings)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)

    def validate(self) -> "SweepConfig":
        s = self.sweep
        if s.stop_ghz <= s.start_ghz:
            raise ValueError("stop_ghz must be greater than start_ghz")
        if s.points < 1:
            raise ValueError("points must be >= 1")
        if s.if_bandwidth_hz <= 0:
            raise ValueError("if_bandwidth_hz must be > 0")
        if self.connection.read_size < 1:
            raise ValueError("read_size must be >= 1")
        if self.timing.max_polls is not None and self.timing.max_polls < 1:
            raise ValueError("max_polls must be >= 1 or null")
        return self


_SECTIONS = {
    "connection": ConnectionConfig,
    "sweep": SweepSettings,
    "calibration": CalibrationConfig,
    "timing": TimingConfig,
}


def _build_section(name, cls, raw):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{name}': {', '.join(sorted(unknown))}")
    return cls(**raw)


def config_from_dict(raw: Optional[dict]) -> SweepConfig:
    raw = raw or {}
    unknown = set(raw) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown config sections: {', '.join(sorted(unknown))}")
    sections = {name: _build_section(name, cls, raw.get(name))
                for name, cls in _SECTIONS.items()}
    return SweepConfig(**sections).validate()


def load_config(path: Optional[str] = None) -> SweepConfig:
    """Load a YAML sweep configuration; ``None`` returns the defaults."""
    if path is None:
        return SweepConfig().validate()
    with open(path, "r") as fh:
        try:
            raw = yaml.safe_load(fh)
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed YAML in {path}: {e}") from e
    logger.debug("Loaded sweep configuration from %s", path)
    return config_from_dict(raw)
