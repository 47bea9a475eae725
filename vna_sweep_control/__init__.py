"""
vna_sweep_control package

PyVISA/SCPI single-sweep control for a Keysight network analyzer.
"""

from .vna_keysight_pna import VNA, OperationTimeoutError
from .config import SweepConfig, load_config
from .single_scan import SweepReport, run_single_scan, run_calibration

__all__ = [
    "VNA",
    "OperationTimeoutError",
    "SweepConfig",
    "load_config",
    "SweepReport",
    "run_single_scan",
    "run_calibration",
]
