"""
Command-line entry point: ``vna-sweep scan`` / ``vna-sweep calibrate``.

Usage:
    vna-sweep scan --config sweep_config.yaml --output trace.csv
    vna-sweep calibrate --archive cal_1_4 --store
"""

import argparse
import logging
import sys

import numpy as np

from .config import load_config
from .single_scan import run_calibration, run_single_scan
from .vna_keysight_pna import VNA, OperationTimeoutError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vna-sweep",
        description="Configure a Keysight VNA over SCPI and run a single sweep.")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG logging")

    # SUPPRESS keeps a subcommand from resetting a -v given before it
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true",
                        default=argparse.SUPPRESS, help="DEBUG logging")
    common.add_argument("--config", help="YAML sweep configuration")
    common.add_argument("--resource", help="VISA resource string (overrides config)")
    common.add_argument("--check-errors", action="store_true",
                        help="drain SYST:ERR? after the sequence")

    archive_help = "calibration archive name, without .csa"
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", parents=[common], help="single sweep + readback")
    archive = scan.add_mutually_exclusive_group()
    archive.add_argument("--archive", help=archive_help)
    archive.add_argument("--no-archive", action="store_true",
                         help="do not load a calibration archive")
    scan.add_argument("--output", help="write the formatted trace to this CSV file")

    cal = sub.add_parser("calibrate", parents=[common],
                         help="apply settings and load the calibration archive")
    cal.add_argument("--archive", help=archive_help)
    cal.add_argument("--store", action="store_true",
                     help="store the current state to the archive before loading it")
    return parser


def _print_report(report):
    print("Settings read back:")
    for key, value in report.settings.items():
        print(f"  {key:<10}: {value}")
    if report.trace.size:
        print(f"Trace: {report.trace.size} values"
              f"{' (truncated)' if report.trace_truncated else ''}")
    for err in report.errors:
        print(f"SCPI error queue: {err}")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args.config)
    except (OSError, ValueError, TypeError) as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    if args.resource:
        config.connection.resource = args.resource
    if args.archive:
        config.calibration.archive = args.archive
    if getattr(args, "no_archive", False):
        config.calibration.archive = None
    if getattr(args, "store", False):
        config.calibration.store = True

    conn = config.connection
    try:
        vna = VNA(conn.resource, backend=conn.backend, timeout_ms=conn.timeout_ms,
                  read_size=conn.read_size, settle_s=config.timing.settle_s)
    except RuntimeError as e:
        logger.error("%s", e)
        return 1

    with vna:
        try:
            if args.command == "scan":
                report = run_single_scan(vna, config, check_errors=args.check_errors)
            else:
                report = run_calibration(vna, config, check_errors=args.check_errors)
        except OperationTimeoutError as e:
            logger.error("%s", e)
            return 1

    _print_report(report)
    if getattr(args, "output", None):
        np.savetxt(args.output, report.trace, delimiter=",", header="fdata", comments="")
        logger.info("Trace saved to %s", args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
