"""
Example: Single S-parameter sweep on a Keysight VNA with a stored calibration.

Edit the VISA resource string (or examples/sweep_config.yaml) before running.
"""

import logging

from vna_sweep_control import VNA, load_config, run_single_scan


def main() -> None:
    logging.basicConfig(level=logging.INFO)

    # --- Configuration ---
    config = load_config("examples/sweep_config.yaml")
    config.connection.resource = "TCPIP0::172.141.11.202::5025::SOCKET"  # <-- change to your VNA

    # --- Acquisition ---
    conn = config.connection
    with VNA(conn.resource, backend=conn.backend, timeout_ms=conn.timeout_ms,
             read_size=conn.read_size, settle_s=config.timing.settle_s) as vna:
        report = run_single_scan(vna, config)

    print(f"Acquired {report.trace.size} values.")
    print("Settings:", report.settings)


if __name__ == "__main__":
    main()
