"""
Convenience launcher — starts the siteblock service and (optionally) the
simulator against it.

Usage:
    python start.py             # service only
    python start.py --simulate  # service + one simulator run
"""

from __future__ import annotations

import argparse
import subprocess
import sys
import time


def start_service() -> subprocess.Popen:
    return subprocess.Popen(
        [sys.executable, "-m", "siteblock.main"],
        stdout=sys.stdout,
        stderr=sys.stderr,
    )


def run_simulator() -> int:
    return subprocess.call([sys.executable, "scripts/simulate.py"])


def main() -> None:
    parser = argparse.ArgumentParser(description="Start the siteblock service")
    parser.add_argument("--simulate", action="store_true", help="Also run the simulator once")
    args = parser.parse_args()

    print("Starting siteblock service…")
    service_proc = start_service()

    if args.simulate:
        time.sleep(1.5)  # give the service a moment to bind
        print("Running simulator…")
        run_simulator()

    print("\nService → http://127.0.0.1:8766")
    print("Press Ctrl+C to stop.\n")

    try:
        service_proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down…")
        service_proc.terminate()
        service_proc.wait()


if __name__ == "__main__":
    main()
