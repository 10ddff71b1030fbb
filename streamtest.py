#!/usr/bin/env python3
"""Throughput and integrity tester for serial and TCP byte streams."""

import argparse
import logging
import os
import sys

from common.device import ECHO, parse_device_spec
from common.protocol import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_REPORT_INTERVAL_S,
    DEFAULT_TX_INTERVAL_S,
    READ_BUFFER_SIZE,
)
from pattern.generator import Pattern
from session.runner import run_test
from session.worker import WorkerConfig

logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"

DEFAULT_DURATION_S = float(os.environ.get("STREAM_TEST_DURATION", "0"))


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Speed tester for transparent transmission between tcp and serial port",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -d serial:/dev/ttyUSB0:115200 echo        Echo test on a looped-back serial port
  %(prog)s -d tcp:192.168.7.1:8000 echo              Echo test against a TCP echo server
  %(prog)s -d serial:/dev/ttyUSB0:115200 tcp:192.168.7.1:8000
                                                     Both directions through a serial-to-TCP bridge
  %(prog)s -d serial:loop://:115200 echo -t 5        In-process loopback for 5 seconds
""",
    )
    parser.add_argument(
        "-d",
        "--device",
        nargs=2,
        required=True,
        metavar=("TYPE:DEVICE", "TYPE:DEVICE|echo"),
        help=(
            "Serial port: serial:/dev/ttyUSB0:115200 (Linux) or serial:COM1:115200 (Windows), "
            "TCP: tcp:192.168.7.1:8000 for a tcp server. "
            f'Echo mode: use "{ECHO}" in place of the second device'
        ),
    )
    parser.add_argument(
        "-t",
        "--duration",
        type=float,
        default=DEFAULT_DURATION_S,
        help="Duration in seconds, 0 = until interrupted (default: %(default)s)",
    )
    parser.add_argument(
        "-c",
        "--chunk-size",
        type=_positive_int,
        default=DEFAULT_CHUNK_SIZE,
        help="Bytes per generated chunk (default: %(default)s)",
    )
    parser.add_argument(
        "-p",
        "--pattern",
        choices=[p.value for p in Pattern],
        default=Pattern.ZERO.value,
        help="Byte pattern to send (default: %(default)s)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Seed for the random pattern (default: %(default)s)",
    )
    parser.add_argument(
        "-i",
        "--report-interval",
        type=_positive_float,
        default=DEFAULT_REPORT_INTERVAL_S,
        help="Throughput report interval in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--tx-interval",
        type=float,
        default=DEFAULT_TX_INTERVAL_S,
        help="Pause between transmitted chunks in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--read-timeout",
        type=_positive_float,
        default=None,
        help="Read timeout in seconds (default: 0.01 for tcp, 1.0 for serial)",
    )
    parser.add_argument(
        "-f",
        "--flow-control",
        choices=["none", "crtscts"],
        default="none",
        help="Serial flow control (default: %(default)s)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    args = parser.parse_args()

    try:
        first = parse_device_spec(args.device[0])
        second = None if args.device[1] == ECHO else parse_device_spec(args.device[1])
    except ValueError as e:
        parser.error(str(e))

    if args.duration < 0:
        parser.error("duration must not be negative")

    config = WorkerConfig(
        tx_interval_s=args.tx_interval,
        read_size=READ_BUFFER_SIZE,
        report_interval_s=args.report_interval,
    )
    return run_test(
        first,
        second,
        duration_s=args.duration,
        chunk_size=args.chunk_size,
        pattern=Pattern(args.pattern),
        seed=args.seed,
        config=config,
        read_timeout=args.read_timeout,
        rtscts=args.flow_control == "crtscts",
    )


if __name__ == "__main__":
    sys.exit(main())
