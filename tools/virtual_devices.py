#!/usr/bin/env python3
"""Virtual endpoints for trying out streamtest without hardware.

Starts socat processes for:
- A TCP echo server
- A serial echo on a PTY
- A serial-to-TCP bridge (PTY on one side, TCP listener on the other)

Runs until Ctrl-C, then stops every endpoint it started.
"""

import argparse
import shutil
import signal
import subprocess
import sys
import time
from dataclasses import dataclass

SOCAT = "socat"


@dataclass
class Endpoint:
    """One socat process and the streamtest command that exercises it."""

    name: str
    args: list[str]
    example: str
    proc: subprocess.Popen | None = None


def build_endpoints(tcp_port: int, bridge_port: int, serial_echo: str, serial_bridge: str) -> list[Endpoint]:
    return [
        Endpoint(
            name=f"TCP echo on port {tcp_port}",
            args=[f"tcp-l:{tcp_port},reuseaddr,fork", "exec:/bin/cat"],
            example=f"streamtest -d tcp:localhost:{tcp_port} echo",
        ),
        Endpoint(
            name=f"Serial echo on {serial_echo}",
            args=[f"pty,raw,echo=0,link={serial_echo}", "exec:/bin/cat"],
            example=f"streamtest -d serial:{serial_echo}:115200 echo",
        ),
        Endpoint(
            name=f"Serial {serial_bridge} <> TCP port {bridge_port}",
            args=[f"pty,raw,echo=0,link={serial_bridge}", f"tcp-l:{bridge_port},reuseaddr"],
            example=f"streamtest -d serial:{serial_bridge}:115200 tcp:localhost:{bridge_port}",
        ),
    ]


def stop_all(endpoints: list[Endpoint]) -> None:
    for ep in endpoints:
        if ep.proc is not None and ep.proc.poll() is None:
            ep.proc.terminate()
            try:
                ep.proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                ep.proc.kill()


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Start virtual serial and TCP endpoints for streamtest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Requires socat. Stop with Ctrl-C.

The serial-to-TCP bridge accepts a single TCP client per run; restart
this tool between paired tests.
""",
    )
    parser.add_argument("--tcp-port", type=int, default=2000, help="TCP echo port (default: %(default)s)")
    parser.add_argument(
        "--bridge-port", type=int, default=3000, help="Bridge TCP port (default: %(default)s)"
    )
    parser.add_argument(
        "--serial-echo", default="/tmp/serial0", help="Serial echo PTY link (default: %(default)s)"
    )
    parser.add_argument(
        "--serial-bridge",
        default="/tmp/serial1",
        help="Bridge serial PTY link (default: %(default)s)",
    )
    args = parser.parse_args()

    if shutil.which(SOCAT) is None:
        print(f"Error: {SOCAT} not found in PATH", file=sys.stderr)
        return 1

    endpoints = build_endpoints(args.tcp_port, args.bridge_port, args.serial_echo, args.serial_bridge)

    running = True

    def handle_signal(_sig, _frame) -> None:
        nonlocal running
        running = False

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        for ep in endpoints:
            ep.proc = subprocess.Popen([SOCAT, *ep.args], stdout=subprocess.DEVNULL)
            print(f"Started {ep.name}")

        print()
        print("Try:")
        for ep in endpoints:
            print(f"  {ep.example}")
        sys.stdout.flush()

        exited: set[str] = set()
        while running:
            for ep in endpoints:
                if ep.name not in exited and ep.proc is not None and ep.proc.poll() is not None:
                    print(f"{ep.name} exited with code {ep.proc.returncode}", file=sys.stderr)
                    exited.add(ep.name)
            if len(exited) == len(endpoints):
                return 1
            time.sleep(0.5)
    finally:
        stop_all(endpoints)

    print("Stopped all endpoints")
    return 0


if __name__ == "__main__":
    sys.exit(main())
