"""Command line interface for the logic analyzer harness."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any

from .address import AddressError
from .config import ConfigError, HarnessConfig, load_config
from .model import SignalError, SumpModel
from .protocol import ProtocolError
from .regs import CommandError, TriggerType
from .sample import FsmState
from .scenario import (
    Harness,
    build_harness,
    capture_and_download,
    enable_dut,
    enumerate_hardware,
    power_on_reset,
    pulse_trigger,
    run_selftest,
    start_dut,
)
from .utils import to_json

EXPECTED_ERRORS = (AddressError, CommandError, ConfigError, ProtocolError, SignalError, OSError, ValueError)


def _load(args: argparse.Namespace) -> HarnessConfig:
    config = load_config(args.config) if args.config else HarnessConfig()
    return config.override(command_budget=args.budget)


def _harness(args: argparse.Namespace) -> Harness:
    h = build_harness(SumpModel(pod_count_glitch=args.glitch), _load(args))
    power_on_reset(h)
    return h


def _enumerate_command(args: argparse.Namespace) -> int:
    try:
        h = _harness(args)
        inventory = enumerate_hardware(h)
    except EXPECTED_ERRORS as exc:
        print(f"Error: {exc}")
        return 2

    if args.json:
        print(to_json(inventory.to_dict()))
        return 0

    print(f"HW ID: {inventory.to_dict()['hw_id']}")
    print(f"Hubs: {inventory.hub_count}")
    for hub in inventory.hubs:
        print(f"  hub {hub.hub}: '{hub.name}' pods={hub.pod_count}")
        for pod in hub.pods:
            print(f"    pod {pod.hub}:{pod.pod}: '{pod.name}' instance={pod.instance}")
    return 0


def _capture_command(args: argparse.Namespace) -> int:
    try:
        trig_type = TriggerType.parse(args.trigger)
        trig_field = int(args.field, 0)
        h = _harness(args)
        if args.start_dut:
            start_dut(h)
        stimulus = pulse_trigger if trig_type.is_external else enable_dut
        report = capture_and_download(
            h, trig_type, trig_field, args.post, stimulus=stimulus, count=args.count
        )
    except EXPECTED_ERRORS as exc:
        print(f"Error: {exc}")
        return 2

    if args.plot and report.samples:
        # deferred: pulls in matplotlib
        from .plot import plot_capture

        plot_capture(report.samples, Path(args.plot), title=f"{trig_type.name} field=0x{trig_field:08X}")

    if args.json:
        print(report.to_json())
        return 0 if report.acquired else 1

    print(f"Acquired: {report.acquired} (polls={report.polls})")
    stats = report.stats
    print(f"Samples: {stats.valid} valid, {stats.pre_trigger} pre, {stats.post_trigger} post")
    for sample in report.samples:
        print(
            f"  [{sample.address:3d}] {sample.code_name:4s} ts={sample.timestamp:5d} "
            f"data=0x{sample.data:08X} {FsmState.name_of(sample.fsm_state)}"
        )
    if args.plot and report.samples:
        print(f"Plot: {args.plot}")
    return 0 if report.acquired else 1


def _selftest_command(args: argparse.Namespace) -> int:
    try:
        h = build_harness(SumpModel(pod_count_glitch=args.glitch), _load(args))
        report = run_selftest(h, only=args.only)
    except EXPECTED_ERRORS as exc:
        print(f"Error: {exc}")
        return 2

    if args.json:
        print(report.to_json())
        return 0 if report.passed else 1

    for check in report.checks:
        print(f"{'PASS' if check.passed else 'FAIL'}  {check.name:20s} {check.detail}")
    print(f"{len(report.checks) - len(report.failures)}/{len(report.checks)} checks passed")
    return 0 if report.passed else 1


def _common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="Path to a JSON harness configuration")
    parser.add_argument("--budget", type=int, default=None, help="Command cycle budget")
    parser.add_argument("--glitch", type=int, default=None, help="Force the pod count read to this value")
    parser.add_argument("--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--json", action="store_true", help="Output JSON")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bus-functional harness for an AXI4-Lite SUMP3 logic analyzer")
    sub = parser.add_subparsers(dest="command", required=True)

    enum_parser = sub.add_parser("enumerate", help="List hubs and pods")
    _common(enum_parser)
    enum_parser.set_defaults(func=_enumerate_command)

    cap_parser = sub.add_parser("capture", help="Arm, trigger and download one capture")
    _common(cap_parser)
    cap_parser.add_argument("--trigger", default="or_rising", help="Trigger type, e.g. or_rising or ext_rising")
    cap_parser.add_argument("--field", default="0x10000", help="Digital trigger field (bit mask)")
    cap_parser.add_argument("--post", type=int, default=4, help="Post-trigger sample count")
    cap_parser.add_argument("--count", type=int, default=64, help="Maximum samples to download")
    cap_parser.add_argument("--start-dut", action="store_true", help="Run the DUT before arming")
    cap_parser.add_argument("--plot", default=None, help="Write a waveform PNG to this path")
    cap_parser.set_defaults(func=_capture_command)

    test_parser = sub.add_parser("selftest", help="Run the register and capture self-test")
    _common(test_parser)
    test_parser.add_argument("--only", nargs="+", default=None, help="Run only the named checks")
    test_parser.set_defaults(func=_selftest_command)

    return parser


def main(argv: Any = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
