"""Run the capture scenarios and the self-test against the reference model."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from sumpbfm.config import HarnessConfig, load_config
from sumpbfm.model import SumpModel
from sumpbfm.regs import TriggerType
from sumpbfm.sample import DUT_BUSY_BIT, DUT_DONE_BIT
from sumpbfm.scenario import (
    build_harness,
    capture_and_download,
    enable_dut,
    power_on_reset,
    pulse_trigger,
    run_selftest,
    start_dut,
)

# name -> (trigger type, trigger field, post-trigger samples, run DUT first, stimulus)
SCENARIOS = {
    "busy_rising": (TriggerType.OR_RISING, 1 << DUT_BUSY_BIT, 4, False, enable_dut),
    "done_rising": (TriggerType.OR_RISING, 1 << DUT_DONE_BIT, 4, True, pulse_trigger),
    "ext_rising": (TriggerType.EXT_RISING, 0, 16, True, pulse_trigger),
    "ext_idle": (TriggerType.EXT_RISING, 0, 0, False, pulse_trigger),
}


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--scenarios", nargs="+", default=sorted(SCENARIOS), help="Scenario names")
    ap.add_argument("--outdir", default="artifacts", help="Output directory")
    ap.add_argument("--config", default=None, help="JSON harness configuration")
    ap.add_argument("--glitch", type=int, default=None, help="Forced pod count read")
    ap.add_argument("--plot", action="store_true", help="Also write a PNG per capture")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    config = load_config(args.config) if args.config else HarnessConfig()
    outdir = Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    for name in args.scenarios:
        trig_type, trig_field, post, run_first, stimulus = SCENARIOS[name]
        h = build_harness(SumpModel(pod_count_glitch=args.glitch), config)
        power_on_reset(h)
        if run_first:
            start_dut(h)
        report = capture_and_download(h, trig_type, trig_field, post, stimulus=stimulus)
        (outdir / f"capture_{name}.json").write_text(report.to_json())
        if args.plot and report.samples:
            from sumpbfm.plot import plot_capture

            plot_capture(report.samples, outdir / f"capture_{name}.png", title=name)

    h = build_harness(SumpModel(pod_count_glitch=args.glitch), config)
    (outdir / "selftest.json").write_text(run_selftest(h).to_json())


if __name__ == "__main__":
    main()
