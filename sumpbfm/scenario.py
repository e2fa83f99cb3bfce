"""End-to-end workflows: reset, configure, arm, wait for a trigger, download.

Every function takes a :class:`Harness`, which bundles the simulation
context with the three protocol layers stacked on it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .address import PackedAddress
from .axi import AxiLiteMaster
from .config import HarnessConfig
from .ila import CaptureStatus, Ila, Inventory, plausible_count
from .model import SumpModel
from .protocol import CommandDriver
from .regs import Opcode, PodReg, TriggerType
from .sample import (
    DUT_BUSY_BIT,
    CaptureStats,
    FsmState,
    RleSample,
    capture_stats,
    read_rle_sample,
    state_sequence,
)
from .sim import HardwareModel, SimContext
from .utils import hex32, to_json

log = logging.getLogger(__name__)

DUT_INPUTS = ("dut_enable", "dut_pause", "dut_trigger_in")

Stimulus = Callable[["Harness"], None]


@dataclass
class Harness:
    ctx: SimContext
    bus: AxiLiteMaster
    driver: CommandDriver
    ila: Ila

    @property
    def config(self) -> HarnessConfig:
        return self.ctx.config


def build_harness(model: Optional[HardwareModel] = None, config: Optional[HarnessConfig] = None) -> Harness:
    ctx = SimContext(model if model is not None else SumpModel(), config)
    bus = AxiLiteMaster(ctx)
    driver = CommandDriver(ctx, bus)
    return Harness(ctx=ctx, bus=bus, driver=driver, ila=Ila(driver))


def power_on_reset(h: Harness) -> None:
    h.bus.idle()
    for name in DUT_INPUTS:
        h.ctx.set(name, 0)
    h.ctx.set("rst_n", 0)
    h.ctx.tick(h.config.reset_cycles)
    h.ctx.set("rst_n", 1)
    h.ctx.tick(h.config.reset_recovery)
    log.debug("reset released at cycle %d", h.ctx.cycles)


def setup_capture(
    h: Harness,
    trig_type: TriggerType,
    trig_field: int,
    post_trig: int,
    hub: int = 0,
    pod: int = 0,
) -> bool:
    """Clear capture RAM, program the trigger and post-trigger depth."""
    ok = h.ila.init().ok
    ok = h.ila.set_trigger(trig_type, trig_field) and ok
    ok = h.ila.set_post_trigger(post_trig) and ok
    ok = h.ila.set_pod_trigger(hub, pod, int(trig_type), 1, h.config.serial_settle) and ok
    if not ok:
        log.warning("capture setup on %d:%d incomplete", hub, pod)
    return ok


def arm(h: Harness) -> bool:
    return h.ila.arm().ok


def wait_for_capture(h: Harness, max_polls: int = 50) -> Tuple[Optional[CaptureStatus], int]:
    """Poll RD_STATUS until acquisition completes.

    Returns the last status read (None if every read failed) and the number
    of polls made.
    """
    status: Optional[CaptureStatus] = None
    for polls in range(1, max_polls + 1):
        status = h.ila.capture_status()
        if status is not None and status.acquired:
            return status, polls
        h.ctx.tick(h.config.capture_poll)
    log.warning("capture not acquired after %d polls", max_polls)
    return status, max_polls


def download_samples(
    h: Harness,
    hub: int = 0,
    pod: int = 0,
    count: Optional[int] = None,
    stop_on_invalid: bool = True,
) -> List[RleSample]:
    """Read records oldest first, starting at the digital first pointer."""
    ram = h.ila.pod_ram_config(hub, pod)
    if ram is None:
        log.warning("pod %d:%d RAM config unreadable", hub, pod)
        return []
    first = h.ila.dig_first_ptr() or 0
    count = ram.depth if count is None else min(count, ram.depth)
    samples: List[RleSample] = []
    for i in range(count):
        address = (first + i) % ram.depth
        sample = read_rle_sample(h.ila, hub, pod, address, ts_bits=ram.ts_bits)
        if stop_on_invalid and not sample.is_valid():
            break
        samples.append(sample)
    log.debug("downloaded %d sample(s) from %d:%d", len(samples), hub, pod)
    return samples


def enumerate_hardware(h: Harness) -> Inventory:
    return h.ila.enumerate()


@dataclass
class CaptureReport:
    hub: int
    pod: int
    trig_type: str
    trig_field: int
    post_trig: int
    configured: bool
    armed: bool
    acquired: bool
    polls: int
    samples: List[RleSample] = field(default_factory=list)

    @property
    def stats(self) -> CaptureStats:
        return capture_stats(self.samples)

    @property
    def states(self) -> List[int]:
        return state_sequence(self.samples)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hub": self.hub,
            "pod": self.pod,
            "trig_type": self.trig_type,
            "trig_field": hex32(self.trig_field),
            "post_trig": self.post_trig,
            "configured": self.configured,
            "armed": self.armed,
            "acquired": self.acquired,
            "polls": self.polls,
            "stats": self.stats.to_dict(),
            "states": [FsmState.name_of(s) for s in self.states],
            "samples": [s.to_dict() for s in self.samples],
        }

    def to_json(self) -> str:
        return to_json(self.to_dict())


def capture_and_download(
    h: Harness,
    trig_type: TriggerType,
    trig_field: int,
    post_trig: int,
    stimulus: Optional[Stimulus] = None,
    hub: int = 0,
    pod: int = 0,
    count: Optional[int] = 64,
    max_polls: int = 50,
) -> CaptureReport:
    configured = setup_capture(h, trig_type, trig_field, post_trig, hub, pod)
    armed = arm(h)
    if stimulus is not None:
        stimulus(h)
    status, polls = wait_for_capture(h, max_polls)
    acquired = status is not None and status.acquired
    samples = download_samples(h, hub, pod, count) if acquired else []
    return CaptureReport(
        hub=hub,
        pod=pod,
        trig_type=trig_type.name,
        trig_field=trig_field,
        post_trig=post_trig,
        configured=configured,
        armed=armed,
        acquired=acquired,
        polls=polls,
        samples=samples,
    )


# Stimulus helpers ----------------------------------------------------------


def enable_dut(h: Harness) -> None:
    h.ctx.set("dut_enable", 1)


def pulse_trigger(h: Harness, cycles: int = 4) -> None:
    # held for two slow-clock edges so the DUT and the capture both see it
    h.ctx.set("dut_trigger_in", 1)
    h.ctx.tick(cycles)
    h.ctx.set("dut_trigger_in", 0)


def start_dut(h: Harness, cycles: int = 40) -> None:
    """Enable the DUT and let it settle into RUNNING."""
    enable_dut(h)
    h.ctx.tick(cycles)


# Self-test -----------------------------------------------------------------

BUSY_RISING_POST = 4
FSM_SEQUENCE_POST = 16
FSM_PROCESSING = [FsmState.COUNTING, FsmState.PROCESS, FsmState.WAIT, FsmState.DONE]


@dataclass
class CheckResult:
    name: str
    passed: bool
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "passed": self.passed, "detail": self.detail}


@dataclass
class SelftestReport:
    checks: List[CheckResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)

    @property
    def failures(self) -> List[CheckResult]:
        return [check for check in self.checks if not check.passed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "total": len(self.checks),
            "failed": len(self.failures),
            "checks": [check.to_dict() for check in self.checks],
        }

    def to_json(self) -> str:
        return to_json(self.to_dict())


def is_subsequence(needle: List[int], haystack: List[int]) -> bool:
    it = iter(haystack)
    return all(item in it for item in needle)


def _check_hw_info(h: Harness) -> Tuple[bool, str]:
    info = h.ila.hw_info()
    return info.ident >> 8 == 0x53, f"word={hex32(info.word)}"


def _check_hw_id(h: Harness) -> Tuple[bool, str]:
    hw_id = h.ila.hw_id()
    if hw_id is None:
        return False, "read failed"
    return hw_id.sump_id == 0x53, f"id=0x{hw_id.sump_id:02X} rev={hw_id.hw_rev}"


def _check_hub_count(h: Harness) -> Tuple[bool, str]:
    count = h.ila.hub_count()
    return count is not None and plausible_count(count) == count, f"hubs={count}"


def _check_init(h: Harness) -> Tuple[bool, str]:
    result = h.ila.init()
    return result.ok, f"cycles={result.cycles}"


def _check_trigger_config(h: Harness) -> Tuple[bool, str]:
    ok = h.ila.set_trigger(TriggerType.OR_RISING, 1 << DUT_BUSY_BIT)
    return h.ila.set_post_trigger(BUSY_RISING_POST) and ok, ""


def _check_pod_hw_config(h: Harness) -> Tuple[bool, str]:
    cfg = h.ila.pod_hw_config(0, 0)
    if cfg is None:
        return False, "read failed"
    return cfg.enabled, f"rev={cfg.hw_rev}"


def _check_pod_ram_config(h: Harness) -> Tuple[bool, str]:
    ram = h.ila.pod_ram_config(0, 0)
    if ram is None:
        return False, "read failed"
    return ram.depth > 0 and ram.data_bits > 0, f"depth={ram.depth} data={ram.data_bits} ts={ram.ts_bits}"


def _check_pod_readback(h: Harness) -> Tuple[bool, str]:
    pattern = 0xA5A55A5A
    h.ila.write_pod_reg(0, 0, PodReg.USER_CTRL, pattern, h.config.serial_settle)
    value = h.ila.read_pod_reg(0, 0, PodReg.USER_CTRL)
    return value == pattern, f"wrote={hex32(pattern)} read={hex32(value)}"


def _check_arm(h: Harness) -> Tuple[bool, str]:
    ok = arm(h)
    flags = h.ila.capture_flags()
    h.ila.idle()
    return ok and flags.armed, f"cap_status={hex32(flags.word)}"


def _check_status(h: Harness) -> Tuple[bool, str]:
    status = h.ila.capture_status()
    return status is not None, "" if status is None else f"status={hex32(status.word)}"


def _check_hub_freq(h: Harness) -> Tuple[bool, str]:
    freq = h.ila.hub_freq(0)
    if freq is None:
        return False, "read failed"
    return freq.mhz > 0, str(freq)


def _check_pod_count(h: Harness) -> Tuple[bool, str]:
    count = h.ila.pod_count(0)
    # an implausible count is the documented CDC hazard, not a failure
    return count is not None, f"raw={count} probing={plausible_count(count)}"


def _check_abort(h: Harness, settle: int = 10) -> Tuple[bool, str]:
    h.driver.start(Opcode.RD_POD_REG, PackedAddress(0, 0, PodReg.HW_CFG))
    h.ctx.tick(50)
    was_busy = h.driver.status().busy
    h.driver.abort()
    h.ctx.tick(settle)
    busy = h.driver.status().busy
    return not busy, f"busy before={was_busy} after={busy}"


def _check_enumeration(h: Harness) -> Tuple[bool, str]:
    inventory = enumerate_hardware(h)
    names = [hub.name for hub in inventory.hubs] + [pod.name for pod in inventory.pods()]
    ok = bool(inventory.hubs) and all(len(name) == 12 for name in names)
    return ok, ", ".join(names)


def _check_capture(h: Harness) -> Tuple[bool, str]:
    power_on_reset(h)
    report = capture_and_download(
        h, TriggerType.OR_RISING, 1 << DUT_BUSY_BIT, BUSY_RISING_POST, stimulus=enable_dut
    )
    stats = report.stats
    ok = report.acquired and stats.valid > 0 and stats.trigger_index is not None
    return ok, f"valid={stats.valid} pre={stats.pre_trigger} post={stats.post_trigger}"


def _check_busy_rising(h: Harness) -> Tuple[bool, str]:
    power_on_reset(h)
    report = capture_and_download(
        h, TriggerType.OR_RISING, 1 << DUT_BUSY_BIT, BUSY_RISING_POST, stimulus=enable_dut
    )
    trig = [s for s in report.samples if s.is_trigger()]
    if not trig:
        return False, "no trigger sample"
    return trig[0].busy, FsmState.name_of(trig[0].fsm_state)


def _check_fsm_sequence(h: Harness) -> Tuple[bool, str]:
    power_on_reset(h)
    start_dut(h)
    report = capture_and_download(
        h, TriggerType.EXT_RISING, 0, FSM_SEQUENCE_POST, stimulus=pulse_trigger
    )
    seen = report.states
    names = " -> ".join(FsmState.name_of(s) for s in seen)
    return is_subsequence([int(s) for s in FSM_PROCESSING], seen), names


def _check_external_trigger(h: Harness) -> Tuple[bool, str]:
    power_on_reset(h)
    report = capture_and_download(h, TriggerType.EXT_RISING, 0, 0, stimulus=pulse_trigger)
    stats = report.stats
    return report.acquired and stats.trigger_index is not None, f"trigger_index={stats.trigger_index}"


SELFTESTS: List[Tuple[str, Callable[[Harness], Tuple[bool, str]]]] = [
    ("hardware_info", _check_hw_info),
    ("hw_id", _check_hw_id),
    ("hub_count", _check_hub_count),
    ("init", _check_init),
    ("trigger_config", _check_trigger_config),
    ("pod_hw_config", _check_pod_hw_config),
    ("pod_ram_config", _check_pod_ram_config),
    ("pod_readback", _check_pod_readback),
    ("arm", _check_arm),
    ("status", _check_status),
    ("hub_freq", _check_hub_freq),
    ("pod_count", _check_pod_count),
    ("abort", _check_abort),
    ("enumeration", _check_enumeration),
    ("capture_download", _check_capture),
    ("busy_rising_trigger", _check_busy_rising),
    ("fsm_sequence", _check_fsm_sequence),
    ("external_trigger", _check_external_trigger),
]


def run_selftest(h: Harness, only: Optional[List[str]] = None) -> SelftestReport:
    report = SelftestReport()
    power_on_reset(h)
    for name, check in SELFTESTS:
        if only and name not in only:
            continue
        passed, detail = check(h)
        log.info("%-20s %s %s", name, "PASS" if passed else "FAIL", detail)
        report.checks.append(CheckResult(name=name, passed=passed, detail=detail))
    return report
