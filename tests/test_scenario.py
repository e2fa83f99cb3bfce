import json

from sumpbfm.regs import TriggerType
from sumpbfm.sample import DUT_BUSY_BIT, FsmState
from sumpbfm.scenario import (
    SELFTESTS,
    capture_and_download,
    enable_dut,
    is_subsequence,
    pulse_trigger,
    run_selftest,
    start_dut,
)


def test_busy_rising_capture(harness):
    report = capture_and_download(harness, TriggerType.OR_RISING, 1 << DUT_BUSY_BIT, 4, stimulus=enable_dut)
    assert report.configured and report.armed and report.acquired
    stats = report.stats
    assert (stats.valid, stats.pre_trigger, stats.post_trigger) == (6, 1, 4)
    assert stats.trigger_index == 1
    trigger = report.samples[1]
    assert trigger.is_trigger()
    assert trigger.busy
    assert trigger.fsm_state == FsmState.INIT
    assert report.states == [FsmState.IDLE, FsmState.INIT, FsmState.RUNNING]
    timestamps = [s.timestamp for s in report.samples]
    assert timestamps == sorted(timestamps)


def test_fsm_sequence_on_external_trigger(harness):
    start_dut(harness)
    report = capture_and_download(harness, TriggerType.EXT_RISING, 0, 16, stimulus=pulse_trigger)
    assert report.acquired
    trigger = [s for s in report.samples if s.is_trigger()]
    assert len(trigger) == 1
    assert trigger[0].fsm_state == FsmState.RUNNING
    processing = [FsmState.COUNTING, FsmState.PROCESS, FsmState.WAIT, FsmState.DONE, FsmState.RUNNING]
    assert is_subsequence(processing, report.states)
    assert report.stats.post_trigger == 16


def test_external_trigger_while_idle(harness):
    report = capture_and_download(harness, TriggerType.EXT_RISING, 0, 0, stimulus=pulse_trigger)
    assert report.acquired
    assert report.samples[-1].is_trigger()
    assert report.stats.post_trigger == 0


def test_no_trigger_is_not_acquired(harness):
    report = capture_and_download(harness, TriggerType.OR_RISING, 1 << DUT_BUSY_BIT, 4, max_polls=3)
    assert report.armed
    assert not report.acquired
    assert report.samples == []


def test_report_json(harness):
    report = capture_and_download(harness, TriggerType.EXT_RISING, 0, 0, stimulus=pulse_trigger)
    data = json.loads(report.to_json())
    assert data["trig_type"] == "EXT_RISING"
    assert data["acquired"] is True
    assert data["samples"][-1]["code"] == "TRIG"


def test_is_subsequence():
    assert is_subsequence([1, 3], [1, 2, 3])
    assert not is_subsequence([3, 1], [1, 2, 3])


def test_selftest_passes(harness):
    report = run_selftest(harness)
    assert [check.name for check in report.checks] == [name for name, _ in SELFTESTS]
    assert report.failures == []
    assert report.passed
    assert json.loads(report.to_json())["failed"] == 0


def test_selftest_subset(harness):
    report = run_selftest(harness, only=["hw_id", "abort"])
    assert [check.name for check in report.checks] == ["hw_id", "abort"]
    assert report.passed
