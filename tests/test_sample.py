import numpy as np

from sumpbfm.sample import (
    CODE_POST_TRIGGER,
    CODE_PRE_TRIGGER,
    CODE_TRIGGER,
    FsmState,
    RleSample,
    capture_stats,
    decode_sample,
    decode_samples,
    read_rle_sample,
    samples_to_array,
    state_sequence,
)


def _hi(code, ts):
    return (code << 14) | ts


def test_decode_is_bit_exact():
    sample = decode_sample(0xDEADBEEF, _hi(CODE_TRIGGER, 100))
    assert sample.is_valid()
    assert sample.is_trigger()
    assert not sample.is_pre_trigger()
    assert sample.data == 0xDEADBEEF
    assert sample.timestamp == 100
    assert sample.code_name == "TRIG"


def test_upper_bits_ignored():
    sample = decode_sample(0x1_0000_0001, 0xFFFF0000 | _hi(CODE_POST_TRIGGER, 0x3FFF))
    assert sample.is_post_trigger()
    assert sample.timestamp == 0x3FFF
    assert sample.data == 1


def test_zero_words_are_invalid():
    assert not decode_sample(0, 0).is_valid()


def test_dut_payload_fields():
    word = int(FsmState.COUNTING) | (1 << 16) | (0x2A << 20)
    sample = RleSample(address=3, code=CODE_PRE_TRIGGER, timestamp=7, data=word)
    assert sample.fsm_state == FsmState.COUNTING
    assert sample.busy
    assert not sample.done
    assert sample.data_out == 0x2A
    assert sample.to_dict()["state"] == "COUNTING"
    assert FsmState.name_of(0x9) == "???"


def test_bulk_decode_matches_scalar():
    lo = [0x0, 0x10001, 0xDEADBEEF, 0x20002]
    hi = [_hi(CODE_PRE_TRIGGER, 0), _hi(CODE_PRE_TRIGGER, 5), _hi(CODE_TRIGGER, 9), _hi(CODE_POST_TRIGGER, 12)]
    arr = decode_samples(lo, hi, start=10)
    expected = samples_to_array(decode_sample(l, h, address=10 + i) for i, (l, h) in enumerate(zip(lo, hi)))
    assert np.array_equal(arr, expected)
    assert list(arr["address"]) == [10, 11, 12, 13]


def test_capture_stats_and_sequence():
    samples = [
        RleSample(0, CODE_PRE_TRIGGER, 0, int(FsmState.IDLE)),
        RleSample(1, CODE_TRIGGER, 1, int(FsmState.INIT)),
        RleSample(2, CODE_POST_TRIGGER, 5, int(FsmState.RUNNING)),
        RleSample(3, CODE_POST_TRIGGER, 21, int(FsmState.RUNNING) | (1 << 20)),
        RleSample(4, 0, 0, 0),
    ]
    stats = capture_stats(samples)
    assert (stats.valid, stats.pre_trigger, stats.post_trigger, stats.trigger_index) == (4, 1, 2, 1)
    assert state_sequence(samples) == [FsmState.IDLE, FsmState.INIT, FsmState.RUNNING]


def test_capture_stats_without_trigger():
    assert capture_stats([]).trigger_index is None


def test_read_rle_sample_from_pod_ram(harness):
    harness.ctx.model.hubs[0].pods[0].ram[3] = (0xDEADBEEF, _hi(CODE_TRIGGER, 100))
    sample = read_rle_sample(harness.ila, 0, 0, 3)
    assert sample == RleSample(address=3, code=CODE_TRIGGER, timestamp=100, data=0xDEADBEEF)
    assert not read_rle_sample(harness.ila, 0, 0, 4).is_valid()
