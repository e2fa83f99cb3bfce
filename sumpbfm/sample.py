"""RLE sample records read back from a pod's capture RAM.

A record is two words. Page 0 holds the 32-bit payload; page 1 holds the
2-bit code above a 14-bit timestamp. The payload layout is that of the
simple DUT wired to pod 0: FSM state in [3:0], busy at 16, done at 17 and
an 8-bit data-out field in [27:20].
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

import numpy as np

from .regs import PodReg

if TYPE_CHECKING:
    from .ila import Ila

CODE_INVALID = 0
CODE_PRE_TRIGGER = 1
CODE_TRIGGER = 2
CODE_POST_TRIGGER = 3

CODE_NAMES = {
    CODE_INVALID: "INV",
    CODE_PRE_TRIGGER: "PRE",
    CODE_TRIGGER: "TRIG",
    CODE_POST_TRIGGER: "POST",
}

DEFAULT_TS_BITS = 14

DUT_FSM_STATE_MASK = 0x0000000F
DUT_BUSY_BIT = 16
DUT_DONE_BIT = 17
DUT_DATA_OUT_SHIFT = 20

SAMPLE_DTYPE = np.dtype(
    [("address", np.uint32), ("code", np.uint8), ("timestamp", np.uint32), ("data", np.uint32)]
)


class FsmState(IntEnum):
    IDLE = 0x0
    INIT = 0x1
    RUNNING = 0x2
    PAUSED = 0x3
    COUNTING = 0x4
    PROCESS = 0x5
    WAIT = 0x6
    DONE = 0x7
    ERROR = 0xF

    @staticmethod
    def name_of(value: int) -> str:
        try:
            return FsmState(value & 0xF).name
        except ValueError:
            return "???"


@dataclass(frozen=True)
class RleSample:
    address: int
    code: int
    timestamp: int
    data: int

    def is_valid(self) -> bool:
        return self.code != CODE_INVALID

    def is_pre_trigger(self) -> bool:
        return self.code == CODE_PRE_TRIGGER

    def is_trigger(self) -> bool:
        return self.code == CODE_TRIGGER

    def is_post_trigger(self) -> bool:
        return self.code == CODE_POST_TRIGGER

    @property
    def code_name(self) -> str:
        return CODE_NAMES[self.code]

    @property
    def fsm_state(self) -> int:
        return self.data & DUT_FSM_STATE_MASK

    @property
    def busy(self) -> bool:
        return bool((self.data >> DUT_BUSY_BIT) & 1)

    @property
    def done(self) -> bool:
        return bool((self.data >> DUT_DONE_BIT) & 1)

    @property
    def data_out(self) -> int:
        return (self.data >> DUT_DATA_OUT_SHIFT) & 0xFF

    def to_dict(self) -> Dict[str, object]:
        return {
            "address": self.address,
            "code": self.code_name,
            "timestamp": self.timestamp,
            "data": f"0x{self.data:08X}",
            "state": FsmState.name_of(self.fsm_state),
        }


def decode_sample(lo: int, hi: int, address: int = 0, ts_bits: int = DEFAULT_TS_BITS) -> RleSample:
    """Decode the payload word and the page-1 code/timestamp word."""
    return RleSample(
        address=address,
        code=(hi >> ts_bits) & 0x3,
        timestamp=hi & ((1 << ts_bits) - 1),
        data=lo & 0xFFFFFFFF,
    )


def read_rle_sample(
    ila: "Ila",
    hub: int,
    pod: int,
    address: int,
    ts_bits: int = DEFAULT_TS_BITS,
    settle: Optional[int] = None,
) -> RleSample:
    """Select page 0 then page 1 at ``address`` and decode the two words read.

    A failed RAM data read decodes as zero, which is an invalid record.
    """
    settle = ila.ctx.config.sample_settle if settle is None else settle
    ila.set_ram_pointer(hub, pod, 0, address, settle)
    lo = ila.read_pod_reg(hub, pod, PodReg.RAM_DATA) or 0
    ila.set_ram_pointer(hub, pod, 1, address, settle)
    hi = ila.read_pod_reg(hub, pod, PodReg.RAM_DATA) or 0
    return decode_sample(lo, hi, address=address, ts_bits=ts_bits)


def decode_samples(
    lo_words: Sequence[int],
    hi_words: Sequence[int],
    start: int = 0,
    ts_bits: int = DEFAULT_TS_BITS,
) -> np.ndarray:
    """Vectorized :func:`decode_sample` into a structured array."""
    lo = np.asarray(lo_words, dtype=np.uint64)
    hi = np.asarray(hi_words, dtype=np.uint64)
    if lo.shape != hi.shape:
        raise ValueError(f"payload and code/timestamp word counts differ: {lo.shape} vs {hi.shape}")
    out = np.zeros(lo.shape[0], dtype=SAMPLE_DTYPE)
    out["address"] = np.arange(start, start + lo.shape[0], dtype=np.uint32)
    out["code"] = (hi >> np.uint64(ts_bits)) & np.uint64(0x3)
    out["timestamp"] = hi & np.uint64((1 << ts_bits) - 1)
    out["data"] = lo & np.uint64(0xFFFFFFFF)
    return out


def samples_to_array(samples: Iterable[RleSample]) -> np.ndarray:
    rows = [(s.address, s.code, s.timestamp, s.data) for s in samples]
    return np.array(rows, dtype=SAMPLE_DTYPE)


@dataclass
class CaptureStats:
    valid: int
    pre_trigger: int
    post_trigger: int
    trigger_index: Optional[int]

    def to_dict(self) -> Dict[str, object]:
        return {
            "valid": self.valid,
            "pre_trigger": self.pre_trigger,
            "post_trigger": self.post_trigger,
            "trigger_index": self.trigger_index,
        }


def capture_stats(samples: Sequence[RleSample]) -> CaptureStats:
    codes = np.array([s.code for s in samples], dtype=np.uint8)
    trig = np.flatnonzero(codes == CODE_TRIGGER)
    return CaptureStats(
        valid=int(np.count_nonzero(codes != CODE_INVALID)),
        pre_trigger=int(np.count_nonzero(codes == CODE_PRE_TRIGGER)),
        post_trigger=int(np.count_nonzero(codes == CODE_POST_TRIGGER)),
        trigger_index=int(samples[trig[0]].address) if trig.size else None,
    )


def state_sequence(samples: Iterable[RleSample]) -> List[int]:
    """FSM states seen in valid samples, with consecutive repeats collapsed."""
    sequence: List[int] = []
    for sample in samples:
        if not sample.is_valid():
            continue
        state = sample.fsm_state
        if not sequence or sequence[-1] != state:
            sequence.append(state)
    return sequence
