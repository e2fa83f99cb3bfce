"""Waveform plot of a downloaded capture."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from .sample import (  # noqa: E402
    CODE_TRIGGER,
    DEFAULT_TS_BITS,
    DUT_BUSY_BIT,
    DUT_DATA_OUT_SHIFT,
    DUT_DONE_BIT,
    DUT_FSM_STATE_MASK,
    FsmState,
    RleSample,
    samples_to_array,
)


def unwrap_timestamps(ts: np.ndarray, ts_bits: int = DEFAULT_TS_BITS) -> np.ndarray:
    """Cumulative time from wrapping timestamps; the first sample is t=0."""
    if ts.size == 0:
        return ts.astype(np.int64)
    deltas = np.diff(ts.astype(np.int64)) % (1 << ts_bits)
    return np.concatenate([[0], np.cumsum(deltas)])


def plot_capture(
    samples: Sequence[RleSample],
    out: Path,
    title: Optional[str] = None,
    ts_bits: int = DEFAULT_TS_BITS,
) -> Path:
    arr = samples_to_array(samples)
    t = unwrap_timestamps(arr["timestamp"], ts_bits)
    data = arr["data"].astype(np.int64)
    state = data & DUT_FSM_STATE_MASK
    busy = (data >> DUT_BUSY_BIT) & 1
    done = (data >> DUT_DONE_BIT) & 1
    data_out = (data >> DUT_DATA_OUT_SHIFT) & 0xFF

    fig, axes = plt.subplots(3, 1, figsize=(10, 6), sharex=True)
    axes[0].step(t, state, where="post")
    axes[0].set_yticks([int(s) for s in FsmState])
    axes[0].set_yticklabels([s.name for s in FsmState], fontsize=7)
    axes[0].set_ylabel("state")

    axes[1].step(t, busy + 1.5, where="post", label="busy")
    axes[1].step(t, done, where="post", label="done")
    axes[1].set_yticks([])
    axes[1].legend(loc="upper right", fontsize=8)

    axes[2].step(t, data_out, where="post")
    axes[2].set_ylabel("data_out")
    axes[2].set_xlabel("slow-clock cycles since first sample")

    for idx in np.flatnonzero(arr["code"] == CODE_TRIGGER):
        for ax in axes:
            ax.axvline(t[idx], color="r", linestyle="--", linewidth=1)

    for ax in axes:
        ax.grid(True, alpha=0.3)
    fig.suptitle(title or f"capture: {len(arr)} samples")
    fig.tight_layout()

    out = Path(out)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=150)
    plt.close(fig)
    return out
