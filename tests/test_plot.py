import numpy as np

from sumpbfm.plot import plot_capture, unwrap_timestamps
from sumpbfm.sample import CODE_POST_TRIGGER, CODE_PRE_TRIGGER, CODE_TRIGGER, FsmState, RleSample


def test_unwrap_timestamps():
    ts = np.array([0x3FF0, 0x3FFF, 0x0005, 0x0010], dtype=np.uint32)
    assert list(unwrap_timestamps(ts)) == [0, 15, 21, 32]
    assert unwrap_timestamps(np.array([], dtype=np.uint32)).size == 0


def test_plot_capture_writes_png(tmp_path):
    samples = [
        RleSample(0, CODE_PRE_TRIGGER, 0, int(FsmState.IDLE)),
        RleSample(1, CODE_TRIGGER, 2, int(FsmState.INIT) | (1 << 16)),
        RleSample(2, CODE_POST_TRIGGER, 6, int(FsmState.RUNNING) | (1 << 16)),
    ]
    out = plot_capture(samples, tmp_path / "plots" / "capture.png")
    assert out.exists()
    assert out.stat().st_size > 0
