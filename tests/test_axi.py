from sumpbfm.axi import AxiLiteMaster
from sumpbfm.config import HarnessConfig
from sumpbfm.regs import REG_ADDR, REG_HW_INFO, REG_TIMEOUT, REG_WDATA
from sumpbfm.sim import SimContext


def test_write_read_back(harness):
    harness.bus.write(REG_WDATA, 0xCAFEF00D)
    assert harness.bus.read(REG_WDATA) == 0xCAFEF00D
    harness.bus.write(REG_TIMEOUT, 77)
    assert harness.bus.read(REG_TIMEOUT) == 77
    assert harness.bus.timeouts == 0


def test_transaction_cycle_counts(harness):
    start = harness.ctx.cycles
    harness.bus.write(REG_ADDR, 0x00010203)
    assert harness.ctx.cycles - start == 3
    start = harness.ctx.cycles
    assert harness.bus.read(REG_ADDR) == 0x00010203
    assert harness.ctx.cycles - start == 3


def test_signals_released_after_transaction(harness):
    harness.bus.write(REG_ADDR, 1)
    harness.bus.read(REG_HW_INFO)
    for name in ("awvalid", "wvalid", "bready", "arvalid", "rready"):
        assert harness.ctx.get("s_axi_" + name) == 0


def test_handshake_timeout_does_not_raise(dict_model, caplog):
    ctx = SimContext(dict_model, HarnessConfig(handshake_timeout=5))
    bus = AxiLiteMaster(ctx)
    with caplog.at_level("WARNING"):
        bus.write(REG_ADDR, 1)
        assert bus.read(REG_ADDR) == 0
    assert bus.timeouts == 4
    assert "handshake timeout" in caplog.text
    # two bounded waits plus one fixed cycle per transaction
    assert ctx.cycles == 2 * (5 + 1 + 5 + 1)
