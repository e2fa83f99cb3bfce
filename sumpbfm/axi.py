"""AXI4-Lite bus-functional master: single-beat register write and read.

Handshake timeouts do not raise. A read that never sees ``rvalid`` returns
whatever the read-data lines hold; judging the result is left to the
command layer above, which has its own cycle budget.
"""

from __future__ import annotations

import logging
from typing import Optional

from .sim import SimContext

log = logging.getLogger(__name__)

ALL_BYTE_LANES = 0xF


class AxiLiteMaster:
    def __init__(self, ctx: SimContext, prefix: str = "s_axi_", timeout: Optional[int] = None):
        self.ctx = ctx
        self.prefix = prefix
        self.timeout = ctx.config.handshake_timeout if timeout is None else timeout
        self.timeouts = 0

    def _sig(self, name: str) -> str:
        return self.prefix + name

    def _drive(self, **signals: int) -> None:
        for name, value in signals.items():
            self.ctx.set(self._sig(name), value)

    def _high(self, name: str) -> bool:
        return bool(self.ctx.get(self._sig(name)))

    def _wait(self, what: str, predicate, addr: int) -> None:
        ok, _ = self.ctx.advance_until(predicate, self.timeout)
        if not ok:
            self.timeouts += 1
            log.warning("AXI %s handshake timeout at 0x%02X after %d cycles", what, addr, self.timeout)

    def idle(self) -> None:
        """Drive every master-owned signal to its reset value."""
        self._drive(awaddr=0, awvalid=0, wdata=0, wstrb=0, wvalid=0, bready=0,
                    araddr=0, arvalid=0, rready=0)

    def write(self, addr: int, data: int) -> None:
        data &= 0xFFFFFFFF
        self._drive(awaddr=addr, awvalid=1, wdata=data, wstrb=ALL_BYTE_LANES, wvalid=1, bready=1)
        self._wait("write address/data", lambda: self._high("awready") and self._high("wready"), addr)
        self.ctx.tick()
        self._drive(awvalid=0, wvalid=0)
        self._wait("write response", lambda: self._high("bvalid"), addr)
        self.ctx.tick()
        self._drive(bready=0)
        log.debug("AXI write 0x%02X <= 0x%08X", addr, data)

    def read(self, addr: int) -> int:
        self._drive(araddr=addr, arvalid=1, rready=1)
        self._wait("read address", lambda: self._high("arready"), addr)
        self.ctx.tick()
        self._drive(arvalid=0)
        self._wait("read data", lambda: self._high("rvalid"), addr)
        data = self.ctx.get(self._sig("rdata")) & 0xFFFFFFFF
        self.ctx.tick()
        self._drive(rready=0)
        log.debug("AXI read  0x%02X => 0x%08X", addr, data)
        return data
