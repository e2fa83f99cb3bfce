"""Command/status protocol driver layered on the AXI4-Lite master."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .address import PackedAddress
from .axi import AxiLiteMaster
from .regs import (
    CTRL_ABORT,
    CTRL_IRQ_EN,
    CTRL_START,
    REG_ADDR,
    REG_CMD,
    REG_CTRL,
    REG_IRQ_STATUS,
    REG_RDATA,
    REG_STATUS,
    REG_TIMEOUT,
    REG_WDATA,
    REQUIRED_OPERANDS,
    CommandClass,
    CommandError,
    Operands,
    Status,
    opcode_name,
)
from .sim import SimContext

log = logging.getLogger(__name__)

AddressLike = Union[int, PackedAddress]


class ProtocolError(Exception):
    pass


@dataclass
class CommandResult:
    opcode: int
    ok: bool
    status: Optional[int]
    cycles: int

    def __bool__(self) -> bool:
        return self.ok

    @property
    def timed_out(self) -> bool:
        return self.status is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "opcode": opcode_name(self.opcode),
            "ok": self.ok,
            "status": self.status,
            "cycles": self.cycles,
        }


def _address_word(addr: AddressLike) -> int:
    if isinstance(addr, PackedAddress):
        return addr.encode()
    return int(addr) & 0xFFFFFFFF


class CommandDriver:
    """Issues one command at a time and waits for its completion interrupt.

    An invocation loads the operand registers, writes the opcode, then writes
    the control register with START and IRQ_EN. Completion is the interrupt
    line going high; the driver then clears the interrupt and reads the status
    word. Success means the DONE bit is set. No interrupt within the cycle
    budget is a failure reported through ``CommandResult.ok``.
    """

    def __init__(self, ctx: SimContext, bus: Optional[AxiLiteMaster] = None, irq_signal: str = "irq"):
        self.ctx = ctx
        self.bus = bus or AxiLiteMaster(ctx)
        self.irq_signal = irq_signal
        self._outstanding: Optional[int] = None

    @property
    def outstanding(self) -> Optional[int]:
        return self._outstanding

    def start(
        self,
        opcode: int,
        addr: Optional[AddressLike] = None,
        data: Optional[int] = None,
        irq: bool = True,
    ) -> None:
        code = int(opcode) & 0xFF
        if self._outstanding is not None:
            raise ProtocolError(
                f"Cannot issue {opcode_name(code)} while {opcode_name(self._outstanding)} is outstanding"
            )
        required = REQUIRED_OPERANDS[CommandClass.of(code)]
        name = opcode_name(code)
        if Operands.ADDR in required and addr is None:
            raise CommandError(f"{name} needs a packed address")
        if Operands.DATA in required and data is None:
            raise CommandError(f"{name} needs a data word")
        if data is not None and Operands.DATA not in required:
            raise CommandError(f"{name} takes no data operand")

        if addr is not None:
            self.bus.write(REG_ADDR, _address_word(addr))
        if data is not None:
            self.bus.write(REG_WDATA, data)
        self.bus.write(REG_CMD, code)
        self.bus.write(REG_CTRL, CTRL_START | (CTRL_IRQ_EN if irq else 0))
        self._outstanding = code
        log.debug("issued %s addr=%s data=%s", name, addr, None if data is None else f"0x{data:08X}")

    def wait(self, budget: Optional[int] = None) -> CommandResult:
        if self._outstanding is None:
            raise ProtocolError("No command outstanding")
        code = self._outstanding
        budget = self.ctx.config.command_budget if budget is None else budget
        fired, cycles = self.ctx.advance_until(lambda: self.ctx.get(self.irq_signal) != 0, budget)
        self._outstanding = None
        if not fired:
            log.warning("command %s timeout after %d cycles", opcode_name(code), cycles)
            return CommandResult(opcode=code, ok=False, status=None, cycles=cycles)
        self.bus.write(REG_IRQ_STATUS, 1)
        status = self.bus.read(REG_STATUS)
        ok = Status(status).done
        log.debug("command %s done=%s status=0x%X after %d cycles", opcode_name(code), ok, status, cycles)
        return CommandResult(opcode=code, ok=ok, status=status, cycles=cycles)

    def execute(
        self,
        opcode: int,
        addr: Optional[AddressLike] = None,
        data: Optional[int] = None,
        budget: Optional[int] = None,
    ) -> CommandResult:
        self.start(opcode, addr=addr, data=data)
        return self.wait(budget)

    def exec_cmd(self, opcode: int, budget: Optional[int] = None) -> CommandResult:
        return self.execute(opcode, budget=budget)

    def exec_read_cmd(self, opcode: int, addr: AddressLike = 0, budget: Optional[int] = None) -> CommandResult:
        return self.execute(opcode, addr=addr, budget=budget)

    def exec_write_cmd(
        self, opcode: int, addr: AddressLike, data: int, budget: Optional[int] = None
    ) -> CommandResult:
        return self.execute(opcode, addr=addr, data=data, budget=budget)

    def exec_local_write(self, opcode: int, data: int, budget: Optional[int] = None) -> CommandResult:
        return self.execute(opcode, data=data, budget=budget)

    def result(self) -> int:
        return self.bus.read(REG_RDATA)

    def status(self) -> Status:
        return Status(self.bus.read(REG_STATUS))

    def abort(self) -> None:
        """Cancel whatever the engine is doing; busy clears within a few cycles."""
        self.bus.write(REG_CTRL, CTRL_ABORT)
        if self._outstanding is not None:
            log.info("aborted %s", opcode_name(self._outstanding))
        self._outstanding = None

    def clear_irq(self) -> None:
        self.bus.write(REG_IRQ_STATUS, 1)

    def set_watchdog(self, cycles: int) -> None:
        """Program the engine's own command timeout; 0 disables it."""
        self.bus.write(REG_TIMEOUT, cycles)
