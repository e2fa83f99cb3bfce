"""Register map, control/status bits and the command opcode table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, Flag, IntEnum
from typing import Dict, Optional


class CommandError(Exception):
    pass


# AXI4-Lite register byte offsets
REG_CMD = 0x00
REG_ADDR = 0x04
REG_WDATA = 0x08
REG_CTRL = 0x0C
REG_STATUS = 0x10
REG_RDATA = 0x14
REG_IRQ_STATUS = 0x18
REG_HW_INFO = 0x1C
REG_CAP_STATUS = 0x20
REG_TIMEOUT = 0x24

CTRL_START = 1 << 0
CTRL_IRQ_EN = 1 << 1
CTRL_ABORT = 1 << 2

STATUS_BUSY = 1 << 0
STATUS_DONE = 1 << 1
STATUS_ERROR = 1 << 2
STATUS_IRQ_PEND = 1 << 3

# RAM pointer page select, written to PodReg.RAM_PTR
RAM_PAGE_SHIFT = 20


class CommandClass(Enum):
    STATE = "state"
    LOCAL_READ = "local_read"
    LOCAL_WRITE = "local_write"
    SERIAL_READ = "serial_read"
    SERIAL_WRITE = "serial_write"

    @staticmethod
    def of(code: int) -> "CommandClass":
        high = (code >> 4) & 0xF
        try:
            return _CLASS_BY_NIBBLE[high]
        except KeyError:
            raise CommandError(f"Opcode 0x{code:02X} is outside every command range") from None

    @property
    def is_serial(self) -> bool:
        return self in (CommandClass.SERIAL_READ, CommandClass.SERIAL_WRITE)


_CLASS_BY_NIBBLE = {
    0x0: CommandClass.STATE,
    0x1: CommandClass.LOCAL_READ,
    0x2: CommandClass.LOCAL_WRITE,
    0x3: CommandClass.SERIAL_READ,
    0x4: CommandClass.SERIAL_WRITE,
}


class Operands(Flag):
    NONE = 0
    ADDR = 1
    DATA = 2


# Operands each command range must have loaded before the opcode is written.
REQUIRED_OPERANDS: Dict[CommandClass, Operands] = {
    CommandClass.STATE: Operands.NONE,
    CommandClass.LOCAL_READ: Operands.NONE,
    CommandClass.LOCAL_WRITE: Operands.DATA,
    CommandClass.SERIAL_READ: Operands.ADDR,
    CommandClass.SERIAL_WRITE: Operands.ADDR | Operands.DATA,
}


class Opcode(IntEnum):
    # State commands
    NOP = 0x00
    ARM = 0x01
    RESET = 0x02
    INIT = 0x03
    IDLE = 0x04
    SLEEP = 0x05

    # Local reads
    RD_HW_ID = 0x10
    RD_HUB_COUNT = 0x11
    RD_STATUS = 0x12
    RD_ANA_RAM_CFG = 0x13
    RD_TICK_FREQ = 0x14
    RD_ANA_FIRST_PTR = 0x15
    RD_RAM_DATA = 0x16
    RD_DIG_FIRST_PTR = 0x17
    RD_DIG_CK_FREQ = 0x18
    RD_DIG_RAM_CFG = 0x19
    RD_REC_PROFILE = 0x1A
    RD_TRIG_SRC = 0x1B
    RD_VIEW_ROM_KB = 0x1C

    # Local writes
    WR_USER_CTRL = 0x20
    WR_REC_CONFIG = 0x21
    WR_TICK_DIVISOR = 0x22
    WR_TRIG_TYPE = 0x23
    WR_TRIG_DIG_FIELD = 0x24
    WR_TRIG_ANA_FIELD = 0x25
    WR_ANA_POST_TRIG = 0x26
    WR_TRIG_DELAY = 0x27
    WR_TRIG_NTH = 0x28
    WR_RAM_RD_PTR = 0x29
    WR_DIG_POST_TRIG = 0x2A
    WR_RAM_PAGE = 0x2B

    # Serial bus reads
    RD_HUB_FREQ = 0x30
    RD_POD_COUNT = 0x31
    RD_POD_REG = 0x32
    RD_TRIG_SRC_POD = 0x33
    RD_HUB_HW_CFG = 0x34
    RD_HUB_INSTANCE = 0x35
    RD_HUB_NAME_0_3 = 0x36
    RD_HUB_NAME_4_7 = 0x37
    RD_HUB_NAME_8_11 = 0x38

    # Serial bus writes
    WR_POD_REG = 0x40
    WR_TRIG_WIDTH = 0x41

    @property
    def command_class(self) -> CommandClass:
        return CommandClass.of(self.value)

    @property
    def operands(self) -> Operands:
        return REQUIRED_OPERANDS[self.command_class]

    @classmethod
    def lookup(cls, code: int) -> "Opcode":
        try:
            return cls(code)
        except ValueError:
            raise CommandError(f"Unknown opcode 0x{code:02X}") from None


HUB_NAME_OPCODES = (Opcode.RD_HUB_NAME_0_3, Opcode.RD_HUB_NAME_4_7, Opcode.RD_HUB_NAME_8_11)


class PodReg(IntEnum):
    HW_CFG = 0x00
    TRIG_LAT = 0x02
    TRIG_CFG = 0x03
    TRIG_EN = 0x04
    RLE_MASK = 0x05
    COMP_VALUE = 0x07
    RAM_PTR = 0x08
    RAM_DATA = 0x09
    RAM_CFG = 0x0A
    USER_CTRL = 0x0B
    TRIGGERABLE = 0x0E
    TRIG_SRC = 0x0F
    INSTANCE = 0x1C
    NAME_0_3 = 0x1D
    NAME_4_7 = 0x1E
    NAME_8_11 = 0x1F


POD_NAME_REGS = (PodReg.NAME_0_3, PodReg.NAME_4_7, PodReg.NAME_8_11)


class TriggerType(IntEnum):
    AND_RISING = 0x00
    AND_FALLING = 0x01
    OR_RISING = 0x02
    OR_FALLING = 0x03
    ANA_RISING = 0x04
    ANA_FALLING = 0x05
    EXT_RISING = 0x06
    EXT_FALLING = 0x07

    @property
    def rising(self) -> bool:
        return (self.value & 1) == 0

    @property
    def is_external(self) -> bool:
        return self in (TriggerType.EXT_RISING, TriggerType.EXT_FALLING)

    @property
    def is_analog(self) -> bool:
        return self in (TriggerType.ANA_RISING, TriggerType.ANA_FALLING)

    @classmethod
    def parse(cls, text: str) -> "TriggerType":
        key = text.strip().upper().replace("-", "_")
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown trigger type: {text}") from None


@dataclass(frozen=True)
class Status:
    """Decoded wrapper status word."""

    word: int

    @property
    def busy(self) -> bool:
        return bool(self.word & STATUS_BUSY)

    @property
    def done(self) -> bool:
        return bool(self.word & STATUS_DONE)

    @property
    def error(self) -> bool:
        return bool(self.word & STATUS_ERROR)

    @property
    def irq_pending(self) -> bool:
        return bool(self.word & STATUS_IRQ_PEND)

    def to_dict(self) -> Dict[str, bool]:
        return {
            "busy": self.busy,
            "done": self.done,
            "error": self.error,
            "irq_pending": self.irq_pending,
        }


def opcode_name(code: int) -> str:
    opcode: Optional[Opcode]
    try:
        opcode = Opcode(code)
    except ValueError:
        opcode = None
    return opcode.name if opcode is not None else f"0x{code:02X}"
