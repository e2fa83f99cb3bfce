import pytest

from sumpbfm.regs import (
    CommandClass,
    CommandError,
    Opcode,
    Operands,
    Status,
    TriggerType,
    opcode_name,
)


def test_command_class_ranges():
    assert CommandClass.of(0x01) is CommandClass.STATE
    assert CommandClass.of(0x1C) is CommandClass.LOCAL_READ
    assert CommandClass.of(0x2A) is CommandClass.LOCAL_WRITE
    assert CommandClass.of(0x32) is CommandClass.SERIAL_READ
    assert CommandClass.of(0x41) is CommandClass.SERIAL_WRITE
    assert CommandClass.of(0x41).is_serial
    with pytest.raises(CommandError):
        CommandClass.of(0x50)


def test_opcode_operands():
    assert Opcode.ARM.operands == Operands.NONE
    assert Opcode.RD_HW_ID.operands == Operands.NONE
    assert Opcode.WR_DIG_POST_TRIG.operands == Operands.DATA
    assert Opcode.RD_POD_REG.operands == Operands.ADDR
    assert Opcode.WR_POD_REG.operands == Operands.ADDR | Operands.DATA


def test_opcode_lookup():
    assert Opcode.lookup(0x40) is Opcode.WR_POD_REG
    with pytest.raises(CommandError):
        Opcode.lookup(0x06)
    assert opcode_name(0x36) == "RD_HUB_NAME_0_3"
    assert opcode_name(0x06) == "0x06"


def test_trigger_type():
    assert TriggerType.parse("or-rising") is TriggerType.OR_RISING
    assert TriggerType.parse(" ext_falling ") is TriggerType.EXT_FALLING
    assert TriggerType.AND_RISING.rising
    assert not TriggerType.OR_FALLING.rising
    assert TriggerType.EXT_RISING.is_external
    assert TriggerType.ANA_FALLING.is_analog
    with pytest.raises(ValueError):
        TriggerType.parse("sideways")


def test_status_bits():
    status = Status(0b1010)
    assert not status.busy
    assert status.done
    assert not status.error
    assert status.irq_pending
    assert status.to_dict() == {"busy": False, "done": True, "error": False, "irq_pending": True}
