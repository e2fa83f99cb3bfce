"""Behavioral reference model of the AXI4-Lite logic analyzer wrapper.

The model exposes named signals and a single :meth:`SumpModel.advance` that
evaluates one simulation step. Logic runs on rising clock edges only:

* bus clock (``clk``): AXI4-Lite slave and the command engine;
* slow clock (``clk_50mhz``): the simple DUT and the capture engine of hub 0;
* fast clock (``clk_200mhz``): hub 1, whose pod carries no probe source.

AXI handshakes are registered: a request is accepted one edge after it is
presented and the response follows on the next edge. State and local
commands complete a few bus cycles after START, serial-bus commands take
much longer so that an abort can land while one is in flight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .regs import (
    CTRL_ABORT,
    CTRL_IRQ_EN,
    CTRL_START,
    RAM_PAGE_SHIFT,
    REG_ADDR,
    REG_CAP_STATUS,
    REG_CMD,
    REG_CTRL,
    REG_HW_INFO,
    REG_IRQ_STATUS,
    REG_RDATA,
    REG_STATUS,
    REG_TIMEOUT,
    REG_WDATA,
    STATUS_BUSY,
    STATUS_DONE,
    STATUS_ERROR,
    STATUS_IRQ_PEND,
    Opcode,
    PodReg,
    TriggerType,
)
from .sample import CODE_POST_TRIGGER, CODE_PRE_TRIGGER, CODE_TRIGGER, FsmState
from .utils import ascii_to_dwords

log = logging.getLogger(__name__)


class SignalError(Exception):
    pass


INPUTS: Dict[str, int] = {
    "clk": 1,
    "clk_50mhz": 1,
    "clk_200mhz": 1,
    "rst_n": 1,
    "s_axi_awaddr": 8,
    "s_axi_awvalid": 1,
    "s_axi_wdata": 32,
    "s_axi_wstrb": 4,
    "s_axi_wvalid": 1,
    "s_axi_bready": 1,
    "s_axi_araddr": 8,
    "s_axi_arvalid": 1,
    "s_axi_rready": 1,
    "dut_enable": 1,
    "dut_pause": 1,
    "dut_trigger_in": 1,
}

OUTPUTS: Dict[str, int] = {
    "s_axi_awready": 1,
    "s_axi_wready": 1,
    "s_axi_bvalid": 1,
    "s_axi_bresp": 2,
    "s_axi_arready": 1,
    "s_axi_rvalid": 1,
    "s_axi_rdata": 32,
    "s_axi_rresp": 2,
    "irq": 1,
}

SUMP_HW_ID = 0x53
HW_REV = 0x03
FEATURES = 0x01  # digital high-speed capture only

LOCAL_LATENCY = 4
SERIAL_LATENCY = 120

RAM_DEPTH_BITS = 9
RAM_DATA_BITS = 32
RAM_TS_BITS = 14
POD_HW_REV = 0x01

TICK_FREQ_MHZ = 100
DIG_CK_FREQ_MHZ = 50


def _freq_word(mhz: int) -> int:
    return (mhz & 0xFFF) << 20


def _ram_cfg_word() -> int:
    return (RAM_TS_BITS << 24) | (RAM_DATA_BITS << 8) | RAM_DEPTH_BITS


class PodModel:
    READ_ONLY = {
        PodReg.HW_CFG,
        PodReg.RAM_DATA,
        PodReg.RAM_CFG,
        PodReg.TRIGGERABLE,
        PodReg.INSTANCE,
        PodReg.NAME_0_3,
        PodReg.NAME_4_7,
        PodReg.NAME_8_11,
    }

    def __init__(self, hub: int, pod: int, name: str):
        self.hub = hub
        self.pod = pod
        self.name = name
        self.depth = 1 << RAM_DEPTH_BITS
        self.ram: List[Tuple[int, int]] = [(0, 0)] * self.depth
        self.page = 0
        self.ptr = 0
        self.regs: Dict[int, int] = {
            PodReg.HW_CFG: (POD_HW_REV << 24) | 0x01,
            PodReg.TRIG_LAT: 0,
            PodReg.TRIG_CFG: 0,
            PodReg.TRIG_EN: 0,
            PodReg.RLE_MASK: 0xFFFFFFFF,
            PodReg.COMP_VALUE: 0,
            PodReg.USER_CTRL: 0,
            PodReg.TRIGGERABLE: 0xFFFFFFFF,
            PodReg.TRIG_SRC: 0,
        }
        for reg, word in zip((PodReg.NAME_0_3, PodReg.NAME_4_7, PodReg.NAME_8_11), ascii_to_dwords(name)):
            self.regs[reg] = word

    def clear_ram(self) -> None:
        self.ram = [(0, 0)] * self.depth

    def read(self, reg: int) -> int:
        if reg == PodReg.RAM_PTR:
            return (self.page << RAM_PAGE_SHIFT) | self.ptr
        if reg == PodReg.RAM_DATA:
            lo, hi = self.ram[self.ptr % self.depth]
            return lo if self.page == 0 else hi
        if reg == PodReg.RAM_CFG:
            return _ram_cfg_word()
        if reg == PodReg.INSTANCE:
            return self.pod
        return self.regs.get(reg, 0)

    def write(self, reg: int, value: int) -> None:
        if reg == PodReg.RAM_PTR:
            self.page = (value >> RAM_PAGE_SHIFT) & 0xF
            self.ptr = value & ((1 << RAM_PAGE_SHIFT) - 1)
        elif reg in self.READ_ONLY:
            log.debug("write to read-only pod register 0x%02X ignored", reg)
        else:
            self.regs[reg] = value & 0xFFFFFFFF


@dataclass
class HubModel:
    index: int
    name: str
    freq_mhz: int
    pods: List[PodModel] = field(default_factory=list)
    trig_width: int = 0

    @property
    def hw_cfg(self) -> int:
        return (POD_HW_REV << 24) | (len(self.pods) << 8)

    def name_words(self) -> List[int]:
        return ascii_to_dwords(self.name)


class SimpleDut:
    """FSM whose state, busy/done flags and data-out bus are probed by pod 0."""

    INIT_CYCLES = 4
    COUNT_CYCLES = 8
    PROCESS_CYCLES = 4
    WAIT_CYCLES = 4
    DONE_CYCLES = 2
    DATA_PERIOD = 16

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.state = FsmState.IDLE
        self.timer = 0
        self.divider = 0
        self.data_out = 0

    @property
    def busy(self) -> bool:
        return self.state not in (FsmState.IDLE, FsmState.DONE, FsmState.ERROR)

    @property
    def done(self) -> bool:
        return self.state == FsmState.DONE

    @property
    def word(self) -> int:
        return int(self.state) | (int(self.busy) << 16) | (int(self.done) << 17) | (self.data_out << 20)

    def _after(self, cycles: int, nxt: FsmState) -> None:
        self.timer += 1
        if self.timer >= cycles:
            self.state = nxt
            self.timer = 0

    def clock(self, enable: bool, pause: bool, trigger: bool) -> None:
        if not enable:
            self.state = FsmState.IDLE
            self.timer = 0
            return
        state = self.state
        if state == FsmState.IDLE:
            self.state = FsmState.INIT
            self.timer = 0
        elif state == FsmState.INIT:
            self._after(self.INIT_CYCLES, FsmState.RUNNING)
        elif state == FsmState.RUNNING:
            if pause:
                self.state = FsmState.PAUSED
            elif trigger:
                self.state = FsmState.COUNTING
                self.timer = 0
            else:
                self.divider += 1
                if self.divider >= self.DATA_PERIOD:
                    self.divider = 0
                    self.data_out = (self.data_out + 1) & 0xFF
        elif state == FsmState.PAUSED:
            if not pause:
                self.state = FsmState.RUNNING
        elif state == FsmState.COUNTING:
            self.data_out = (self.data_out + 1) & 0xFF
            self._after(self.COUNT_CYCLES, FsmState.PROCESS)
        elif state == FsmState.PROCESS:
            self._after(self.PROCESS_CYCLES, FsmState.WAIT)
            if self.state == FsmState.WAIT:
                self.data_out ^= 0xA5
        elif state == FsmState.WAIT:
            self._after(self.WAIT_CYCLES, FsmState.DONE)
        elif state == FsmState.DONE:
            self._after(self.DONE_CYCLES, FsmState.RUNNING)
        else:
            self.state = FsmState.ERROR


def trigger_fired(trig_type: int, mask: int, last: int, data: int, last_ext: bool, ext: bool) -> bool:
    try:
        kind = TriggerType(trig_type & 0x7)
    except ValueError:
        return False
    if kind.is_external:
        return (ext and not last_ext) if kind.rising else (last_ext and not ext)
    if kind.is_analog or mask == 0:
        return False
    if kind == TriggerType.OR_RISING:
        return (~last & data & mask) != 0
    if kind == TriggerType.OR_FALLING:
        return (last & ~data & mask) != 0
    if kind == TriggerType.AND_RISING:
        return (data & mask) == mask and (last & mask) != mask
    return (last & mask) == mask and (data & mask) != mask


class CaptureEngine:
    """Run-length capture into a pod RAM: one record per change of the probe."""

    def __init__(self, pod: PodModel):
        self.pod = pod
        self.last_data = 0
        self.last_ext = False
        self.reset()

    def reset(self) -> None:
        self.armed = False
        self.pre_trigger = False
        self.triggered = False
        self.acquired = False
        self.wptr = 0
        self.wrapped = False
        self.timestamp = 0
        self.post_count = 0
        self.need_first = False

    def arm(self) -> None:
        self.reset()
        self.armed = True
        self.pre_trigger = True
        self.need_first = True

    def disarm(self) -> None:
        self.armed = False
        self.pre_trigger = False

    @property
    def first_ptr(self) -> int:
        return self.wptr if self.wrapped else 0

    def _record(self, code: int, data: int) -> None:
        ts = self.timestamp & ((1 << RAM_TS_BITS) - 1)
        self.pod.ram[self.wptr] = (data & 0xFFFFFFFF, (code << RAM_TS_BITS) | ts)
        self.wptr = (self.wptr + 1) % self.pod.depth
        if self.wptr == 0:
            self.wrapped = True

    def clock(self, data: int, ext: bool, trig_type: int, trig_field: int, post_trig: int) -> None:
        last_data, last_ext = self.last_data, self.last_ext
        self.last_data, self.last_ext = data, ext
        if not self.armed:
            return
        rle_mask = self.pod.regs[PodReg.RLE_MASK]
        changed = ((data ^ last_data) & rle_mask) != 0
        if not self.triggered and trigger_fired(trig_type, trig_field, last_data, data, last_ext, ext):
            self.triggered = True
            self.pre_trigger = False
            self._record(CODE_TRIGGER, data)
        elif changed or self.need_first:
            if self.triggered:
                self._record(CODE_POST_TRIGGER, data)
                self.post_count += 1
            else:
                self._record(CODE_PRE_TRIGGER, data)
        self.need_first = False
        self.timestamp += 1
        if self.triggered and self.post_count >= post_trig:
            self.acquired = True
            self.armed = False


class SumpModel:
    """Two hubs, one pod each; pod 0 of hub 0 probes :class:`SimpleDut`."""

    def __init__(self, pod_count_glitch: Optional[int] = None):
        self.values: Dict[str, int] = {name: 0 for name in INPUTS}
        self.values.update({name: 0 for name in OUTPUTS})
        self._last_clk = {"clk": 0, "clk_50mhz": 0, "clk_200mhz": 0}
        self.pod_count_glitch = pod_count_glitch
        self.hubs = [
            HubModel(0, "dut_hub_slow", 50, [PodModel(0, 0, "dut_fsm_pod0")]),
            HubModel(1, "ctr_hub_fast", 200, [PodModel(1, 0, "ctr_cnt_pod0")]),
        ]
        self.dut = SimpleDut()
        self.capture = CaptureEngine(self.hubs[0].pods[0])
        self.fast_count = 0
        self._commands: Dict[int, Callable[[], bool]] = self._command_table()
        self._reset_bus()

    # Signal interface --------------------------------------------------

    def set(self, name: str, value: int) -> None:
        width = INPUTS.get(name)
        if width is None:
            if name in OUTPUTS:
                raise SignalError(f"{name} is driven by the model, not settable")
            raise SignalError(f"Unknown signal: {name}")
        self.values[name] = int(value) & ((1 << width) - 1)

    def get(self, name: str) -> int:
        try:
            return self.values[name]
        except KeyError:
            raise SignalError(f"Unknown signal: {name}") from None

    def advance(self) -> None:
        rising = []
        for name, last in self._last_clk.items():
            level = self.values[name]
            if level and not last:
                rising.append(name)
            self._last_clk[name] = level
        for name in rising:
            if name == "clk":
                self._bus_edge()
            elif name == "clk_50mhz":
                self._slow_edge()
            else:
                self.fast_count += 1

    # Bus domain --------------------------------------------------------

    def _reset_bus(self) -> None:
        for name in OUTPUTS:
            self.values[name] = 0
        self.cmd = 0
        self.addr = 0
        self.wdata = 0
        self.ctrl = 0
        self.rdata = 0
        self.timeout = 0
        self.busy = False
        self.done = False
        self.error = False
        self.irq_pending = False
        self.irq_enable = False
        self.awake = True
        self.remaining = 0
        self.busy_cycles = 0
        self.local: Dict[int, int] = {}
        self._araddr = 0

    def _bus_edge(self) -> None:
        if not self.values["rst_n"]:
            self._reset_bus()
            return
        self._engine_tick()
        self._write_channel()
        self._read_channel()
        self.values["irq"] = int(self.irq_pending)

    def _write_channel(self) -> None:
        v = self.values
        if v["s_axi_bvalid"]:
            if v["s_axi_bready"]:
                v["s_axi_bvalid"] = 0
        elif v["s_axi_awready"]:
            v["s_axi_awready"] = 0
            v["s_axi_wready"] = 0
            v["s_axi_bvalid"] = 1
            v["s_axi_bresp"] = 0
        elif v["s_axi_awvalid"] and v["s_axi_wvalid"]:
            v["s_axi_awready"] = 1
            v["s_axi_wready"] = 1
            self._write_reg(v["s_axi_awaddr"], v["s_axi_wdata"], v["s_axi_wstrb"])

    def _read_channel(self) -> None:
        v = self.values
        if v["s_axi_rvalid"]:
            if v["s_axi_rready"]:
                v["s_axi_rvalid"] = 0
        elif v["s_axi_arready"]:
            v["s_axi_arready"] = 0
            v["s_axi_rdata"] = self._read_reg(self._araddr)
            v["s_axi_rresp"] = 0
            v["s_axi_rvalid"] = 1
        elif v["s_axi_arvalid"]:
            v["s_axi_arready"] = 1
            self._araddr = v["s_axi_araddr"]

    @staticmethod
    def _merge(old: int, new: int, strb: int) -> int:
        mask = 0
        for lane in range(4):
            if strb & (1 << lane):
                mask |= 0xFF << (8 * lane)
        return (old & ~mask & 0xFFFFFFFF) | (new & mask)

    def _write_reg(self, addr: int, data: int, strb: int) -> None:
        data = self._merge(0, data, strb)
        if addr == REG_CMD:
            self.cmd = data & 0xFF
        elif addr == REG_ADDR:
            self.addr = data
        elif addr == REG_WDATA:
            self.wdata = data
        elif addr == REG_CTRL:
            self.ctrl = data
            if data & CTRL_ABORT:
                self._abort()
            elif data & CTRL_START and not self.busy:
                self._start(bool(data & CTRL_IRQ_EN))
        elif addr == REG_IRQ_STATUS:
            if data & 1:
                self.irq_pending = False
        elif addr == REG_TIMEOUT:
            self.timeout = data

    def _read_reg(self, addr: int) -> int:
        if addr == REG_CMD:
            return self.cmd
        if addr == REG_ADDR:
            return self.addr
        if addr == REG_WDATA:
            return self.wdata
        if addr == REG_CTRL:
            return self.ctrl & CTRL_IRQ_EN
        if addr == REG_STATUS:
            return self.status_word
        if addr == REG_RDATA:
            return self.rdata
        if addr == REG_IRQ_STATUS:
            return int(self.irq_pending)
        if addr == REG_HW_INFO:
            return (SUMP_HW_ID << 24) | (HW_REV << 16) | (len(self.hubs) << 8) | FEATURES
        if addr == REG_CAP_STATUS:
            cap = self.capture
            return int(cap.armed) | (int(self.awake) << 1) | (int(cap.triggered) << 2) | (int(cap.acquired) << 3)
        if addr == REG_TIMEOUT:
            return self.timeout
        return 0

    @property
    def status_word(self) -> int:
        word = 0
        if self.busy:
            word |= STATUS_BUSY
        if self.done:
            word |= STATUS_DONE
        if self.error:
            word |= STATUS_ERROR
        if self.irq_pending:
            word |= STATUS_IRQ_PEND
        return word

    # Command engine ----------------------------------------------------

    def _start(self, irq_enable: bool) -> None:
        self.busy = True
        self.done = False
        self.error = False
        self.irq_enable = irq_enable
        self.busy_cycles = 0
        serial = (self.cmd >> 4) in (0x3, 0x4)
        self.remaining = SERIAL_LATENCY if serial else LOCAL_LATENCY

    def _abort(self) -> None:
        if self.busy:
            log.debug("command 0x%02X aborted", self.cmd)
        self.busy = False
        self.done = False
        self.error = False
        self.remaining = 0

    def _finish(self, ok: bool) -> None:
        self.busy = False
        self.done = ok
        self.error = not ok
        if self.irq_enable:
            self.irq_pending = True

    def _engine_tick(self) -> None:
        if not self.busy:
            return
        self.busy_cycles += 1
        if self.timeout and self.busy_cycles > self.timeout:
            log.debug("command 0x%02X hit the watchdog", self.cmd)
            self._finish(False)
            return
        self.remaining -= 1
        if self.remaining <= 0:
            handler = self._commands.get(self.cmd)
            self._finish(handler() if handler is not None else False)

    def _command_table(self) -> Dict[int, Callable[[], bool]]:
        table: Dict[int, Callable[[], bool]] = {
            Opcode.NOP: lambda: True,
            Opcode.ARM: self._cmd_arm,
            Opcode.RESET: self._cmd_reset,
            Opcode.INIT: self._cmd_init,
            Opcode.IDLE: self._cmd_idle,
            Opcode.SLEEP: self._cmd_sleep,
            Opcode.RD_POD_REG: self._cmd_rd_pod_reg,
            Opcode.WR_POD_REG: self._cmd_wr_pod_reg,
            Opcode.WR_TRIG_WIDTH: self._cmd_wr_trig_width,
        }
        local_reads: Dict[int, Callable[[], int]] = {
            Opcode.RD_HW_ID: lambda: (SUMP_HW_ID << 24) | (HW_REV << 16) | (len(self.hubs) << 8) | FEATURES,
            Opcode.RD_HUB_COUNT: lambda: len(self.hubs),
            Opcode.RD_STATUS: self._capture_status,
            Opcode.RD_ANA_RAM_CFG: lambda: 0,
            Opcode.RD_TICK_FREQ: lambda: _freq_word(TICK_FREQ_MHZ),
            Opcode.RD_ANA_FIRST_PTR: lambda: 0,
            Opcode.RD_RAM_DATA: lambda: 0,
            Opcode.RD_DIG_FIRST_PTR: lambda: self.capture.first_ptr,
            Opcode.RD_DIG_CK_FREQ: lambda: _freq_word(DIG_CK_FREQ_MHZ),
            Opcode.RD_DIG_RAM_CFG: _ram_cfg_word,
            Opcode.RD_REC_PROFILE: lambda: 0,
            Opcode.RD_TRIG_SRC: lambda: 1 if self.capture.triggered else 0,
            Opcode.RD_VIEW_ROM_KB: lambda: 0,
        }
        for opcode, read in local_reads.items():
            table[opcode] = self._reader(read)
        for opcode in range(Opcode.WR_USER_CTRL, Opcode.WR_RAM_PAGE + 1):
            table[opcode] = self._local_writer(opcode)
        hub_reads: Dict[int, Callable[[HubModel], int]] = {
            Opcode.RD_HUB_FREQ: lambda hub: _freq_word(hub.freq_mhz),
            Opcode.RD_POD_COUNT: self._pod_count,
            Opcode.RD_TRIG_SRC_POD: lambda hub: 1 if hub.index == 0 and self.capture.triggered else 0,
            Opcode.RD_HUB_HW_CFG: lambda hub: hub.hw_cfg,
            Opcode.RD_HUB_INSTANCE: lambda hub: hub.index,
            Opcode.RD_HUB_NAME_0_3: lambda hub: hub.name_words()[0],
            Opcode.RD_HUB_NAME_4_7: lambda hub: hub.name_words()[1],
            Opcode.RD_HUB_NAME_8_11: lambda hub: hub.name_words()[2],
        }
        for opcode, read_hub in hub_reads.items():
            table[opcode] = self._hub_reader(read_hub)
        return table

    def _reader(self, read: Callable[[], int]) -> Callable[[], bool]:
        def run() -> bool:
            self.rdata = read() & 0xFFFFFFFF
            return True

        return run

    def _local_writer(self, opcode: int) -> Callable[[], bool]:
        def run() -> bool:
            self.local[opcode] = self.wdata
            return True

        return run

    def _hub_reader(self, read: Callable[[HubModel], int]) -> Callable[[], bool]:
        def run() -> bool:
            hub = self._target_hub()
            if hub is None:
                return False
            self.rdata = read(hub) & 0xFFFFFFFF
            return True

        return run

    def _target_hub(self) -> Optional[HubModel]:
        index = (self.addr >> 16) & 0xFF
        return self.hubs[index] if index < len(self.hubs) else None

    def _target_pod(self) -> Optional[PodModel]:
        hub = self._target_hub()
        index = (self.addr >> 8) & 0xFF
        if hub is None or index >= len(hub.pods):
            return None
        return hub.pods[index]

    def _pod_count(self, hub: HubModel) -> int:
        if self.pod_count_glitch is not None:
            return self.pod_count_glitch
        return len(hub.pods)

    def _capture_status(self) -> int:
        cap = self.capture
        return int(cap.armed) | (int(cap.pre_trigger) << 1) | (int(cap.triggered) << 2) | (int(cap.acquired) << 3)

    def _cmd_arm(self) -> bool:
        self.awake = True
        self.capture.arm()
        return True

    def _cmd_reset(self) -> bool:
        self.capture.reset()
        return True

    def _cmd_init(self) -> bool:
        for hub in self.hubs:
            for pod in hub.pods:
                pod.clear_ram()
        self.capture.wptr = 0
        self.capture.wrapped = False
        return True

    def _cmd_idle(self) -> bool:
        self.capture.disarm()
        return True

    def _cmd_sleep(self) -> bool:
        self.capture.disarm()
        self.awake = False
        return True

    def _cmd_rd_pod_reg(self) -> bool:
        pod = self._target_pod()
        if pod is None:
            return False
        self.rdata = pod.read(self.addr & 0xFF)
        return True

    def _cmd_wr_pod_reg(self) -> bool:
        pod = self._target_pod()
        if pod is None:
            return False
        pod.write(self.addr & 0xFF, self.wdata)
        return True

    def _cmd_wr_trig_width(self) -> bool:
        hub = self._target_hub()
        if hub is None:
            return False
        hub.trig_width = self.wdata
        return True

    # Slow domain -------------------------------------------------------

    def _slow_edge(self) -> None:
        if not self.values["rst_n"]:
            self.dut.reset()
            self.capture.reset()
            return
        self.capture.clock(
            self.dut.word,
            bool(self.values["dut_trigger_in"]),
            self.local.get(Opcode.WR_TRIG_TYPE, 0),
            self.local.get(Opcode.WR_TRIG_DIG_FIELD, 0),
            self.local.get(Opcode.WR_DIG_POST_TRIG, 0),
        )
        self.dut.clock(
            bool(self.values["dut_enable"]),
            bool(self.values["dut_pause"]),
            bool(self.values["dut_trigger_in"]),
        )
