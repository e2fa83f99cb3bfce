"""Register model of the logic analyzer behind the command protocol.

Two namespaces are reachable. The local namespace belongs to the controller
itself and is addressed by opcode alone. The serial namespace holds per-hub
and per-pod registers; it is only reachable through the serial read/write
opcodes with a packed ``hub:pod:reg`` address.

Hub and pod counts read over the serial bus can come back wrong when the
capture clock and the bus clock are configured a particular way (a
clock-domain crossing hazard in the hardware). Enumeration treats a count of
0 or one that does not fit the 8-bit index as unknown and probes a single
entry instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .address import PackedAddress
from .protocol import CommandDriver, CommandResult
from .regs import (
    HUB_NAME_OPCODES,
    POD_NAME_REGS,
    RAM_PAGE_SHIFT,
    REG_CAP_STATUS,
    REG_HW_INFO,
    Opcode,
    PodReg,
)
from .utils import hex32, words_to_name

log = logging.getLogger(__name__)

MAX_PLAUSIBLE_COUNT = 256
SUMP_ID = 0x53


def plausible_count(raw: Optional[int]) -> int:
    """Number of entries to probe for a hub or pod count read."""
    if raw is None or raw <= 0 or raw >= MAX_PLAUSIBLE_COUNT:
        return 1
    return raw


@dataclass(frozen=True)
class HwId:
    word: int

    @property
    def sump_id(self) -> int:
        return (self.word >> 24) & 0xFF

    @property
    def hw_rev(self) -> int:
        return (self.word >> 16) & 0xFF

    @property
    def hub_count(self) -> int:
        return (self.word >> 8) & 0xFF

    @property
    def features(self) -> int:
        return self.word & 0xFF

    @property
    def digital_hs(self) -> bool:
        return bool(self.features & 0x01)

    @property
    def analog_ls(self) -> bool:
        return bool(self.features & 0x02)

    @property
    def view_rom(self) -> bool:
        return bool(self.features & 0x04)

    @property
    def thread_lock(self) -> bool:
        return bool(self.features & 0x08)

    @property
    def bus_busy_timer(self) -> bool:
        return bool(self.features & 0x10)


@dataclass(frozen=True)
class HwInfo:
    """Hardware-info register read directly over the bus, no command needed."""

    word: int

    @property
    def ident(self) -> int:
        return (self.word >> 16) & 0xFFFF

    @property
    def hub_count(self) -> int:
        return (self.word >> 8) & 0xFF

    @property
    def features(self) -> int:
        return self.word & 0xFF


@dataclass(frozen=True)
class CaptureStatus:
    """Capture state as returned by RD_STATUS."""

    word: int

    @property
    def armed(self) -> bool:
        return bool(self.word & 0x01)

    @property
    def pre_trigger(self) -> bool:
        return bool(self.word & 0x02)

    @property
    def triggered(self) -> bool:
        return bool(self.word & 0x04)

    @property
    def acquired(self) -> bool:
        return bool(self.word & 0x08)

    @property
    def init_in_progress(self) -> bool:
        return bool(self.word & 0x10)


@dataclass(frozen=True)
class CaptureFlags:
    """Capture-status register read directly over the bus."""

    word: int

    @property
    def armed(self) -> bool:
        return bool(self.word & 0x01)

    @property
    def awake(self) -> bool:
        return bool(self.word & 0x02)

    @property
    def triggered(self) -> bool:
        return bool(self.word & 0x04)

    @property
    def acquired(self) -> bool:
        return bool(self.word & 0x08)


@dataclass(frozen=True)
class PodHwConfig:
    word: int

    @property
    def hw_rev(self) -> int:
        return (self.word >> 24) & 0xFF

    @property
    def enabled(self) -> bool:
        return bool(self.word & 0x01)

    @property
    def view_rom(self) -> bool:
        return bool(self.word & 0x02)


@dataclass(frozen=True)
class RamConfig:
    word: int

    @property
    def depth_bits(self) -> int:
        return self.word & 0xFF

    @property
    def data_bits(self) -> int:
        return (self.word >> 8) & 0xFFFF

    @property
    def ts_bits(self) -> int:
        return (self.word >> 24) & 0xFF

    @property
    def depth(self) -> int:
        return 1 << self.depth_bits

    @property
    def bits_per_sample(self) -> int:
        # 2-bit code + timestamp + payload
        return 2 + self.ts_bits + self.data_bits

    @property
    def dwords_per_sample(self) -> int:
        return (self.bits_per_sample + 31) // 32


@dataclass(frozen=True)
class HubFreq:
    word: int

    @property
    def mhz(self) -> int:
        return (self.word >> 20) & 0xFFF

    @property
    def fraction(self) -> int:
        return self.word & 0xFFFFF

    @property
    def frequency_mhz(self) -> float:
        return self.mhz + self.fraction / float(1 << 20)

    def __str__(self) -> str:
        return f"{self.frequency_mhz:.6f} MHz"


@dataclass
class PodInfo:
    hub: int
    pod: int
    name: str
    instance: Optional[int]
    hw_cfg: Optional[int]
    ram_cfg: Optional[int]
    triggerable: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"hub": self.hub, "pod": self.pod, "name": self.name, "instance": self.instance}
        out["hw_cfg"] = hex32(self.hw_cfg)
        out["triggerable"] = hex32(self.triggerable)
        if self.ram_cfg is not None:
            ram = RamConfig(self.ram_cfg)
            out["ram"] = {"depth": ram.depth, "data_bits": ram.data_bits, "ts_bits": ram.ts_bits}
        return out


@dataclass
class HubInfo:
    hub: int
    name: str
    instance: Optional[int]
    hw_cfg: Optional[int]
    freq: Optional[int]
    pod_count: Optional[int]
    pods: List[PodInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hub": self.hub,
            "name": self.name,
            "instance": self.instance,
            "hw_cfg": hex32(self.hw_cfg),
            "freq_mhz": None if self.freq is None else round(HubFreq(self.freq).frequency_mhz, 6),
            "pod_count": self.pod_count,
            "pods": [pod.to_dict() for pod in self.pods],
        }


@dataclass
class Inventory:
    hw_id: Optional[int]
    hub_count: Optional[int]
    hubs: List[HubInfo] = field(default_factory=list)

    def pods(self) -> List[PodInfo]:
        return [pod for hub in self.hubs for pod in hub.pods]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hw_id": hex32(self.hw_id),
            "hub_count": self.hub_count,
            "hubs": [hub.to_dict() for hub in self.hubs],
        }


class Ila:
    def __init__(self, driver: CommandDriver):
        self.driver = driver
        self.ctx = driver.ctx

    # Command plumbing -------------------------------------------------

    def _fetch(self, result: CommandResult) -> Optional[int]:
        if not result.ok:
            return None
        return self.driver.result()

    def read_local(self, opcode: Opcode) -> Optional[int]:
        return self._fetch(self.driver.exec_cmd(opcode))

    def write_local(self, opcode: Opcode, data: int) -> bool:
        return self.driver.exec_local_write(opcode, data).ok

    def state(self, opcode: Opcode) -> CommandResult:
        return self.driver.exec_cmd(opcode)

    def read_pod_reg(self, hub: int, pod: int, reg: int) -> Optional[int]:
        addr = PackedAddress(hub, pod, int(reg))
        return self._fetch(self.driver.exec_read_cmd(Opcode.RD_POD_REG, addr))

    def write_pod_reg(self, hub: int, pod: int, reg: int, value: int, settle: int = 0) -> bool:
        addr = PackedAddress(hub, pod, int(reg))
        ok = self.driver.exec_write_cmd(Opcode.WR_POD_REG, addr, value).ok
        if settle:
            self.ctx.tick(settle)
        return ok

    def read_hub(self, opcode: Opcode, hub: int) -> Optional[int]:
        return self._fetch(self.driver.exec_read_cmd(opcode, PackedAddress(hub)))

    # Direct registers --------------------------------------------------

    def hw_info(self) -> HwInfo:
        return HwInfo(self.driver.bus.read(REG_HW_INFO))

    def capture_flags(self) -> CaptureFlags:
        return CaptureFlags(self.driver.bus.read(REG_CAP_STATUS))

    # State commands ----------------------------------------------------

    def arm(self) -> CommandResult:
        return self.state(Opcode.ARM)

    def reset(self) -> CommandResult:
        return self.state(Opcode.RESET)

    def init(self) -> CommandResult:
        return self.state(Opcode.INIT)

    def idle(self) -> CommandResult:
        return self.state(Opcode.IDLE)

    def sleep(self) -> CommandResult:
        return self.state(Opcode.SLEEP)

    # Local namespace ---------------------------------------------------

    def hw_id(self) -> Optional[HwId]:
        word = self.read_local(Opcode.RD_HW_ID)
        return None if word is None else HwId(word)

    def hub_count(self) -> Optional[int]:
        return self.read_local(Opcode.RD_HUB_COUNT)

    def capture_status(self) -> Optional[CaptureStatus]:
        word = self.read_local(Opcode.RD_STATUS)
        return None if word is None else CaptureStatus(word)

    def tick_freq(self) -> Optional[HubFreq]:
        word = self.read_local(Opcode.RD_TICK_FREQ)
        return None if word is None else HubFreq(word)

    def dig_ck_freq(self) -> Optional[HubFreq]:
        word = self.read_local(Opcode.RD_DIG_CK_FREQ)
        return None if word is None else HubFreq(word)

    def ana_ram_config(self) -> Optional[int]:
        return self.read_local(Opcode.RD_ANA_RAM_CFG)

    def dig_ram_config(self) -> Optional[int]:
        return self.read_local(Opcode.RD_DIG_RAM_CFG)

    def dig_first_ptr(self) -> Optional[int]:
        return self.read_local(Opcode.RD_DIG_FIRST_PTR)

    def trigger_source(self) -> Optional[int]:
        return self.read_local(Opcode.RD_TRIG_SRC)

    def view_rom_kb(self) -> Optional[int]:
        return self.read_local(Opcode.RD_VIEW_ROM_KB)

    def set_trigger(self, trig_type: int, dig_field: int) -> bool:
        ok = self.write_local(Opcode.WR_TRIG_TYPE, int(trig_type))
        return self.write_local(Opcode.WR_TRIG_DIG_FIELD, dig_field) and ok

    def set_post_trigger(self, samples: int) -> bool:
        return self.write_local(Opcode.WR_DIG_POST_TRIG, samples)

    def set_user_ctrl(self, value: int) -> bool:
        return self.write_local(Opcode.WR_USER_CTRL, value)

    # Serial namespace: pods --------------------------------------------

    def pod_hw_config(self, hub: int, pod: int) -> Optional[PodHwConfig]:
        word = self.read_pod_reg(hub, pod, PodReg.HW_CFG)
        return None if word is None else PodHwConfig(word)

    def pod_ram_config(self, hub: int, pod: int) -> Optional[RamConfig]:
        word = self.read_pod_reg(hub, pod, PodReg.RAM_CFG)
        return None if word is None else RamConfig(word)

    def pod_name(self, hub: int, pod: int) -> str:
        return words_to_name(self.read_pod_reg(hub, pod, reg) for reg in POD_NAME_REGS)

    def pod_instance(self, hub: int, pod: int) -> Optional[int]:
        return self.read_pod_reg(hub, pod, PodReg.INSTANCE)

    def pod_triggerable(self, hub: int, pod: int) -> Optional[int]:
        return self.read_pod_reg(hub, pod, PodReg.TRIGGERABLE)

    def set_pod_trigger(self, hub: int, pod: int, trig_cfg: int, enable: int, settle: int = 0) -> bool:
        ok = self.write_pod_reg(hub, pod, PodReg.TRIG_CFG, trig_cfg, settle)
        return self.write_pod_reg(hub, pod, PodReg.TRIG_EN, enable, settle) and ok

    def set_ram_pointer(self, hub: int, pod: int, page: int, addr: int, settle: int = 0) -> bool:
        word = (page << RAM_PAGE_SHIFT) | (addr & ((1 << RAM_PAGE_SHIFT) - 1))
        return self.write_pod_reg(hub, pod, PodReg.RAM_PTR, word, settle)

    def ram_data(self, hub: int, pod: int) -> Optional[int]:
        return self.read_pod_reg(hub, pod, PodReg.RAM_DATA)

    # Serial namespace: hubs --------------------------------------------

    def hub_name(self, hub: int) -> str:
        return words_to_name(self.read_hub(opcode, hub) for opcode in HUB_NAME_OPCODES)

    def hub_instance(self, hub: int) -> Optional[int]:
        return self.read_hub(Opcode.RD_HUB_INSTANCE, hub)

    def hub_hw_config(self, hub: int) -> Optional[int]:
        return self.read_hub(Opcode.RD_HUB_HW_CFG, hub)

    def hub_freq(self, hub: int) -> Optional[HubFreq]:
        word = self.read_hub(Opcode.RD_HUB_FREQ, hub)
        return None if word is None else HubFreq(word)

    def pod_count(self, hub: int) -> Optional[int]:
        return self.read_hub(Opcode.RD_POD_COUNT, hub)

    def set_trigger_width(self, hub: int, width: int) -> bool:
        return self.driver.exec_write_cmd(Opcode.WR_TRIG_WIDTH, PackedAddress(hub), width).ok

    # Enumeration -------------------------------------------------------

    def pod_info(self, hub: int, pod: int) -> PodInfo:
        return PodInfo(
            hub=hub,
            pod=pod,
            name=self.pod_name(hub, pod),
            instance=self.pod_instance(hub, pod),
            hw_cfg=self.read_pod_reg(hub, pod, PodReg.HW_CFG),
            ram_cfg=self.read_pod_reg(hub, pod, PodReg.RAM_CFG),
            triggerable=self.pod_triggerable(hub, pod),
        )

    def hub_info(self, hub: int) -> HubInfo:
        freq = self.hub_freq(hub)
        info = HubInfo(
            hub=hub,
            name=self.hub_name(hub),
            instance=self.hub_instance(hub),
            hw_cfg=self.hub_hw_config(hub),
            freq=None if freq is None else freq.word,
            pod_count=self.pod_count(hub),
        )
        pods = plausible_count(info.pod_count)
        if pods != info.pod_count:
            log.info("hub %d pod count %s is not trustworthy, probing %d pod(s)", hub, info.pod_count, pods)
        info.pods = [self.pod_info(hub, pod) for pod in range(pods)]
        return info

    def enumerate(self) -> Inventory:
        hw_id = self.hw_id()
        hub_count = self.hub_count()
        hubs = plausible_count(hub_count)
        if hubs != hub_count:
            log.info("hub count %s is not trustworthy, probing %d hub(s)", hub_count, hubs)
        inventory = Inventory(hw_id=None if hw_id is None else hw_id.word, hub_count=hub_count)
        inventory.hubs = [self.hub_info(hub) for hub in range(hubs)]
        return inventory
