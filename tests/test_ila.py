import pytest

from sumpbfm.ila import HubFreq, RamConfig, plausible_count
from sumpbfm.model import SumpModel
from sumpbfm.regs import PodReg
from sumpbfm.scenario import build_harness, enumerate_hardware, power_on_reset


@pytest.mark.parametrize(
    "raw, probe",
    [(None, 1), (0, 1), (-3, 1), (1, 1), (2, 2), (255, 255), (256, 1), (0xFFFFFFFF, 1)],
)
def test_plausible_count(raw, probe):
    assert plausible_count(raw) == probe


def test_hub_freq_decode():
    freq = HubFreq((50 << 20) | (1 << 19))
    assert freq.mhz == 50
    assert freq.fraction == 1 << 19
    assert freq.frequency_mhz == pytest.approx(50.5)
    assert str(HubFreq(200 << 20)) == "200.000000 MHz"


def test_ram_config_decode():
    ram = RamConfig((14 << 24) | (32 << 8) | 9)
    assert ram.depth == 512
    assert ram.data_bits == 32
    assert ram.ts_bits == 14
    assert ram.bits_per_sample == 48
    assert ram.dwords_per_sample == 2


def test_identity(harness):
    hw_id = harness.ila.hw_id()
    assert hw_id.sump_id == 0x53
    assert hw_id.hub_count == 2
    assert hw_id.digital_hs
    assert not hw_id.analog_ls
    assert harness.ila.hub_count() == 2
    assert harness.ila.hw_info().ident == 0x5303


def test_local_frequencies(harness):
    assert harness.ila.tick_freq().mhz == 100
    assert harness.ila.dig_ck_freq().mhz == 50


def test_hub_registers(harness):
    assert harness.ila.hub_freq(0).mhz == 50
    assert harness.ila.hub_freq(1).mhz == 200
    assert harness.ila.hub_instance(1) == 1
    assert harness.ila.pod_count(0) == 1
    assert harness.ila.set_trigger_width(0, 4)


def test_pod_registers(harness):
    assert harness.ila.pod_hw_config(0, 0).enabled
    ram = harness.ila.pod_ram_config(0, 0)
    assert (ram.depth, ram.data_bits, ram.ts_bits) == (512, 32, 14)
    assert harness.ila.pod_triggerable(0, 0) == 0xFFFFFFFF
    assert harness.ila.pod_instance(1, 0) == 0


@pytest.mark.parametrize("reg, value", [(PodReg.USER_CTRL, 0xA5A55A5A), (PodReg.COMP_VALUE, 0x00000001)])
def test_pod_write_read_back(harness, reg, value):
    assert harness.ila.write_pod_reg(0, 0, reg, value, settle=harness.config.serial_settle)
    assert harness.ila.read_pod_reg(0, 0, reg) == value


def test_read_only_pod_register(harness):
    harness.ila.write_pod_reg(0, 0, PodReg.HW_CFG, 0)
    assert harness.ila.read_pod_reg(0, 0, PodReg.HW_CFG) == 0x01000001


def test_missing_hub_read_fails(harness):
    assert harness.ila.hub_freq(5) is None
    assert harness.ila.read_pod_reg(0, 3, PodReg.HW_CFG) is None


def test_arm_sets_capture_flags(harness):
    assert not harness.ila.capture_flags().armed
    assert harness.ila.arm()
    assert harness.ila.capture_flags().armed
    assert harness.ila.capture_status().armed
    assert harness.ila.idle()
    assert not harness.ila.capture_flags().armed


def test_enumerate_two_hubs(harness):
    inventory = enumerate_hardware(harness)
    assert inventory.hub_count == 2
    assert [hub.name for hub in inventory.hubs] == ["dut_hub_slow", "ctr_hub_fast"]
    assert [pod.name for pod in inventory.pods()] == ["dut_fsm_pod0", "ctr_cnt_pod0"]
    for name in [hub.name for hub in inventory.hubs] + [pod.name for pod in inventory.pods()]:
        assert len(name) == 12
    data = inventory.to_dict()
    assert data["hw_id"] == "0x53030201"
    assert data["hubs"][1]["freq_mhz"] == 200.0
    assert data["hubs"][0]["pods"][0]["ram"]["depth"] == 512


@pytest.mark.parametrize("glitch", [0, 0x1000])
def test_enumerate_glitched_pod_count(glitch):
    h = build_harness(SumpModel(pod_count_glitch=glitch))
    power_on_reset(h)
    inventory = enumerate_hardware(h)
    for hub in inventory.hubs:
        assert hub.pod_count == glitch
        assert len(hub.pods) == 1
    assert inventory.pods()[0].name == "dut_fsm_pod0"


def test_local_namespace(harness):
    assert harness.ila.view_rom_kb() == 0
    assert harness.ila.ana_ram_config() == 0
    assert harness.ila.trigger_source() == 0
    assert harness.ila.dig_first_ptr() == 0
    assert harness.ila.dig_ram_config() == 0x0E002009
    assert harness.ila.set_user_ctrl(0x3)


def test_ram_data_by_page(harness):
    harness.ctx.model.hubs[1].pods[0].ram[7] = (0xDEADBEEF, (2 << 14) | 100)
    assert harness.ila.set_ram_pointer(1, 0, 0, 7)
    assert harness.ila.ram_data(1, 0) == 0xDEADBEEF
    assert harness.ila.set_ram_pointer(1, 0, 1, 7)
    assert harness.ila.ram_data(1, 0) == (2 << 14) | 100
