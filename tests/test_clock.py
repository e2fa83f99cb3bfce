import pytest

from sumpbfm.clock import STEPS_PER_CYCLE, ClockDomains, ClockGenerator


@pytest.mark.parametrize("steps", [0, 1, 2, 3, 7, 8, 63, 64, 1001])
def test_domain_ratios(dict_model, steps):
    clock = ClockGenerator(dict_model)
    for _ in range(steps):
        clock.step()
    assert clock.toggles["fast"] == steps
    assert clock.toggles["bus"] == steps // 2
    assert clock.toggles["slow"] == steps // 4
    assert dict_model.advances == steps


def test_clock_lines_start_low(dict_model):
    ClockGenerator(dict_model)
    assert dict_model.values == {"clk_200mhz": 0, "clk": 0, "clk_50mhz": 0}


def test_bus_cycle_is_one_bus_period(dict_model):
    clock = ClockGenerator(dict_model)
    levels = []
    for _ in range(STEPS_PER_CYCLE):
        clock.step()
        levels.append(dict_model.get("clk"))
    assert levels == [0, 1, 1, 0]
    clock.bus_cycles(5)
    assert clock.cycles == 6
    assert clock.steps == 6 * STEPS_PER_CYCLE


def test_custom_domain_names(dict_model):
    domains = ClockDomains(fast="fclk", bus="aclk", slow="sclk")
    clock = ClockGenerator(dict_model, domains)
    clock.bus_cycle()
    assert set(dict_model.values) == {"fclk", "aclk", "sclk"}
    assert domains.signal("bus") == "aclk"
