import json

import pytest

from sumpbfm.clock import ClockDomains
from sumpbfm.config import ConfigError, HarnessConfig, config_from_dict, load_config


def test_defaults():
    config = HarnessConfig()
    assert config.handshake_timeout == 100
    assert config.command_budget == 10000
    assert config.domains == ClockDomains()


def test_override_ignores_none():
    config = HarnessConfig().override(command_budget=50, serial_settle=None)
    assert config.command_budget == 50
    assert config.serial_settle == 200


def test_negative_value_rejected():
    with pytest.raises(ConfigError):
        HarnessConfig(handshake_timeout=-1)


def test_load_config(tmp_path):
    path = tmp_path / "harness.json"
    path.write_text(json.dumps({"command_budget": 500, "domains": {"bus": "aclk"}}))
    config = load_config(str(path))
    assert config.command_budget == 500
    assert config.domains.bus == "aclk"
    assert config.domains.slow == "clk_50mhz"
    assert config_from_dict(config.to_dict()) == config


def test_unknown_key_rejected():
    with pytest.raises(ConfigError, match="bogus"):
        config_from_dict({"bogus": 1})


def test_bad_files(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(ConfigError):
        load_config(str(broken))
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "missing.json"))
