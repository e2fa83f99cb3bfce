"""Harness configuration: cycle bounds and clock signal names."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict

from .clock import ClockDomains


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class HarnessConfig:
    # bus handshake retry bound, in bus cycles
    handshake_timeout: int = 100
    # cycles to wait for the command interrupt
    command_budget: int = 10000
    # wait after a serial pod write before relying on it
    serial_settle: int = 200
    # wait after selecting a RAM page before reading RAM data
    sample_settle: int = 50
    reset_cycles: int = 20
    reset_recovery: int = 50
    capture_poll: int = 100
    domains: ClockDomains = field(default_factory=ClockDomains)

    def __post_init__(self) -> None:
        for item in fields(self):
            if item.name == "domains":
                continue
            value = getattr(self, item.name)
            if not isinstance(value, int) or value < 0:
                raise ConfigError(f"{item.name} must be a non-negative integer, got {value!r}")

    def override(self, **changes: Any) -> "HarnessConfig":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if item.name == "domains":
                value = {"fast": value.fast, "bus": value.bus, "slow": value.slow}
            out[item.name] = value
        return out


def config_from_dict(data: Dict[str, Any]) -> HarnessConfig:
    known = {item.name for item in fields(HarnessConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
    values = dict(data)
    if "domains" in values:
        domains = values["domains"]
        if not isinstance(domains, dict):
            raise ConfigError("domains must be an object mapping fast/bus/slow to signal names")
        try:
            values["domains"] = ClockDomains(**domains)
        except TypeError as exc:
            raise ConfigError(f"Bad domains entry: {exc}") from exc
    return HarnessConfig(**values)


def load_config(path: str) -> HarnessConfig:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise ConfigError(f"Failed to read config: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Config must be a JSON object")
    return config_from_dict(data)
