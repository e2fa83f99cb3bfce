"""Packed hub/pod/register address used by the serial bus commands."""

from __future__ import annotations

from dataclasses import dataclass, replace


class AddressError(Exception):
    pass


FIELD_MAX = 0xFF


@dataclass(frozen=True)
class PackedAddress:
    hub: int
    pod: int = 0
    reg: int = 0

    def __post_init__(self) -> None:
        for name in ("hub", "pod", "reg"):
            value = getattr(self, name)
            if not 0 <= value <= FIELD_MAX:
                raise AddressError(f"{name} index {value} does not fit in 8 bits")

    def encode(self) -> int:
        return (self.hub << 16) | (self.pod << 8) | self.reg

    @classmethod
    def decode(cls, word: int) -> "PackedAddress":
        return cls(hub=(word >> 16) & 0xFF, pod=(word >> 8) & 0xFF, reg=word & 0xFF)

    @classmethod
    def parse(cls, text: str) -> "PackedAddress":
        parts = text.split(":")
        if len(parts) not in (1, 2, 3):
            raise AddressError("Address format must be <hub>[:<pod>[:<reg>]]")
        try:
            fields = [int(part.strip(), 0) for part in parts]
        except ValueError as exc:
            raise AddressError(f"Bad address field in {text!r}") from exc
        return cls(*fields)

    def with_reg(self, reg: int) -> "PackedAddress":
        return replace(self, reg=int(reg))

    def __str__(self) -> str:
        return f"{self.hub}:{self.pod}:0x{self.reg:02X}"
