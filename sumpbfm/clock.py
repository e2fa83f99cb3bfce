"""Three-domain clock generator driven from a single step counter.

The fast domain toggles on every step, the bus domain on every second step
and the slow domain on every fourth step. Ratios come from the step counter
alone, so every run produces the same edges in the same order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

STEPS_PER_CYCLE = 4

# divider per domain, in steps between toggles
_DIVIDERS: Tuple[Tuple[str, int], ...] = (("fast", 1), ("bus", 2), ("slow", 4))


@dataclass(frozen=True)
class ClockDomains:
    fast: str = "clk_200mhz"
    bus: str = "clk"
    slow: str = "clk_50mhz"

    def signal(self, domain: str) -> str:
        return getattr(self, domain)


class ClockGenerator:
    def __init__(self, model, domains: ClockDomains = ClockDomains()):
        self.model = model
        self.domains = domains
        self.steps = 0
        self.toggles: Dict[str, int] = {name: 0 for name, _ in _DIVIDERS}
        self.levels: Dict[str, int] = {name: 0 for name, _ in _DIVIDERS}
        for name, _ in _DIVIDERS:
            model.set(domains.signal(name), 0)

    def step(self) -> None:
        """Advance one primitive step and evaluate the model once."""
        self.steps += 1
        for name, divider in _DIVIDERS:
            if self.steps % divider == 0:
                self.levels[name] ^= 1
                self.toggles[name] += 1
                self.model.set(self.domains.signal(name), self.levels[name])
        self.model.advance()

    def bus_cycle(self) -> None:
        """One full bus-clock period: exactly one rising and one falling edge."""
        for _ in range(STEPS_PER_CYCLE):
            self.step()

    def bus_cycles(self, n: int) -> None:
        for _ in range(n):
            self.bus_cycle()

    @property
    def cycles(self) -> int:
        return self.steps // STEPS_PER_CYCLE
