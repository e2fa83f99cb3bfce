"""Simulation context shared by every harness layer."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Tuple

from .clock import ClockGenerator
from .config import HarnessConfig


class HardwareModel(Protocol):
    def set(self, name: str, value: int) -> None: ...

    def get(self, name: str) -> int: ...

    def advance(self) -> None: ...


class SimContext:
    """Owns the hardware model handle, the clock and the cycle bounds.

    Exactly one context drives a model; nothing else steps it.
    """

    def __init__(self, model: HardwareModel, config: Optional[HarnessConfig] = None):
        self.model = model
        self.config = config or HarnessConfig()
        self.clock = ClockGenerator(model, self.config.domains)

    def set(self, name: str, value: int) -> None:
        self.model.set(name, value)

    def get(self, name: str) -> int:
        return self.model.get(name)

    def tick(self, n: int = 1) -> None:
        self.clock.bus_cycles(n)

    @property
    def cycles(self) -> int:
        return self.clock.cycles

    def advance_until(self, predicate: Callable[[], bool], budget: int) -> Tuple[bool, int]:
        """Advance bus cycles until ``predicate`` holds or ``budget`` runs out.

        The predicate is checked before each cycle and once more after the
        last one. Returns ``(satisfied, cycles_advanced)``; on failure exactly
        ``budget`` cycles have elapsed.
        """
        for n in range(budget):
            if predicate():
                return True, n
            self.clock.bus_cycle()
        return bool(predicate()), budget
