import pytest

from sumpbfm.scenario import build_harness, power_on_reset


class DictModel:
    """Signal store with no behavior; nothing ever answers a handshake."""

    def __init__(self):
        self.values = {}
        self.advances = 0

    def set(self, name, value):
        self.values[name] = value

    def get(self, name):
        return self.values.get(name, 0)

    def advance(self):
        self.advances += 1


@pytest.fixture
def dict_model():
    return DictModel()


@pytest.fixture
def harness():
    h = build_harness()
    power_on_reset(h)
    return h
