from datetime import datetime, timedelta, timezone

import pytest

from flowforward.plant.config import EngineConfig
from flowforward.plant.engine import PlantEngine


T0 = datetime(2026, 1, 4, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    eng = PlantEngine(EngineConfig(seed=1234), clock=clock)
    yield eng
    eng.stop()


@pytest.fixture
def make_clock():
    return FakeClock
