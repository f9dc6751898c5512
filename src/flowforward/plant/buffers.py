# flowforward/plant/buffers.py
from __future__ import annotations

import random
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, Mapping, Optional, Tuple

from .state import METRIC_NAMES, Plant, PlantSeries, SeriesPoint, clamp


# seed noise: (± spread, clamp bounds or None)
SEED_BANDS: Dict[str, Tuple[float, Optional[Tuple[float, float]]]] = {
    "flow_rate": (5.0, None),
    "turbidity": (1.0, (0.0, 15.0)),
    "ph": (0.2, (6.0, 9.0)),
    "tds_ec": (20.0, (100.0, 1000.0)),
}


class SeriesBufferManager:
    """
    One rolling window per plant per charted metric.
    Oldest-first, FIFO eviction at `capacity`.
    """

    def __init__(self, rng: random.Random, capacity: int = 50):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._rng = rng
        self.capacity = capacity
        self._series: Dict[str, Dict[str, Deque[SeriesPoint]]] = {}

    def initialize_for(self, plant: Plant, now: datetime) -> None:
        # capacity points, 1 s apart, last one at `now`
        buf: Dict[str, Deque[SeriesPoint]] = {m: deque(maxlen=self.capacity) for m in METRIC_NAMES}

        for i in range(self.capacity - 1, -1, -1):
            ts = now - timedelta(seconds=i)
            for metric in METRIC_NAMES:
                spread, bounds = SEED_BANDS[metric]
                value = float(getattr(plant.metrics, metric)) + self._rng.uniform(-spread, spread)
                if bounds is not None:
                    value = clamp(value, *bounds)
                buf[metric].append(SeriesPoint(ts, value))

        self._series[plant.id] = buf

    def append(self, plant_id: str, timestamp: datetime, values: Mapping[str, float]) -> bool:
        buf = self._series.get(plant_id)
        if buf is None:
            return False

        missing = [m for m in METRIC_NAMES if m not in values]
        if missing:
            raise ValueError(f"missing series values for {plant_id}: {missing}")

        # build every point first so a bad value leaves all series untouched
        points = {m: SeriesPoint(timestamp, float(values[m])) for m in METRIC_NAMES}
        for metric, point in points.items():
            buf[metric].append(point)  # deque(maxlen) drops the oldest
        return True

    def get_series(self, plant_id: str) -> Optional[PlantSeries]:
        buf = self._series.get(plant_id)
        if buf is None:
            return None
        return PlantSeries(**{m: tuple(buf[m]) for m in METRIC_NAMES})

    def __contains__(self, plant_id: object) -> bool:
        return plant_id in self._series
