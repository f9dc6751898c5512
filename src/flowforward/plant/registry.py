# flowforward/plant/registry.py
from __future__ import annotations

import copy
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .config import DEFAULT_USERS, PlantConfig
from .state import Plant, User, Violation
from .synthesizer import PlantSynthesizer


class PlantRegistry:
    """
    Authoritative in-memory collection of plants and users.

    Public getters hand out deep copies. The live_* accessors return the
    records themselves and are meant for the engine only, which mutates them
    under its lock.
    """

    def __init__(self, synthesizer: PlantSynthesizer, users: Iterable[User] = DEFAULT_USERS):
        self._synthesizer = synthesizer
        self._plants: Dict[str, Plant] = {}  # config order

        self._users: Dict[str, User] = {}
        for user in users:
            if user.username in self._users:
                raise ValueError(f"duplicate username: {user.username!r}")
            self._users[user.username] = user

    def initialize(self, configs: Iterable[PlantConfig]) -> None:
        plants: Dict[str, Plant] = {}
        for cfg in configs:
            if cfg.id in plants:
                raise ValueError(f"duplicate plant id: {cfg.id!r}")
            plants[cfg.id] = self._synthesizer.create_plant(cfg)
        self._plants = plants

    # ======================================================
    # Readers (copies)
    # ======================================================
    def get_all(self) -> List[Plant]:
        return copy.deepcopy(list(self._plants.values()))

    def get_by_id(self, plant_id: str) -> Optional[Plant]:
        plant = self._plants.get(plant_id)
        return copy.deepcopy(plant) if plant is not None else None

    def get_by_manager(self, manager: str) -> List[Plant]:
        return copy.deepcopy([p for p in self._plants.values() if p.assigned_manager == manager])

    def get_user_by_username(self, username: str) -> Optional[User]:
        # users are frozen, no copy needed
        return self._users.get(username)

    def get_users(self) -> Tuple[User, ...]:
        return tuple(self._users.values())

    def __len__(self) -> int:
        return len(self._plants)

    # ======================================================
    # Engine-side access (live records)
    # ======================================================
    def live_plants(self) -> Iterator[Plant]:
        return iter(self._plants.values())

    def live_plant(self, plant_id: str) -> Optional[Plant]:
        return self._plants.get(plant_id)

    def find_violation(self, violation_id: str) -> Optional[Tuple[Plant, Violation]]:
        for plant in self._plants.values():
            for v in plant.compliance.violations:
                if v.id == violation_id:
                    return plant, v
        return None
