import random

import pytest

from flowforward.plant.config import DEFAULT_PLANTS, DEFAULT_USERS, PlantConfig
from flowforward.plant.registry import PlantRegistry
from flowforward.plant.state import GovernmentUser, Permission, PlantManagerUser
from flowforward.plant.synthesizer import PlantSynthesizer


@pytest.fixture
def registry(clock):
    reg = PlantRegistry(PlantSynthesizer(random.Random(3), clock))
    reg.initialize(DEFAULT_PLANTS)
    return reg


def test_default_fleet(registry):
    plants = registry.get_all()
    assert [p.id for p in plants] == ["plant-a", "plant-b", "plant-c", "plant-d", "plant-e"]
    assert len(registry) == 5


def test_ids_unique_and_qr_contains_id(registry):
    plants = registry.get_all()
    assert len({p.id for p in plants}) == len(plants)
    for p in plants:
        assert p.id in p.qr_code


def test_readers_return_copies(registry):
    p = registry.get_by_id("plant-a")
    p.metrics.flow_rate = -1.0
    p.compliance.violations.clear()
    p.status = "Fault"

    again = registry.get_by_id("plant-a")
    assert again.metrics.flow_rate >= 50.0
    assert again == registry.live_plant("plant-a")


def test_get_by_id_unknown(registry):
    assert registry.get_by_id("nope") is None


def test_get_by_manager(registry):
    plants = registry.get_by_manager("manager.c")
    assert [p.id for p in plants] == ["plant-c"]
    assert registry.get_by_manager("nobody") == []


def test_find_violation(registry):
    for plant in registry.get_all():
        for v in plant.compliance.violations:
            owner, found = registry.find_violation(v.id)
            assert owner.id == plant.id
            assert found == v
    assert registry.find_violation("missing") is None


def test_user_invariants(registry):
    users = registry.get_users()
    assert len(users) == len(DEFAULT_USERS)
    for u in users:
        if isinstance(u, PlantManagerUser):
            assert u.role == "plant_manager"
            assert u.assigned_plants
        else:
            assert isinstance(u, GovernmentUser)
            assert u.role == "government"
            assert u.permissions
            assert not hasattr(u, "assigned_plants")


def test_get_user_by_username(registry):
    u = registry.get_user_by_username("manager.b")
    assert u.name == "Amit Singh"
    assert u.assigned_plants == ("plant-b",)
    assert registry.get_user_by_username("ghost") is None


def test_duplicate_plant_id_rejected(clock):
    reg = PlantRegistry(PlantSynthesizer(random.Random(0), clock))
    with pytest.raises(ValueError):
        reg.initialize([PlantConfig("p", "A", "x"), PlantConfig("p", "B", "y")])


def test_duplicate_username_rejected(clock):
    with pytest.raises(ValueError):
        PlantRegistry(PlantSynthesizer(random.Random(0), clock), users=DEFAULT_USERS + DEFAULT_USERS[:1])


def test_manager_without_plants_rejected():
    with pytest.raises(ValueError):
        PlantManagerUser(
            id="m",
            username="m",
            name="M",
            permissions=(Permission("plants", ("read",)),),
            assigned_plants=(),
        )
