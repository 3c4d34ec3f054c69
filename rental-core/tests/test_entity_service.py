from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError

from factories import make_car, seed_tree
from rental_core.core.domain_exceptions import (
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from rental_core.db.models import Car
from rental_core.services import entity_service
from rental_core.services.entity_service import Actor, build_criteria, ensure_can_mutate
from rental_core.services.registry import get_spec


def test_build_criteria_rejects_unknown_fields_and_operators():
    with pytest.raises(ValidationError):
        build_criteria(Car, {"colour": "red"})
    with pytest.raises(ValidationError):
        build_criteria(Car, {"price_by_day__between": (1, 2)})
    assert len(build_criteria(Car, {"brand__icontains": "toy", "year__gte": 2000})) == 2


def test_unknown_entity_type():
    with pytest.raises(ValidationError):
        get_spec("spaceship")


def test_ensure_can_mutate():
    owned = SimpleNamespace(user_id=7)
    ensure_can_mutate(owned, Actor(user_id=7))
    ensure_can_mutate(owned, Actor(user_id=1, is_admin=True))
    ensure_can_mutate(SimpleNamespace(), Actor(user_id=1))
    with pytest.raises(PermissionDeniedError):
        ensure_can_mutate(owned, Actor(user_id=8))


def test_create_rejects_bad_shapes(run_with_store):
    async def scenario(store):
        with pytest.raises(ValidationError):
            await entity_service.create_entity(store, "state", {"name": "X"})
        with pytest.raises(ValidationError):
            await entity_service.create_entity(store, "state", {"name": "Texas", "capital": "Austin"})
        with pytest.raises(ValidationError):
            await entity_service.create_entity(store, "spaceship", {"name": "Apollo"})

    run_with_store(scenario)


def test_car_defaults_and_range_checks(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        assert tree.car.image_url == "/images/default-car.jpg"
        assert tree.car.features == []
        assert tree.car.available is True

        with pytest.raises(ValidationError):
            await make_car(store, tree.location.id, registration_number="LOW0001", price_by_day=0)
        with pytest.raises(ValidationError):
            await make_car(store, tree.location.id, registration_number="OLD0001", year=1850)
        with pytest.raises(ValidationError):
            await make_car(store, tree.location.id, registration_number="IMG0001", image_url="ftp://x")

    run_with_store(scenario)


def test_update_rejects_null_for_required_field(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        with pytest.raises(ValidationError):
            await entity_service.update_entity(store, "car", tree.car.id, {"brand": None})

    run_with_store(scenario)


def test_update_with_no_changes_is_a_no_op(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        same = await entity_service.update_entity(
            store, "location", tree.location.id, {"phone_number": "+1 408 555 0100"}
        )
        assert same.phone_number == "+14085550100"

    run_with_store(scenario)


def test_update_missing_record(run_with_store):
    async def scenario(store):
        with pytest.raises(NotFoundError):
            await entity_service.update_entity(store, "state", 12, {"name": "Ohio"})

    run_with_store(scenario)


def test_find_with_filters_and_ordering(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        await make_car(store, tree.location.id, registration_number="BMW0001", brand="BMW", price_by_day=250)
        await make_car(store, tree.location.id, registration_number="KIA0001", brand="Kia", price_by_day=40)

        cheap = await entity_service.find(
            store, "car", {"price_by_day__lte": 100}, order_by=(Car.price_by_day.asc(),)
        )
        assert [car.brand for car in cheap] == ["Kia", "Toyota"]

        assert [car.brand for car in await entity_service.find(store, "car", {"brand__icontains": "bm"})] == ["BMW"]
        assert await entity_service.count(store, "car", {"brand__in": ["Kia", "BMW"]}) == 2
        assert await entity_service.count(store, "car", {"brand__ne": "Kia"}) == 2

        page = await entity_service.find(store, "car", order_by=(Car.price_by_day.desc(),), limit=1, offset=1)
        assert [car.brand for car in page] == ["Toyota"]

    run_with_store(scenario)


def test_unrecognised_integrity_error_propagates_unchanged(run_with_store):
    async def scenario(store):
        failure = IntegrityError("INSERT INTO states", {}, Exception("CHECK constraint failed: states"))

        async def failing_insert(entity, timeout=None):
            raise failure

        store.insert = failing_insert
        with pytest.raises(IntegrityError) as excinfo:
            await entity_service.create_entity(store, "state", {"name": "Kansas"})
        assert excinfo.value is failure
        assert excinfo.value.__cause__ is not failure

    run_with_store(scenario)


def test_unique_violation_from_store_becomes_duplicate(run_with_store):
    async def scenario(store):
        async def racing_insert(entity, timeout=None):
            raise IntegrityError(
                "INSERT INTO states", {}, Exception("UNIQUE constraint failed: states.name")
            )

        store.insert = racing_insert
        with pytest.raises(DuplicateError) as excinfo:
            await entity_service.create_entity(store, "state", {"name": "Kansas"})
        assert excinfo.value.scope == "state.name"

    run_with_store(scenario)
