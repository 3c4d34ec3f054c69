import pytest

from factories import future_day, make_user, seed_tree
from rental_core.core.domain_exceptions import InvalidReferenceError, NotFoundError, ValidationError
from rental_core.db.models import Car, City, Location
from rental_core.services import entity_service, reservation_service
from rental_core.services.visibility import filters_on_deletion, visibility_criteria


def test_visibility_criteria_follow_soft_deletable_parents():
    assert visibility_criteria(City) == []
    # Own marker plus the owner's.
    assert len(visibility_criteria(Location)) == 2
    assert len(visibility_criteria(Car)) == 1
    assert visibility_criteria(Car, include_deleted=True) == []
    assert visibility_criteria(Location, include_deleted=True) == []
    assert visibility_criteria(Location, filter_keys=["deleted_at__ne"]) == []


def test_filters_on_deletion():
    assert filters_on_deletion(["deleted_at"])
    assert filters_on_deletion(["city_id", "deleted_at__ne"])
    assert not filters_on_deletion(["city_id"])


def test_soft_deleted_location_is_hidden_by_default(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        deleted = await entity_service.soft_delete(store, "location", tree.location.id)
        assert deleted.deleted_at is not None

        with pytest.raises(NotFoundError):
            await entity_service.get_entity(store, "location", tree.location.id)
        assert await entity_service.find(store, "location") == []
        assert await entity_service.count(store, "location") == 0

        found = await entity_service.get_entity(store, "location", tree.location.id, include_deleted=True)
        assert found.id == tree.location.id
        assert len(await entity_service.find(store, "location", include_deleted=True)) == 1

    run_with_store(scenario)


def test_filtering_on_deleted_at_overrides_default(run_with_store):
    async def scenario(store):
        live = await make_user(store, email="live@example.com")
        gone = await make_user(store, email="gone@example.com")
        await entity_service.soft_delete(store, "user", gone.id)

        only_deleted = await entity_service.find(store, "user", {"deleted_at__ne": None})
        assert [user.id for user in only_deleted] == [gone.id]

        only_live = await entity_service.find(store, "user", {"deleted_at": None})
        assert [user.id for user in only_live] == [live.id]

    run_with_store(scenario)


def test_soft_delete_is_limited_to_users_and_locations(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        with pytest.raises(ValidationError):
            await entity_service.soft_delete(store, "state", tree.state.id)

    run_with_store(scenario)


def test_soft_deleted_record_can_still_be_hard_deleted(run_with_store):
    async def scenario(store):
        user = await make_user(store)
        await entity_service.soft_delete(store, "user", user.id)

        with pytest.raises(NotFoundError):
            await entity_service.soft_delete(store, "user", user.id)

        report = await entity_service.delete_entity(store, "user", user.id)
        assert report.deleted["user"] == 1
        assert await entity_service.find(store, "user", include_deleted=True) == []

    run_with_store(scenario)


def test_cars_under_soft_deleted_location_are_hidden(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        await entity_service.soft_delete(store, "location", tree.location.id)

        assert await entity_service.find(store, "car") == []
        with pytest.raises(NotFoundError):
            await entity_service.get_entity(store, "car", tree.car.id)

        hidden = await entity_service.find(store, "car", include_deleted=True)
        assert [car.id for car in hidden] == [tree.car.id]
        found = await entity_service.get_entity(store, "car", tree.car.id, include_deleted=True)
        assert found.id == tree.car.id

    run_with_store(scenario)


def test_car_under_soft_deleted_location_cannot_be_booked(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        await entity_service.soft_delete(store, "location", tree.location.id)

        with pytest.raises(InvalidReferenceError) as excinfo:
            await reservation_service.create_reservation(
                store, tree.car.id, tree.user.id, future_day(1), future_day(2)
            )
        assert excinfo.value.field == "car_id"
        with pytest.raises(NotFoundError):
            await reservation_service.is_car_available(store, tree.car.id, future_day(1), future_day(2))

    run_with_store(scenario)


def test_soft_deleted_owner_hides_their_subtree(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        await reservation_service.create_reservation(
            store, tree.car.id, tree.user.id, future_day(1), future_day(2)
        )
        await entity_service.soft_delete(store, "user", tree.user.id)

        for entity_type in ("location", "car", "reservation"):
            assert await entity_service.count(store, entity_type) == 0
            assert await entity_service.count(store, entity_type, include_deleted=True) == 1
        # The rest of the hierarchy has no soft-deletable ancestor.
        assert await entity_service.count(store, "city") == 1

    run_with_store(scenario)
