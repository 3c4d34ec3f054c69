import asyncio

import pytest

from factories import seed_tree
from rental_core.db.models import State


def test_timed_out_call_rolls_back_and_propagates(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        original_scalar = store.session.scalar
        original_rollback = store.session.rollback
        rollbacks = []

        async def stalled_scalar(*args, **kwargs):
            await asyncio.sleep(5)
            return await original_scalar(*args, **kwargs)

        async def recording_rollback():
            rollbacks.append(True)
            await original_rollback()

        store.session.scalar = stalled_scalar
        store.session.rollback = recording_rollback
        with pytest.raises(asyncio.TimeoutError):
            await store.get(State, tree.state.id, timeout=0.05)
        assert rollbacks == [True]

        store.session.scalar = original_scalar
        assert (await store.get(State, tree.state.id)).name == "California"

    run_with_store(scenario)


def test_default_timeout_applies_when_none_given(run_with_store):
    async def scenario(store):
        await seed_tree(store)
        original_scalar = store.session.scalar

        async def stalled_scalar(*args, **kwargs):
            await asyncio.sleep(5)
            return await original_scalar(*args, **kwargs)

        store.timeout = 0.05
        store.session.scalar = stalled_scalar
        with pytest.raises(asyncio.TimeoutError):
            await store.count(State)

    run_with_store(scenario)


def test_write_helpers_report_row_counts(run_with_store):
    async def scenario(store):
        tree = await seed_tree(store)
        assert await store.update_where(State, {"name": "Nevada"}, State.id == tree.state.id) == 1
        assert await store.update_where(State, {"name": "Utah"}, State.id == -1) == 0
        assert await store.delete_where(State, State.name == "Nowhere") == 0

    run_with_store(scenario)
