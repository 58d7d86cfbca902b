"""
Tests for the in-memory document store
"""
import asyncio

import pytest

from classroom_arena.core.store import (
    ArrayRemove,
    ArrayUnion,
    Increment,
    InMemoryDocumentStore,
)
from classroom_arena.errors import NotFoundError, PreconditionFailed, StoreUnavailableError


def test_array_union_skips_duplicates():
    assert ArrayUnion(2, 3).apply([1, 2]) == [1, 2, 3]


def test_array_union_on_missing_field():
    assert ArrayUnion(4).apply(None) == [4]


def test_array_remove_all_occurrences():
    assert ArrayRemove(2).apply([2, 1, 2, 3]) == [1, 3]


def test_increment_treats_garbage_as_zero():
    assert Increment(5).apply(None) == 5
    assert Increment(5).apply("ten") == 5
    assert Increment(5).apply(True) == 5
    assert Increment(5).apply(10) == 15


def test_merge_write_keeps_other_fields():
    store = InMemoryDocumentStore()

    async def scenario():
        await store.write("system/config", {"status": "idle", "remainingSeconds": 0})
        snap = await store.write("system/config", {"status": "active"})
        return snap.data

    assert asyncio.run(scenario()) == {"status": "active", "remainingSeconds": 0}


def test_overwrite_drops_other_fields():
    store = InMemoryDocumentStore()

    async def scenario():
        await store.write("system/config", {"status": "idle", "remainingSeconds": 0})
        snap = await store.write("system/config", {"status": "active"}, merge=False)
        return snap.data

    assert asyncio.run(scenario()) == {"status": "active"}


def test_update_missing_document():
    store = InMemoryDocumentStore()
    with pytest.raises(NotFoundError):
        asyncio.run(store.update("a/missing", {"x": 1}))


def test_update_precondition_failure_leaves_document():
    store = InMemoryDocumentStore()

    async def scenario():
        await store.write("a/doc", {"score": 10})
        with pytest.raises(PreconditionFailed):
            await store.update("a/doc", {"score": Increment(5)}, precondition=lambda d: d["score"] > 10)
        return (await store.read_once("a/doc")).data

    assert asyncio.run(scenario()) == {"score": 10}


def test_concurrent_increments_are_not_lost():
    store = InMemoryDocumentStore()

    async def scenario():
        await store.write("a/doc", {"score": 0})
        await asyncio.gather(*(store.update("a/doc", {"score": Increment(20)}) for _ in range(10)))
        return (await store.read_once("a/doc")).data["score"]

    assert asyncio.run(scenario()) == 200


def test_snapshots_are_copies():
    store = InMemoryDocumentStore()

    async def scenario():
        await store.write("a/doc", {"ids": [1]})
        snap = await store.read_once("a/doc")
        snap.data["ids"].append(2)
        return (await store.read_once("a/doc")).data

    assert asyncio.run(scenario()) == {"ids": [1]}


def test_query_orders_and_limits_with_missing_last():
    store = InMemoryDocumentStore()

    async def scenario():
        await store.write("c/a", {"score": 10})
        await store.write("c/b", {"score": 40})
        await store.write("c/c", {})
        await store.write("c/d", {"score": 20})
        await store.write("other/x", {"score": 99})
        full = await store.query("c", order_by="score", descending=True)
        top = await store.query("c", order_by="score", descending=True, limit=2)
        return [d.id for d in full], [d.id for d in top]

    full, top = asyncio.run(scenario())
    assert full == ["b", "d", "a", "c"]
    assert top == ["b", "d"]


def test_document_subscription_gets_current_then_changes():
    store = InMemoryDocumentStore()

    async def scenario():
        await store.write("system/config", {"status": "idle"})
        seen = []
        async with store.subscribe("system/config") as sub:
            await store.write("system/config", {"status": "active"})
            async for snap in sub:
                seen.append(snap.data["status"])
                if len(seen) == 2:
                    break
        return seen, store.listener_count

    seen, listeners = asyncio.run(scenario())
    assert seen == ["idle", "active"]
    assert listeners == 0


def test_collection_subscription_sees_create_and_delete():
    store = InMemoryDocumentStore()

    async def scenario():
        sizes = []
        async with store.subscribe_query("sessions/s/teams") as sub:
            await store.write("sessions/s/teams/t1", {"name": "A"})
            await store.delete("sessions/s/teams/t1")
            async for result in sub:
                sizes.append(len(result))
                if len(sizes) == 3:
                    break
        return sizes

    assert asyncio.run(scenario()) == [0, 1, 0]


def test_closed_subscription_stops_iteration():
    store = InMemoryDocumentStore()

    async def scenario():
        sub = store.subscribe("a/doc")
        first = await sub.__anext__()
        sub.close()
        await store.write("a/doc", {"x": 1})
        return first.exists, [snap async for snap in sub]

    exists, rest = asyncio.run(scenario())
    assert exists is False
    assert rest == []


def test_subscribe_rejects_collection_path():
    store = InMemoryDocumentStore()
    with pytest.raises(ValueError):
        store.subscribe("sessions")


class FlakyStore(InMemoryDocumentStore):
    async def _read(self, path):
        raise ConnectionError("network down")


class SlowStore(InMemoryDocumentStore):
    async def _read(self, path):
        await asyncio.sleep(1)
        return await super()._read(path)


def test_backend_failure_surfaces_as_unavailable():
    with pytest.raises(StoreUnavailableError):
        asyncio.run(FlakyStore().read_once("system/config"))


def test_backend_timeout_surfaces_as_unavailable():
    with pytest.raises(StoreUnavailableError):
        asyncio.run(SlowStore(timeout=0.01).read_once("system/config"))


def test_delete_drops_document_lock():
    store = InMemoryDocumentStore()

    async def scenario():
        await store.write("c/a", {"x": 1})
        await store.write("c/b", {"x": 2})
        await store.delete("c/a")
        with pytest.raises(NotFoundError):
            await store.update("c/missing", {"x": 1})
        return set(store._locks)

    assert asyncio.run(scenario()) == {"c/b"}


def test_lock_survives_queued_writers_during_delete():
    store = InMemoryDocumentStore()

    async def scenario():
        await store.write("c/a", {"n": 0})
        await asyncio.gather(
            store.delete("c/a"),
            *(store.write("c/a", {"n": Increment(1)}) for _ in range(5)),
        )
        return (await store.read_once("c/a")).data, set(store._locks)

    data, locks = asyncio.run(scenario())
    assert locks == ({"c/a"} if data is not None else set())
    assert store._lock_users == {}
