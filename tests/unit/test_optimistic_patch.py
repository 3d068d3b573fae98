"""
OptimisticPatchService tests against the in-memory record stores.
"""

import asyncio

import pytest

from core.optimistic_patch import OptimisticPatchService, resolve_mutations
from exceptions import ContractViolationError, ResourceNotFoundError, VersionConflictError
from interfaces.record_store import RecordKey
from tests.factories.record_stores import (
    AlwaysConflictingStore,
    AsyncInMemoryRecordStore,
    make_store,
)

KEY = RecordKey("tenant-1", "order-42")


@pytest.fixture
def patcher(retry_policy):
    return OptimisticPatchService(retry_policy)


class TestResolveMutations:

    def test_literals_pass_through(self):
        assert resolve_mutations({"status": "done"}, {"status": "new"}) == {"status": "done"}

    def test_callables_see_the_whole_record(self):
        resolved = resolve_mutations(
            {"total": lambda current: current["price"] * current["quantity"]},
            {"price": 3, "quantity": 4},
        )
        assert resolved == {"total": 12}

    def test_callables_get_independent_copies(self):
        def mutate(current):
            current["tags"].append("x")
            return current["tags"]

        fields = {"tags": ["a"]}
        resolved = resolve_mutations({"first": mutate, "second": mutate}, fields)
        assert resolved["first"] == ["a", "x"]
        assert resolved["second"] == ["a", "x"]
        assert fields == {"tags": ["a"]}


class TestPatch:

    def test_single_attempt_commit(self, patcher):
        store = make_store(KEY, status="new", counter=1)
        assert patcher.patch(store, KEY, {"status": "done"}) is True
        assert store.fields(KEY) == {"status": "done", "counter": 1}
        assert store.version(KEY) == "v2"

    def test_concurrent_writer_forces_reread(self, patcher, recorded_sleeps):
        store = make_store(KEY, status="new", counter=5)
        store.interleave(lambda s: s.external_write(KEY, counter=6))

        assert patcher.patch(store, KEY, {
            "status": "done",
            "counter": lambda current: current["counter"] + 1,
        }) is True

        assert store.fields(KEY) == {"status": "done", "counter": 7}
        assert store.reads == ["v1", "v2"]
        # the second write never reuses the token from the first read
        assert [expected for expected, _ in store.writes] == ["v1", "v2"]
        assert recorded_sleeps == pytest.approx([0.05])

    def test_mutation_functions_re_evaluated_per_attempt(self, patcher):
        store = make_store(KEY, counter=0)
        store.interleave(lambda s: s.external_write(KEY, counter=10))
        seen = []

        def bump(current):
            seen.append(current["counter"])
            return current["counter"] + 1

        patcher.patch(store, KEY, {"counter": bump})
        assert seen == [0, 10]
        assert store.fields(KEY)["counter"] == 11

    def test_empty_batch_is_a_no_op(self, patcher):
        store = make_store(KEY, status="new")
        assert patcher.patch(store, KEY, {}) is False
        assert store.reads == []
        assert store.writes == []

    def test_non_mapping_batch_is_a_contract_violation(self, patcher):
        store = make_store(KEY, status="new")
        with pytest.raises(ContractViolationError):
            patcher.patch(store, KEY, [("status", "done")])

    def test_exhaustion_raises_version_conflict(self, patcher, recorded_sleeps):
        store = AlwaysConflictingStore()
        store.seed(KEY, status="new")
        with pytest.raises(VersionConflictError) as exc_info:
            patcher.patch(store, KEY, {"status": "done"})
        assert len(store.writes) == 3
        assert exc_info.value.key == KEY
        assert store.fields(KEY)["status"] == "new"
        assert recorded_sleeps == pytest.approx([0.05, 0.15])

    def test_missing_record_is_not_retried(self, patcher):
        store = make_store(RecordKey("tenant-1", "other"), status="new")
        with pytest.raises(ResourceNotFoundError):
            patcher.patch(store, KEY, {"status": "done"})
        assert store.reads == []

    def test_store_returning_wrong_type_is_a_contract_violation(self, patcher):
        class BrokenStore:
            def read(self, key):
                return {"status": "new"}

            def conditional_write(self, key, fields, expected_version):
                raise AssertionError("must not write")

        with pytest.raises(ContractViolationError):
            patcher.patch(BrokenStore(), KEY, {"status": "done"})

    def test_transient_read_failures_are_retried(self, patcher):
        store = make_store(KEY, status="new")
        original_read = store.read
        failures = [ConnectionError("blip")]

        def flaky_read(key):
            if failures:
                raise failures.pop()
            return original_read(key)

        store.read = flaky_read
        assert patcher.patch(store, KEY, {"status": "done"}) is True
        assert store.fields(KEY)["status"] == "done"


class TestPatchAsync:

    def test_concurrent_writer_forces_reread(self, patcher):
        store = AsyncInMemoryRecordStore()
        store.inner.seed(KEY, status="new", counter=5)
        store.inner.interleave(lambda s: s.external_write(KEY, counter=6))

        result = asyncio.run(patcher.patch_async(store, KEY, {
            "status": "done",
            "counter": lambda current: current["counter"] + 1,
        }))

        assert result is True
        assert store.inner.fields(KEY) == {"status": "done", "counter": 7}

    def test_empty_batch_is_a_no_op(self, patcher):
        store = AsyncInMemoryRecordStore()
        store.inner.seed(KEY, status="new")
        assert asyncio.run(patcher.patch_async(store, KEY, {})) is False
        assert store.inner.reads == []

    def test_exhaustion_raises_version_conflict(self, patcher):
        store = AsyncInMemoryRecordStore(AlwaysConflictingStore())
        store.inner.seed(KEY, status="new")
        with pytest.raises(VersionConflictError):
            asyncio.run(patcher.patch_async(store, KEY, {"status": "done"}))
        assert len(store.inner.writes) == 3
