"""Tests for ResourceCache, IndexerComposite and resourceVersion ordering."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from kubesource.cache.indexer import IndexerComposite
from kubesource.cache.resource_cache import ALL_NAMESPACES, ResourceCache, compare_resource_versions
from kubesource.models.resources import Resource, UpsertOutcome

# ---------------------------------------------------------------------------
# Helper factories
# ---------------------------------------------------------------------------


def _make_resource(
    name: str = "billing",
    namespace: str = "default",
    resource_version: str = "1",
    kind: str = "ConfigMap",
    data: dict[str, str] | None = None,
) -> Resource:
    return Resource(
        kind=kind,
        namespace=namespace,
        name=name,
        resource_version=resource_version,
        payload={"data": data or {"k": resource_version}},
    )


# ---------------------------------------------------------------------------
# Version comparison
# ---------------------------------------------------------------------------


class TestCompareResourceVersions:
    def test_numeric_ordering(self) -> None:
        assert compare_resource_versions("10", "9") == 1
        assert compare_resource_versions("9", "10") == -1
        assert compare_resource_versions("7", "7") == 0

    def test_opaque_tokens_are_not_comparable(self) -> None:
        assert compare_resource_versions("abc", "abd") is None

    def test_identical_opaque_tokens_are_equal(self) -> None:
        assert compare_resource_versions("abc", "abc") == 0


# ---------------------------------------------------------------------------
# Upsert / delete
# ---------------------------------------------------------------------------


class TestUpsert:
    def test_first_upsert_adds(self) -> None:
        cache = ResourceCache("ConfigMap", "default")
        assert cache.upsert(_make_resource()) == UpsertOutcome.ADDED
        assert len(cache) == 1

    def test_newer_version_replaces(self) -> None:
        cache = ResourceCache("ConfigMap", "default")
        cache.upsert(_make_resource(resource_version="1"))
        assert cache.upsert(_make_resource(resource_version="2")) == UpsertOutcome.REPLACED
        stored = cache.get_by_key("default", "billing")
        assert stored is not None
        assert stored.resource_version == "2"

    def test_older_version_is_ignored(self) -> None:
        """Delivery of 3, 1, 2 leaves version 3 stored."""
        cache = ResourceCache("ConfigMap", "default")
        outcomes = [cache.upsert(_make_resource(resource_version=v)) for v in ("3", "1", "2")]
        assert outcomes == [UpsertOutcome.ADDED, UpsertOutcome.STALE, UpsertOutcome.STALE]
        stored = cache.get_by_key("default", "billing")
        assert stored is not None
        assert stored.resource_version == "3"

    def test_same_version_is_unchanged(self) -> None:
        cache = ResourceCache("ConfigMap", "default")
        first = _make_resource(resource_version="5")
        cache.upsert(first)
        assert cache.upsert(_make_resource(resource_version="5")) == UpsertOutcome.UNCHANGED
        assert cache.get_by_key("default", "billing") is first

    def test_opaque_version_replaces(self) -> None:
        cache = ResourceCache("ConfigMap", "default")
        cache.upsert(_make_resource(resource_version="a1"))
        assert cache.upsert(_make_resource(resource_version="b0")) == UpsertOutcome.REPLACED

    def test_last_sync_version_tracks_highest(self) -> None:
        cache = ResourceCache("ConfigMap", "default")
        cache.upsert(_make_resource(name="a", resource_version="8"))
        cache.upsert(_make_resource(name="b", resource_version="4"))
        assert cache.last_sync_resource_version == "8"


class TestDelete:
    def test_delete_returns_removed(self) -> None:
        cache = ResourceCache("ConfigMap", "default")
        cache.upsert(_make_resource())
        removed = cache.delete("default", "billing", "2")
        assert removed is not None
        assert removed.name == "billing"
        assert cache.get_by_key("default", "billing") is None
        assert cache.last_sync_resource_version == "2"

    def test_delete_absent_key_returns_none(self) -> None:
        cache = ResourceCache("ConfigMap", "default")
        assert cache.delete("default", "missing") is None


# ---------------------------------------------------------------------------
# Replace (relist)
# ---------------------------------------------------------------------------


class TestReplace:
    def test_replace_reports_delta_and_marks_synced(self) -> None:
        cache = ResourceCache("ConfigMap", "default")
        cache.upsert(_make_resource(name="keep", resource_version="1"))
        cache.upsert(_make_resource(name="gone", resource_version="1"))

        delta = cache.replace(
            [
                _make_resource(name="keep", resource_version="2"),
                _make_resource(name="new", resource_version="3"),
            ],
            resource_version="10",
        )

        assert [r.name for r in delta.added] == ["new"]
        assert [(old.resource_version, new.resource_version) for old, new in delta.updated] == [("1", "2")]
        assert [r.name for r in delta.removed] == ["gone"]
        assert cache.has_synced is True
        assert cache.last_sync_resource_version == "10"

    def test_replace_with_identical_items_is_empty(self) -> None:
        cache = ResourceCache("ConfigMap", "default")
        items = [_make_resource(name="a"), _make_resource(name="b")]
        cache.replace(items, "5")
        assert cache.replace(items, "5").empty is True

    def test_list_filters_namespace_and_sorts(self) -> None:
        cache = ResourceCache("ConfigMap", ALL_NAMESPACES)
        cache.replace(
            [
                _make_resource(name="z", namespace="a"),
                _make_resource(name="y", namespace="b"),
                _make_resource(name="x", namespace="a"),
            ]
        )
        assert [r.name for r in cache.list("a")] == ["x", "z"]
        assert [r.name for r in cache.list()] == ["x", "z", "y"]


# ---------------------------------------------------------------------------
# Property: the highest version always survives
# ---------------------------------------------------------------------------


class TestVersionMonotonicity:
    @given(st.lists(st.integers(min_value=1, max_value=10_000), min_size=1, max_size=30))
    def test_highest_version_wins_regardless_of_order(self, versions: list[int]) -> None:
        cache = ResourceCache("ConfigMap", "default")
        for v in versions:
            cache.upsert(_make_resource(resource_version=str(v)))
        stored = cache.get_by_key("default", "billing")
        assert stored is not None
        assert stored.resource_version == str(max(versions))

    @given(st.lists(st.integers(min_value=1, max_value=50), min_size=1, max_size=20))
    def test_replaying_events_is_idempotent(self, versions: list[int]) -> None:
        cache = ResourceCache("ConfigMap", "default")
        for v in versions:
            cache.upsert(_make_resource(resource_version=str(v)))
        before = cache.list()
        for v in versions:
            cache.upsert(_make_resource(resource_version=str(v)))
        assert cache.list() == before


# ---------------------------------------------------------------------------
# IndexerComposite
# ---------------------------------------------------------------------------


class TestIndexerComposite:
    def _make_indexer(self) -> IndexerComposite:
        indexer = IndexerComposite("ConfigMap")
        team_a = ResourceCache("ConfigMap", "team-a")
        team_a.replace([_make_resource(name="a1", namespace="team-a")])
        team_b = ResourceCache("ConfigMap", "team-b")
        team_b.replace([_make_resource(name="b1", namespace="team-b")])
        indexer.add("team-a", team_a)
        indexer.add("team-b", team_b)
        return indexer

    def test_get_by_key_routes_to_partition(self) -> None:
        indexer = self._make_indexer()
        resource = indexer.get_by_key("team-b", "b1")
        assert resource is not None
        assert resource.namespace == "team-b"

    def test_unwatched_namespace_yields_nothing(self) -> None:
        indexer = self._make_indexer()
        assert indexer.get_by_key("team-c", "b1") is None
        assert indexer.list("team-c") == []

    def test_list_all_is_union(self) -> None:
        indexer = self._make_indexer()
        assert [r.name for r in indexer.list(ALL_NAMESPACES)] == ["a1", "b1"]

    def test_wildcard_partition_answers_any_namespace(self) -> None:
        indexer = IndexerComposite("ConfigMap")
        cluster = ResourceCache("ConfigMap", ALL_NAMESPACES)
        cluster.replace([_make_resource(name="c", namespace="ops")])
        indexer.add(ALL_NAMESPACES, cluster)
        assert indexer.get_by_key("ops", "c") is not None
        assert [r.name for r in indexer.list("ops")] == ["c"]

    def test_has_synced_requires_every_partition(self) -> None:
        indexer = IndexerComposite("ConfigMap")
        synced = ResourceCache("ConfigMap", "a")
        synced.replace([])
        indexer.add("a", synced)
        indexer.add("b", ResourceCache("ConfigMap", "b"))
        assert indexer.has_synced is False

    def test_kind_mismatch_rejected(self) -> None:
        indexer = IndexerComposite("ConfigMap")
        with pytest.raises(ValueError):
            indexer.add("default", ResourceCache("Secret", "default"))
