# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Unit tests for the module store.

Tests cover:
- ModuleStore interface contract
- InMemoryModuleStore create/get/has/delete/replace
- Id retirement after deletion
"""

import pytest

from module_graph.exceptions import AlreadyRegisteredError, NotFoundError
from module_graph.models import ExternalModule, InternalModule, ModuleKind
from module_graph.store import InMemoryModuleStore, ModuleStore


class TestInMemoryModuleStore:
    """Tests for InMemoryModuleStore implementation."""

    def test_initialization(self):
        """Test store initializes empty."""
        store = InMemoryModuleStore()
        assert len(store) == 0
        assert store.values() == []

    def test_implements_interface(self):
        """Test that the in-memory store is a ModuleStore."""
        assert isinstance(InMemoryModuleStore(), ModuleStore)

    def test_create_internal(self):
        """Test creating an internal module with no edges."""
        store = InMemoryModuleStore()
        record = store.create("src/a.js")

        assert isinstance(record, InternalModule)
        assert record.id == 0
        assert record.path == "src/a.js"
        assert record.dependencies == {}
        assert record.dependents == set()
        assert len(store) == 1

    def test_create_external(self):
        """Test creating an external boundary module."""
        store = InMemoryModuleStore()
        record = store.create("react", ModuleKind.EXTERNAL)

        assert isinstance(record, ExternalModule)
        assert record.kind == ModuleKind.EXTERNAL
        assert not hasattr(record, "dependents")

    def test_create_existing_path_raises(self):
        """Test that creating a bound path raises AlreadyRegisteredError."""
        store = InMemoryModuleStore()
        store.create("a.js")

        with pytest.raises(AlreadyRegisteredError) as exc_info:
            store.create("a.js")
        assert exc_info.value.module_id == 0

    def test_get_and_has(self):
        """Test lookups by id."""
        store = InMemoryModuleStore()
        record = store.create("a.js")

        assert store.has(record.id)
        assert store.get(record.id) is record
        assert not store.has(99)

    def test_get_missing_raises(self):
        """Test that get on an unknown id raises NotFoundError."""
        store = InMemoryModuleStore()
        with pytest.raises(NotFoundError):
            store.get(5)

    def test_not_found_is_key_error(self):
        """Test that NotFoundError can be caught as KeyError."""
        store = InMemoryModuleStore()
        with pytest.raises(KeyError):
            store.get(5)

    def test_delete_frees_path_but_retires_id(self):
        """Test that deletion frees the path binding without reusing the id."""
        store = InMemoryModuleStore()
        first = store.create("a.js")
        store.create("b.js")

        store.delete(first.id)

        assert not store.has(first.id)
        assert store.registry.resolve("a.js") is None
        recreated = store.create("a.js")
        assert recreated.id == 2

    def test_delete_missing_raises(self):
        """Test that deleting an unknown id raises NotFoundError."""
        store = InMemoryModuleStore()
        with pytest.raises(NotFoundError):
            store.delete(0)

    def test_replace_keeps_id(self):
        """Test swapping a record under the same id."""
        store = InMemoryModuleStore()
        external = store.create("lib.js", ModuleKind.EXTERNAL)

        store.replace(InternalModule(id=external.id, path=external.path))

        assert isinstance(store.get(external.id), InternalModule)
        assert len(store) == 1

    def test_replace_missing_raises(self):
        """Test that replacing an unknown id raises NotFoundError."""
        store = InMemoryModuleStore()
        with pytest.raises(NotFoundError):
            store.replace(InternalModule(id=3, path="x.js"))

    def test_values_in_id_order(self):
        """Test that values() lists records in id order."""
        store = InMemoryModuleStore()
        for path in ["a.js", "b.js", "c.js"]:
            store.create(path)

        assert [record.id for record in store.values()] == [0, 1, 2]
        assert [record.path for record in store] == ["a.js", "b.js", "c.js"]

    def test_clear(self):
        """Test that clear removes all records and restarts ids."""
        store = InMemoryModuleStore()
        store.create("a.js")
        store.create("b.js")

        store.clear()

        assert len(store) == 0
        assert store.create("c.js").id == 0
