# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the graph mutator.

Tests cover:
- link: label overwrite, external targets, external sources rejected
- unlink: back-reference removal with and without keeping the edge list
- replace_edges: wholesale edge replacement
- promote: external -> internal with rebuilt dependents
- Dangling neighbor detection
"""

import pytest

from module_graph.exceptions import DanglingReferenceError, InvalidEdgeError
from module_graph.models import InternalModule, ModuleKind
from module_graph.mutator import GraphMutator
from module_graph.store import InMemoryModuleStore


@pytest.fixture
def store():
    """Create empty module store."""
    return InMemoryModuleStore()


@pytest.fixture
def mutator(store):
    """Create mutator over the store."""
    return GraphMutator(store)


class TestLink:
    """Tests for GraphMutator.link."""

    def test_link_internal_modules(self, store, mutator):
        """Test that linking records both edge directions."""
        a = store.create("a.js")
        b = store.create("b.js")

        mutator.link(a, b, "./b")

        assert a.dependencies == {b.id: "./b"}
        assert b.dependents == {a.id}
        assert a.dependents == set()

    def test_relink_overwrites_label(self, store, mutator):
        """Test that re-linking a pair overwrites the label without duplicating."""
        a = store.create("a.js")
        b = store.create("b.js")

        mutator.link(a, b, "./b")
        mutator.link(a, b, "./b.js")

        assert a.dependencies == {b.id: "./b.js"}
        assert b.dependents == {a.id}

    def test_link_to_external(self, store, mutator):
        """Test that externals are depended upon without tracking dependents."""
        a = store.create("a.js")
        react = store.create("react", ModuleKind.EXTERNAL)

        mutator.link(a, react, "react")

        assert a.dependencies == {react.id: "react"}

    def test_external_source_rejected(self, store, mutator):
        """Test that an external module cannot be the source of an edge."""
        react = store.create("react", ModuleKind.EXTERNAL)
        a = store.create("a.js")

        with pytest.raises(InvalidEdgeError):
            mutator.link(react, a, "./a")
        assert a.dependents == set()

    def test_self_link(self, store, mutator):
        """Test that a module may import itself."""
        a = store.create("a.js")

        mutator.link(a, a, "./a")

        assert a.dependencies == {a.id: "./a"}
        assert a.dependents == {a.id}


class TestUnlink:
    """Tests for GraphMutator.unlink."""

    def _chain(self, store, mutator):
        a = store.create("a.js")
        b = store.create("b.js")
        c = store.create("c.js")
        mutator.link(a, b, "./b")
        mutator.link(b, c, "./c")
        return a, b, c

    def test_unlink_clears_neighbors_and_self(self, store, mutator):
        """Test full unlink before deletion."""
        a, b, c = self._chain(store, mutator)

        mutator.unlink(b)

        assert a.dependencies == {}
        assert c.dependents == set()
        assert b.dependencies == {}
        assert b.dependents == set()

    def test_unlink_keep_edge_list(self, store, mutator):
        """Test that keep_edge_list leaves the module's own containers intact."""
        a, b, c = self._chain(store, mutator)

        mutator.unlink(b, keep_edge_list=True)

        assert a.dependencies == {}
        assert c.dependents == set()
        assert b.dependencies == {c.id: "./c"}
        assert b.dependents == {a.id}

    def test_unlink_external_scans_importers(self, store, mutator):
        """Test that inbound edges to an external module are removed."""
        a = store.create("a.js")
        b = store.create("b.js")
        react = store.create("react", ModuleKind.EXTERNAL)
        mutator.link(a, react, "react")
        mutator.link(b, react, "react")

        assert sorted(mutator.inbound_ids(react)) == [a.id, b.id]

        mutator.unlink(react)

        assert a.dependencies == {}
        assert b.dependencies == {}

    def test_unlink_with_self_edge(self, store, mutator):
        """Test that a self-import does not trip dangling detection."""
        a = store.create("a.js")
        mutator.link(a, a, "./a")

        mutator.unlink(a)

        assert a.dependencies == {}
        assert a.dependents == set()

    def test_dangling_dependency_raises(self, store, mutator):
        """Test that an edge to a missing module is reported, not dropped."""
        a = store.create("a.js")
        a.dependencies[42] = "./ghost"

        with pytest.raises(DanglingReferenceError) as exc_info:
            mutator.unlink(a)
        assert exc_info.value.key == 42

    def test_dangling_dependent_raises(self, store, mutator):
        """Test that a dependent id with no live module raises."""
        a = store.create("a.js")
        a.dependents.add(7)

        with pytest.raises(DanglingReferenceError):
            mutator.unlink(a)


class TestReplaceEdges:
    """Tests for GraphMutator.replace_edges."""

    def test_replace_dependencies(self, store, mutator):
        """Test that old edges are dropped and new ones linked symmetrically."""
        a = store.create("a.js")
        b = store.create("b.js")
        c = store.create("c.js")
        mutator.link(a, b, "./b")

        mutator.replace_edges(a, [(c, "./c")], [])

        assert a.dependencies == {c.id: "./c"}
        assert b.dependents == set()
        assert c.dependents == {a.id}

    def test_replace_dependents(self, store, mutator):
        """Test replacing the importers of a module."""
        a = store.create("a.js")
        b = store.create("b.js")
        c = store.create("c.js")
        mutator.link(a, c, "./c")

        mutator.replace_edges(c, [], [(b, "./c")])

        assert a.dependencies == {}
        assert b.dependencies == {c.id: "./c"}
        assert c.dependents == {b.id}

    def test_external_cannot_gain_dependencies(self, store, mutator):
        """Test that replace_edges rejects dependencies on an external module."""
        react = store.create("react", ModuleKind.EXTERNAL)
        a = store.create("a.js")

        with pytest.raises(InvalidEdgeError):
            mutator.replace_edges(react, [(a, "./a")], [])


class TestPromote:
    """Tests for GraphMutator.promote."""

    def test_promote_rebuilds_dependents(self, store, mutator):
        """Test that promotion keeps the id and records existing importers."""
        a = store.create("a.js")
        lib = store.create("lib.js", ModuleKind.EXTERNAL)
        lib.meta["external"] = True
        mutator.link(a, lib, "./lib")

        promoted = mutator.promote(lib)

        assert isinstance(promoted, InternalModule)
        assert promoted.id == lib.id
        assert promoted.dependents == {a.id}
        assert "external" not in promoted.meta
        assert store.get(lib.id) is promoted
