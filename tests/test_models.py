# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for core data models.

This test module validates:
- ModuleKind constants
- InternalModule / ExternalModule stored records
- Dependency and Module snapshots, including dict serialization for export
"""

from module_graph.models import (
    Dependency,
    ExternalModule,
    InternalModule,
    Module,
    ModuleKind,
    is_external,
)


class TestModuleKind:
    """Tests for ModuleKind class constants."""

    def test_module_kind_constants(self):
        """Test that kinds are JSON-compatible strings."""
        assert ModuleKind.INTERNAL == "internal"
        assert ModuleKind.EXTERNAL == "external"


class TestStoredRecords:
    """Tests for InternalModule and ExternalModule."""

    def test_internal_defaults(self):
        """Test creating an internal record with only required fields."""
        record = InternalModule(id=0, path="src/a.js")

        assert record.kind == ModuleKind.INTERNAL
        assert record.dependencies == {}
        assert record.dependents == set()
        assert record.meta == {}
        assert not is_external(record)

    def test_containers_not_shared(self):
        """Test that default containers are per instance."""
        first = InternalModule(id=0, path="a.js")
        second = InternalModule(id=1, path="b.js")

        first.dependents.add(1)

        assert second.dependents == set()

    def test_external_record(self):
        """Test that external records have no edge containers."""
        record = ExternalModule(id=3, path="react")

        assert record.kind == ModuleKind.EXTERNAL
        assert is_external(record)
        assert not hasattr(record, "dependencies")

    def test_str(self):
        """Test the path#id display form."""
        assert str(InternalModule(id=2, path="a.js")) == "a.js#2"
        assert str(ExternalModule(id=5, path="react")) == "react#5"


class TestModuleSnapshot:
    """Tests for Module snapshots."""

    def test_from_internal_record(self):
        """Test snapshotting an internal record."""
        record = InternalModule(
            id=1,
            path="src/app.js",
            dependencies={2: "./util", 3: "react"},
            dependents={0},
            meta={"imports": {"./util": 2}},
        )

        module = Module.from_record(record)

        assert module.kind == ModuleKind.INTERNAL
        assert module.dependencies == (Dependency(2, "./util"), Dependency(3, "react"))
        assert module.dependency_ids == (2, 3)
        assert module.dependents == (0,)
        assert module.source_of(3) == "react"
        assert module.source_of(9) is None

    def test_snapshot_is_detached(self):
        """Test that later record changes do not leak into a snapshot."""
        record = InternalModule(id=1, path="a.js", meta={"owner": "core"})
        module = Module.from_record(record)

        record.dependencies[2] = "./b"
        record.meta["owner"] = "web"

        assert module.dependencies == ()
        assert module.meta == {"owner": "core"}

    def test_from_external_record(self):
        """Test snapshotting an external record."""
        module = Module.from_record(ExternalModule(id=4, path="react", meta={"external": True}))

        assert module.is_external
        assert module.dependencies == ()
        assert module.dependents == ()

    def test_equality_ignores_meta(self):
        """Test that snapshots compare by identity and edges, not metadata."""
        first = Module(id=1, path="a.js", kind=ModuleKind.INTERNAL, meta={"x": 1})
        second = Module(id=1, path="a.js", kind=ModuleKind.INTERNAL, meta={"x": 2})

        assert first == second

    def test_to_dict(self):
        """Test serialization to JSON-compatible dict."""
        module = Module(
            id=1,
            path="a.js",
            kind=ModuleKind.INTERNAL,
            dependencies=(Dependency(2, "./b"),),
            dependents=(0,),
        )

        assert module.to_dict() == {
            "id": 1,
            "path": "a.js",
            "kind": "internal",
            "dependencies": [{"id": 2, "source": "./b"}],
            "dependents": [0],
        }

    def test_to_dict_includes_meta(self):
        """Test that non-empty metadata is serialized."""
        module = Module(
            id=4,
            path="react",
            kind=ModuleKind.EXTERNAL,
            meta={"external": True},
        )

        data = module.to_dict()

        assert data["kind"] == "external"
        assert data["meta"] == {"external": True}
        assert data["dependencies"] == []
