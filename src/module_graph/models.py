# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for the module dependency graph.

This module defines the structures shared by every engine component:
- ModuleKind: Internal vs external (boundary) module marker
- InternalModule: Stored record of a module with content and edges
- ExternalModule: Stored record of a boundary module (third-party/runtime)
- Dependency: A labeled outgoing edge in a module view
- Module: Immutable snapshot of a module handed to callers

Stored records are mutable and owned by the store; only the graph mutator
writes their edge containers. Callers only ever see Module snapshots.

All serialized forms use JSON-compatible primitives.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set, Tuple, Union


class ModuleKind:
    """Kinds of modules in the graph.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    INTERNAL = "internal"  # has content, participates in both edge directions
    EXTERNAL = "external"  # boundary node, can only be depended upon


@dataclass
class InternalModule:
    """A module with content: it imports others and tracks its dependents."""

    id: int
    path: str
    dependencies: Dict[int, str] = field(default_factory=dict)  # target id -> specifier
    dependents: Set[int] = field(default_factory=set)
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> str:
        return ModuleKind.INTERNAL

    def __str__(self) -> str:
        return f"{self.path}#{self.id}"


@dataclass
class ExternalModule:
    """A boundary module: addressable, but with no outgoing edges.

    External modules do not track dependents; inbound edges are only
    recorded on the importing side.
    """

    id: int
    path: str
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> str:
        return ModuleKind.EXTERNAL

    def __str__(self) -> str:
        return f"{self.path}#{self.id}"


ModuleRecord = Union[InternalModule, ExternalModule]


def is_external(record: ModuleRecord) -> bool:
    """Check if a stored record is a boundary module."""
    return isinstance(record, ExternalModule)


@dataclass(frozen=True)
class Dependency:
    """An outgoing edge: target module id plus the specifier that produced it."""

    id: int
    source: str

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {"id": self.id, "source": self.source}


@dataclass(frozen=True)
class Module:
    """Read-only snapshot of a module.

    Returned by every DependencyGraph query. Later mutations of the graph
    are not reflected in an existing snapshot.
    """

    id: int
    path: str
    kind: str
    dependencies: Tuple[Dependency, ...] = ()
    dependents: Tuple[int, ...] = ()
    meta: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_external(self) -> bool:
        return self.kind == ModuleKind.EXTERNAL

    @property
    def dependency_ids(self) -> Tuple[int, ...]:
        return tuple(dep.id for dep in self.dependencies)

    def source_of(self, dependency_id: int) -> Optional[str]:
        """Get the import specifier used for a dependency, if present."""
        for dep in self.dependencies:
            if dep.id == dependency_id:
                return dep.source
        return None

    def __str__(self) -> str:
        return f"{self.path}#{self.id}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict.

        Returns:
            Dictionary with all fields; meta is only included when non-empty.
        """
        result: Dict[str, Any] = {
            "id": self.id,
            "path": self.path,
            "kind": self.kind,
            "dependencies": [dep.to_dict() for dep in self.dependencies],
            "dependents": list(self.dependents),
        }
        if self.meta:
            result["meta"] = self.meta
        return result

    @classmethod
    def from_record(cls, record: ModuleRecord) -> "Module":
        """Take a snapshot of a stored record."""
        if isinstance(record, ExternalModule):
            return cls(
                id=record.id,
                path=record.path,
                kind=ModuleKind.EXTERNAL,
                meta=dict(record.meta),
            )
        return cls(
            id=record.id,
            path=record.path,
            kind=ModuleKind.INTERNAL,
            dependencies=tuple(
                Dependency(id=dep_id, source=source)
                for dep_id, source in record.dependencies.items()
            ),
            dependents=tuple(record.dependents),
            meta=dict(record.meta),
        )
