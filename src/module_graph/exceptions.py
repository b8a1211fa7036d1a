# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Exception hierarchy for the module dependency graph.

All engine errors inherit from DependencyGraphError so callers can catch
them uniformly. Every error is raised before any edge is touched, so a
rejected operation leaves the graph unchanged.
"""

from typing import Any, Iterable, Optional


class DependencyGraphError(Exception):
    """Base exception for all dependency graph errors."""

    pass


class NotFoundError(DependencyGraphError, KeyError):
    """Raised when a path or id has no live module binding."""

    def __init__(self, key: Any):
        self.key = key
        super().__init__(f"module not found (key: {key!r})")

    def __str__(self) -> str:
        # KeyError.__str__ quotes the message; keep it readable
        return str(self.args[0])


class AlreadyRegisteredError(DependencyGraphError):
    """Raised when add_module is called for a path that is already bound."""

    def __init__(self, path: str, module_id: int):
        self.path = path
        self.module_id = module_id
        super().__init__(f"already registered: '{path}' (id: {module_id})")


class DanglingReferenceError(DependencyGraphError):
    """Raised when a neighbor key or stored neighbor id has no live module.

    This is a programming error: the mutator never silently drops an edge.
    """

    def __init__(self, key: Any, context: Optional[str] = None):
        self.key = key
        self.context = context
        message = f"dangling reference (key: {key!r})"
        if context:
            message = f"{message} while {context}"
        super().__init__(message)


class MetaMismatchError(DependencyGraphError):
    """Raised in strict mode when structural edges and import metadata disagree.

    Attributes:
        module_path: Module whose dependency list was rejected.
        missing: Structural target ids with no matching import specifier.
        unexpected: Specifiers whose target is absent from the structural edges.
    """

    def __init__(
        self,
        module_path: str,
        missing: Iterable[int] = (),
        unexpected: Iterable[str] = (),
        reason: Optional[str] = None,
    ):
        self.module_path = module_path
        self.missing = sorted(missing)
        self.unexpected = sorted(unexpected)
        parts = []
        if reason:
            parts.append(reason)
        if self.missing:
            parts.append(f"edges without specifier: {self.missing}")
        if self.unexpected:
            parts.append(f"specifiers without edge: {self.unexpected}")
        super().__init__(f"import metadata mismatch for '{module_path}': " + "; ".join(parts))


class InvalidEdgeError(DependencyGraphError):
    """Raised when an edge would originate from an external module."""

    pass


class ManifestError(DependencyGraphError, ValueError):
    """Raised when a decoded manifest record is malformed."""

    pass
