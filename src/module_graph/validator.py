# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Strict-mode consistency validation between edges and import metadata.

When strict mode is enabled, any mutation that sets a module's dependency
list must carry import metadata of the form:

    {"imports": {specifier: target}}

where target is a module id, a module path, or {"id": ..., "path": ...}.
The set of ids the specifiers resolve to must be exactly the set of
structural dependency ids. This guards against drift between the graph's
edges and the record of why each edge exists.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Set

from module_graph.exceptions import MetaMismatchError

logger = logging.getLogger(__name__)

# Maps a caller-supplied path to the id of a live module, or None
PathResolver = Callable[[str], Optional[int]]


def import_specifiers(meta: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """Extract the specifier mapping from module metadata, if well-formed."""
    if not isinstance(meta, Mapping):
        return None
    imports = meta.get("imports")
    if not isinstance(imports, Mapping):
        return None
    return imports


class ConsistencyValidator:
    """Cross-checks structural dependency edges against import metadata."""

    def __init__(self, resolve_path: PathResolver):
        self._resolve_path = resolve_path

    def resolve_target(self, target: Any) -> Optional[int]:
        """Resolve one import-metadata target to a live module id.

        Args:
            target: Module id, module path, or dict with "id" and/or "path".

        Returns:
            The module id, or None if the target does not name a live module.
        """
        if isinstance(target, Mapping):
            if isinstance(target.get("id"), int):
                return int(target["id"])
            target = target.get("path")
        if isinstance(target, bool):
            return None
        if isinstance(target, int):
            return target
        if isinstance(target, str):
            return self._resolve_path(target)
        return None

    def resolved_imports(self, meta: Optional[Mapping[str, Any]]) -> Dict[str, Optional[int]]:
        """Map every declared specifier to the id it resolves to (or None)."""
        imports = import_specifiers(meta) or {}
        return {
            specifier: self.resolve_target(target) for specifier, target in imports.items()
        }

    def label_for(self, dependency_id: int, meta: Optional[Mapping[str, Any]]) -> Optional[str]:
        """Get the specifier declared for a dependency id, if any."""
        for specifier, target_id in self.resolved_imports(meta).items():
            if target_id == dependency_id:
                return specifier
        return None

    def check(
        self,
        module_path: str,
        dependency_ids: Iterable[int],
        meta: Optional[Mapping[str, Any]],
    ) -> None:
        """Verify that import metadata covers the structural edges exactly.

        Args:
            module_path: Module whose dependency list is being replaced.
            dependency_ids: Target ids of the structural edge list.
            meta: Accompanying metadata carrying the "imports" mapping.

        Raises:
            MetaMismatchError: If an edge has no matching specifier, a
                specifier names a module absent from the edges, or metadata
                is missing while edges are present.
        """
        structural: Set[int] = set(dependency_ids)

        if import_specifiers(meta) is None:
            if structural:
                logger.warning(f"Rejected edges for {module_path}: no import metadata supplied")
                raise MetaMismatchError(
                    module_path,
                    missing=structural,
                    reason="no 'imports' mapping in metadata",
                )
            return

        resolved = self.resolved_imports(meta)
        declared = {target_id for target_id in resolved.values() if target_id is not None}

        missing = structural - declared
        unexpected = [
            specifier
            for specifier, target_id in resolved.items()
            if target_id is None or target_id not in structural
        ]

        if missing or unexpected:
            logger.warning(
                f"Rejected edges for {module_path}: {len(missing)} without specifier, "
                f"{len(unexpected)} specifiers without edge"
            )
            raise MetaMismatchError(module_path, missing=missing, unexpected=unexpected)
