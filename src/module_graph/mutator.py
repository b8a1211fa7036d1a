# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Graph mutator: the single writer of dependency edges.

Maintains the bidirectional edge invariant:
- For every internal module A with A.dependencies[B] = specifier,
  B (if internal) has A.id in B.dependents
- External modules never appear as the source of an edge

Every neighbor id touched during a mutation must refer to a live module.
A missing neighbor is a programming error and raises DanglingReferenceError;
edges are never silently dropped.
"""

import logging
from typing import List, Sequence, Tuple

from module_graph.exceptions import DanglingReferenceError, InvalidEdgeError
from module_graph.models import ExternalModule, InternalModule, ModuleRecord
from module_graph.store import ModuleStore

logger = logging.getLogger(__name__)


class GraphMutator:
    """Creates and destroys edges between stored modules.

    Thread Safety:
    - NOT thread-safe: Designed for single-threaded use
    """

    def __init__(self, store: ModuleStore):
        self.store = store

    def _neighbor(self, module_id: int, context: str) -> ModuleRecord:
        if not self.store.has(module_id):
            raise DanglingReferenceError(module_id, context)
        return self.store.get(module_id)

    def link(self, source: ModuleRecord, target: ModuleRecord, label: str) -> None:
        """Record that source imports target via the given specifier.

        Re-linking an existing pair overwrites the label without duplicating
        the edge.

        Args:
            source: Importing module. Must be internal.
            target: Imported module, internal or external.
            label: Literal import specifier (e.g. "./app", "react").

        Raises:
            InvalidEdgeError: If source is an external module.
        """
        if not isinstance(source, InternalModule):
            raise InvalidEdgeError(f"external module '{source}' cannot depend on '{target}'")

        source.dependencies[target.id] = label
        if isinstance(target, InternalModule):
            target.dependents.add(source.id)

        logger.debug(f"Linked {source} -> {target} ({label!r})")

    def inbound_ids(self, module: ModuleRecord) -> List[int]:
        """Get ids of all modules holding an edge to module.

        Internal modules answer from their dependents set. External modules
        do not track dependents, so importers are found by scanning the store.
        """
        if isinstance(module, InternalModule):
            return list(module.dependents)
        return [
            record.id
            for record in self.store.values()
            if isinstance(record, InternalModule) and module.id in record.dependencies
        ]

    def unlink(self, module: ModuleRecord, keep_edge_list: bool = False) -> None:
        """Remove every back-reference that neighbors hold to module.

        Args:
            module: Module to detach from its neighbors.
            keep_edge_list: If False, also clear module's own edge containers
                (used before deletion). If True, leave them in place so the
                caller can swap in a fresh edge list (used by update).

        Raises:
            DanglingReferenceError: If a neighbor id has no live module.
        """
        module_id = module.id

        if isinstance(module, InternalModule):
            for dependency_id in list(module.dependencies):
                if dependency_id == module_id:
                    continue
                dependency = self._neighbor(dependency_id, f"unlinking dependencies of {module}")
                if isinstance(dependency, InternalModule):
                    dependency.dependents.discard(module_id)

        for dependent_id in self.inbound_ids(module):
            if dependent_id == module_id:
                continue
            dependent = self._neighbor(dependent_id, f"unlinking dependents of {module}")
            if isinstance(dependent, InternalModule):
                dependent.dependencies.pop(module_id, None)

        if not keep_edge_list and isinstance(module, InternalModule):
            module.dependencies.clear()
            module.dependents.clear()

        logger.debug(f"Unlinked {module} (keep_edge_list={keep_edge_list})")

    def replace_edges(
        self,
        module: ModuleRecord,
        dependencies: Sequence[Tuple[ModuleRecord, str]],
        dependents: Sequence[Tuple[ModuleRecord, str]],
    ) -> None:
        """Swap module's edge lists wholesale.

        Neighbors' back-references are cleared first, then module receives
        fresh edge containers and every supplied edge is linked. Callers
        resolve and validate all neighbors beforehand so this never fails
        halfway through.

        Args:
            module: Module whose edges are replaced.
            dependencies: (target, specifier) pairs module imports.
            dependents: (importer, specifier) pairs that import module.

        Raises:
            InvalidEdgeError: If module is external and dependencies is non-empty.
        """
        if isinstance(module, ExternalModule) and dependencies:
            raise InvalidEdgeError(f"external module '{module}' cannot have dependencies")

        self.unlink(module, keep_edge_list=True)
        if isinstance(module, InternalModule):
            module.dependencies = {}
            module.dependents = set()

        for target, label in dependencies:
            self.link(module, target, label)
        for importer, label in dependents:
            self.link(importer, module, label)

    def promote(self, module: ExternalModule) -> InternalModule:
        """Turn an external module into an internal one under the same id.

        Modules that already import it are recorded as its dependents so the
        edge invariant holds for the promoted record.
        """
        promoted = InternalModule(id=module.id, path=module.path, meta=dict(module.meta))
        promoted.meta.pop("external", None)
        promoted.dependents.update(self.inbound_ids(module))
        self.store.replace(promoted)

        logger.debug(f"Promoted external module {module} to internal")
        return promoted
