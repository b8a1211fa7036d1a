# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Breadth-first closure queries over the module graph.

- inverse_closure: Everything transitively affected by a change to a module
- dependency_closure: Everything a module transitively imports

Both traversals seed the visited set with the start module, so each module
is enqueued at most once and cycles (including self-imports) terminate.
The start module is never part of the result. Order follows the
breadth-first wavefront; within one wavefront, neighbors appear in the
iteration order of the underlying edge container.
"""

from collections import deque
from typing import Callable, Deque, Iterable, List, Set

from module_graph.exceptions import DanglingReferenceError
from module_graph.models import InternalModule, ModuleRecord
from module_graph.store import ModuleStore


def _breadth_first(
    store: ModuleStore,
    start_id: int,
    neighbors: Callable[[InternalModule], Iterable[int]],
) -> List[int]:
    queue: Deque[int] = deque([start_id])
    visited: Set[int] = {start_id}
    result: List[int] = []

    while queue:
        current_id = queue.popleft()
        if current_id != start_id:
            result.append(current_id)

        if not store.has(current_id):
            raise DanglingReferenceError(current_id, f"traversing from id {start_id}")
        module: ModuleRecord = store.get(current_id)
        # External modules have no edges to follow in either direction
        if not isinstance(module, InternalModule):
            continue

        for neighbor_id in neighbors(module):
            if neighbor_id in visited:
                continue
            visited.add(neighbor_id)
            queue.append(neighbor_id)

    return result


def inverse_closure(store: ModuleStore, start_id: int) -> List[int]:
    """Get ids of all modules that transitively depend on start_id.

    Args:
        store: Store holding the module records.
        start_id: Module whose change impact is queried.

    Returns:
        Ids in breadth-first order, excluding start_id.

    Raises:
        DanglingReferenceError: If a visited id has no live record.
    """
    return _breadth_first(store, start_id, lambda module: module.dependents)


def dependency_closure(store: ModuleStore, start_id: int) -> List[int]:
    """Get ids of all modules that start_id transitively imports.

    External modules are reported but not expanded.
    """
    return _breadth_first(store, start_id, lambda module: module.dependencies)
