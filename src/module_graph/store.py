# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Storage abstraction for module records.

Components:
- ModuleStore: Abstract interface for module record storage
- InMemoryModuleStore: Arena of records indexed by integer id

The store owns every module record and the identity registry that hands
out their ids. It never touches edges: edge containers are written only by
the graph mutator.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional

from module_graph.exceptions import AlreadyRegisteredError, NotFoundError
from module_graph.models import ExternalModule, InternalModule, ModuleKind, ModuleRecord
from module_graph.registry import IdentityRegistry

logger = logging.getLogger(__name__)


class ModuleStore(ABC):
    """Abstract storage interface for module records.

    Enables swapping the storage backend without changing graph logic.
    """

    @property
    @abstractmethod
    def registry(self) -> IdentityRegistry:
        """Identity registry used to allocate ids for this store."""
        pass

    @abstractmethod
    def get(self, module_id: int) -> ModuleRecord:
        """Get a live record by id.

        Raises:
            NotFoundError: If the id has no live record.
        """
        pass

    @abstractmethod
    def has(self, module_id: int) -> bool:
        """Check whether an id has a live record. Never raises."""
        pass

    @abstractmethod
    def create(self, path: str, kind: str = ModuleKind.INTERNAL) -> ModuleRecord:
        """Allocate an id for a canonical path and insert an empty record.

        Raises:
            AlreadyRegisteredError: If the path already has a live record.
        """
        pass

    @abstractmethod
    def replace(self, record: ModuleRecord) -> None:
        """Swap the live record stored under record.id.

        Raises:
            NotFoundError: If the id has no live record.
        """
        pass

    @abstractmethod
    def delete(self, module_id: int) -> ModuleRecord:
        """Remove a record and free its path binding.

        The id value is retired and never reissued.

        Raises:
            NotFoundError: If the id has no live record.
        """
        pass

    @abstractmethod
    def values(self) -> List[ModuleRecord]:
        """Get all live records in id order."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every record and reset the id counter."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class InMemoryModuleStore(ModuleStore):
    """In-memory arena of module records.

    Features:
    - O(1) lookups by id
    - No persistence across sessions

    Limitations:
    - NOT thread-safe: Designed for single-threaded use only
    """

    def __init__(self, registry: Optional[IdentityRegistry] = None) -> None:
        self._registry = registry if registry is not None else IdentityRegistry()
        self._records: Dict[int, ModuleRecord] = {}

    @property
    def registry(self) -> IdentityRegistry:
        return self._registry

    def get(self, module_id: int) -> ModuleRecord:
        record = self._records.get(module_id)
        if record is None:
            raise NotFoundError(module_id)
        return record

    def has(self, module_id: int) -> bool:
        return module_id in self._records

    def create(self, path: str, kind: str = ModuleKind.INTERNAL) -> ModuleRecord:
        existing = self._registry.resolve(path)
        if existing is not None and existing in self._records:
            raise AlreadyRegisteredError(path, existing)

        module_id = self._registry.assign(path)
        record: ModuleRecord
        if kind == ModuleKind.EXTERNAL:
            record = ExternalModule(id=module_id, path=path)
        else:
            record = InternalModule(id=module_id, path=path)
        self._records[module_id] = record

        logger.debug(f"Created {kind} module {record}")
        return record

    def replace(self, record: ModuleRecord) -> None:
        if record.id not in self._records:
            raise NotFoundError(record.id)
        self._records[record.id] = record

    def delete(self, module_id: int) -> ModuleRecord:
        record = self._records.pop(module_id, None)
        if record is None:
            raise NotFoundError(module_id)
        self._registry.release(record.path)
        logger.debug(f"Deleted module {record}")
        return record

    def values(self) -> List[ModuleRecord]:
        return list(self._records.values())

    def clear(self) -> None:
        self._records.clear()
        self._registry.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ModuleRecord]:
        return iter(self.values())
