# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Public query and mutation surface of the module dependency graph.

DependencyGraph wires the engine components together:
- PathNormalizer + IdentityRegistry: canonical paths and stable ids
- InMemoryModuleStore: module records
- GraphMutator: the only writer of edges
- traversal: breadth-first closure queries
- ConsistencyValidator: strict-mode gate on dependency lists
- ManifestLoader: additive ingestion of decoded manifests

Keys accepted by every query are either a module id (int) or a path
(absolute or relative to the configured root). All validation happens
before any edge is touched, so a rejected mutation leaves the graph
unchanged.

Thread Safety:
- NOT thread-safe: reads observe the live store without copying, so
  callers must serialize mutations with respect to each other and to reads.
"""

import logging
import os
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from module_graph.config import Config
from module_graph.exceptions import (
    AlreadyRegisteredError,
    DanglingReferenceError,
    DependencyGraphError,
    InvalidEdgeError,
    NotFoundError,
)
from module_graph.loader import LoadStats, Manifest, ManifestLoader
from module_graph.models import InternalModule, Module, ModuleKind, ModuleRecord, is_external
from module_graph.mutator import GraphMutator
from module_graph.registry import PathNormalizer
from module_graph.store import InMemoryModuleStore
from module_graph.traversal import dependency_closure, inverse_closure
from module_graph.validator import ConsistencyValidator, import_specifiers

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0"

ModuleKey = Union[int, str, "os.PathLike[str]"]
# {"key": ..., "source": ...}, (key, source), or a bare key
EdgeSpec = Union[Mapping[str, Any], Tuple[ModuleKey, Optional[str]], ModuleKey]

ResolvedEdge = Tuple[ModuleRecord, Optional[str]]


class DependencyGraph:
    """In-memory module dependency graph with impact-analysis queries.

    Usage:
        graph = DependencyGraph(root="/path/to/project")
        graph.load(records)
        affected = graph.inverse_dependencies_of("src/util.js")
    """

    def __init__(
        self,
        root: Optional[Union[str, "os.PathLike[str]"]] = None,
        strict: Optional[bool] = None,
        config: Optional[Config] = None,
    ) -> None:
        """Initialize an empty graph.

        Args:
            root: Base for path normalization. Overrides config; defaults to
                the current working directory.
            strict: Enable import-metadata validation. Overrides config;
                defaults to False.
            config: Configuration values. If None, built-in defaults are used
                and no configuration file is read.
        """
        self._config = config if config is not None else Config.from_dict({})
        self._root = os.fspath(root) if root is not None else (self._config.root or os.getcwd())
        self._strict = self._config.strict if strict is None else strict
        self._slow_threshold_ms = self._config.log_slow_operations_ms

        self._normalizer = PathNormalizer(self._root)
        self._store = InMemoryModuleStore()
        self._mutator = GraphMutator(self._store)
        self._validator = ConsistencyValidator(self._resolve_path)
        self._loader = ManifestLoader(
            self._store,
            self._mutator,
            self._normalizer.normalize,
            slow_threshold_ms=self._slow_threshold_ms,
        )

    # =========================================================================
    # Options and size
    # =========================================================================

    @property
    def root(self) -> str:
        return self._normalizer.root

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def size(self) -> int:
        """Number of live modules."""
        return len(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return self.has_module(key)  # type: ignore[arg-type]

    def set_options(
        self,
        root: Optional[Union[str, "os.PathLike[str]"]] = None,
        strict: Optional[bool] = None,
    ) -> None:
        """Change root and/or strict mode after construction.

        Existing canonical paths are kept as-is; changing the root of a
        non-empty graph only affects how new keys are normalized.
        """
        if root is not None:
            if self.size:
                logger.warning(
                    f"Changing root of a graph with {self.size} modules; "
                    f"existing paths stay relative to {self.root}"
                )
            self._root = os.fspath(root)
            self._normalizer = PathNormalizer(self._root)
            self._loader.normalize = self._normalizer.normalize
        if strict is not None:
            self._strict = strict

    # =========================================================================
    # Key resolution
    # =========================================================================

    def _resolve_path(self, path: Union[str, "os.PathLike[str]"]) -> Optional[int]:
        module_id = self._store.registry.resolve(self._normalizer.normalize(path))
        if module_id is not None and self._store.has(module_id):
            return module_id
        return None

    def _lookup(self, key: ModuleKey) -> ModuleRecord:
        """Resolve a key to its live record.

        Raises:
            NotFoundError: If the key has no live binding.
            TypeError: If the key is neither an id nor a path.
        """
        if isinstance(key, bool):
            raise TypeError(f"module key must be an int id or a path, got {key!r}")
        if isinstance(key, int):
            return self._store.get(key)
        if isinstance(key, (str, os.PathLike)):
            module_id = self._resolve_path(key)
            if module_id is None:
                raise NotFoundError(key)
            return self._store.get(module_id)
        raise TypeError(f"module key must be an int id or a path, got {type(key).__name__}")

    def _neighbor(self, key: ModuleKey, context: str) -> ModuleRecord:
        try:
            return self._lookup(key)
        except NotFoundError:
            raise DanglingReferenceError(key, context) from None

    def _resolve_edges(self, specs: Iterable[EdgeSpec], context: str) -> List[ResolvedEdge]:
        resolved: List[ResolvedEdge] = []
        for spec in specs:
            source: Optional[str] = None
            if isinstance(spec, Mapping):
                if "key" not in spec:
                    raise ValueError(f"edge spec must have a 'key': {spec!r}")
                key = spec["key"]
                source = spec.get("source")
            elif isinstance(spec, (tuple, list)):
                if len(spec) != 2:
                    raise ValueError(f"edge spec tuple must be (key, source): {spec!r}")
                key, source = spec
            else:
                key = spec
            resolved.append((self._neighbor(key, context), source))
        return resolved

    def _snapshot(self, module_id: int) -> Module:
        if not self._store.has(module_id):
            raise DanglingReferenceError(module_id, "building module snapshot")
        return Module.from_record(self._store.get(module_id))

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self, manifest: Manifest) -> LoadStats:
        """Merge a decoded manifest into the graph.

        Args:
            manifest: Records of the form {"modulePath", "imports"}, a
                bundler metafile with "inputs", or a JSON string of either.

        Returns:
            LoadStats describing what changed.

        Raises:
            ManifestError: If the manifest is malformed (graph unchanged).
        """
        return self._loader.load(manifest)

    # =========================================================================
    # Module queries
    # =========================================================================

    def get_module(self, key: ModuleKey) -> Module:
        """Get a snapshot of a module by path or id.

        Raises:
            NotFoundError: If the key has no live binding.
        """
        return Module.from_record(self._lookup(key))

    def has_module(self, key: ModuleKey) -> bool:
        """Check if a module exists. Never raises."""
        try:
            self._lookup(key)
            return True
        except (DependencyGraphError, TypeError):
            return False

    def module_id(self, path: Union[str, "os.PathLike[str]"]) -> Optional[int]:
        """Get the id of a live module by path, or None."""
        return self._resolve_path(path)

    def modules(self) -> List[Module]:
        """Get snapshots of all live modules in id order."""
        return [Module.from_record(record) for record in self._store.values()]

    def dependencies_of(self, key: ModuleKey) -> List[Module]:
        """Get the modules a module imports directly.

        External modules have no dependencies and return an empty list.

        Raises:
            NotFoundError: If the key has no live binding.
        """
        record = self._lookup(key)
        if not isinstance(record, InternalModule):
            return []
        return [self._snapshot(module_id) for module_id in record.dependencies]

    def dependents_of(self, key: ModuleKey) -> List[Module]:
        """Get the modules that import a module directly.

        External modules do not track dependents and return an empty list.

        Raises:
            NotFoundError: If the key has no live binding.
        """
        record = self._lookup(key)
        if not isinstance(record, InternalModule):
            return []
        return [self._snapshot(module_id) for module_id in record.dependents]

    def inverse_dependencies_of(self, key: ModuleKey) -> List[Module]:
        """Get every module transitively affected by a change to a module.

        Breadth-first over dependents; the module itself is excluded.

        Raises:
            NotFoundError: If the key has no live binding.
        """
        record = self._lookup(key)
        return [self._snapshot(module_id) for module_id in inverse_closure(self._store, record.id)]

    def transitive_dependencies_of(self, key: ModuleKey) -> List[Module]:
        """Get every module a module imports, directly or transitively.

        Breadth-first over dependencies; external modules are included but
        not expanded, and the module itself is excluded.

        Raises:
            NotFoundError: If the key has no live binding.
        """
        record = self._lookup(key)
        return [
            self._snapshot(module_id) for module_id in dependency_closure(self._store, record.id)
        ]

    # =========================================================================
    # Mutations
    # =========================================================================

    def _dependency_labels(
        self, edges: Sequence[ResolvedEdge], meta: Optional[Mapping[str, Any]]
    ) -> List[Tuple[ModuleRecord, str]]:
        # Bare keys take their label from import metadata, else the target path
        labeled = []
        for target, source in edges:
            if source is None:
                source = self._validator.label_for(target.id, meta) or target.path
            labeled.append((target, source))
        return labeled

    def _dependent_labels(
        self, module: Optional[ModuleRecord], edges: Sequence[ResolvedEdge], default: str
    ) -> List[Tuple[ModuleRecord, str]]:
        labeled = []
        for importer, source in edges:
            if not isinstance(importer, InternalModule):
                raise InvalidEdgeError(f"external module '{importer}' cannot depend on '{default}'")
            if source is None:
                existing = importer.dependencies.get(module.id) if module is not None else None
                source = existing if existing is not None else default
            labeled.append((importer, source))
        return labeled

    def _inbound_labels(self, module: ModuleRecord) -> Dict[int, str]:
        """Map each importer id (self excluded) to the specifier it uses for module."""
        labels = {}
        for importer_id in self._mutator.inbound_ids(module):
            if importer_id == module.id:
                continue
            if not self._store.has(importer_id):
                raise DanglingReferenceError(importer_id, f"collecting importers of {module}")
            importer = self._store.get(importer_id)
            if isinstance(importer, InternalModule) and module.id in importer.dependencies:
                labels[importer_id] = importer.dependencies[module.id]
        return labels

    def _sync_importer_imports(
        self, module: ModuleRecord, before: Mapping[int, str], after: Mapping[int, str]
    ) -> None:
        """Rewrite importers' "imports" metadata for edges changed from the target side.

        Importers whose edge to module was dropped lose every specifier that
        resolves to module; importers whose edge was added or relabeled get
        an entry for the new specifier. Importers without an "imports"
        mapping are left alone unless strict mode requires one. Module must
        still be live so path-valued targets resolve.
        """
        for importer_id in set(before) | set(after):
            if importer_id == module.id or before.get(importer_id) == after.get(importer_id):
                continue

            importer = self._store.get(importer_id)
            existing = import_specifiers(importer.meta)
            if existing is None and not (self._strict and importer_id in after):
                continue

            # Fresh dict: the stored meta may share nested objects with the caller
            imports = dict(existing or {})
            for specifier, target_id in self._validator.resolved_imports(importer.meta).items():
                if target_id == module.id:
                    del imports[specifier]
            if importer_id in after:
                imports[after[importer_id]] = {"id": module.id, "path": module.path}
            importer.meta["imports"] = imports

            logger.debug(f"Synced import metadata of {importer} for {module}")

    def add_module(
        self,
        path: Union[str, "os.PathLike[str]"],
        dependencies: Iterable[EdgeSpec] = (),
        dependents: Iterable[EdgeSpec] = (),
        meta: Optional[Mapping[str, Any]] = None,
        external: bool = False,
    ) -> Module:
        """Register a new module together with its edges.

        Args:
            path: Path of the new module.
            dependencies: Modules it imports, as {"key", "source"} dicts,
                (key, source) tuples, or bare keys.
            dependents: Modules that import it, in the same forms. Importers
                with "imports" metadata (all of them, in strict mode) get an
                entry for the new edge.
            meta: Caller metadata; in strict mode must carry "imports".
            external: Register a boundary module (no dependencies allowed).

        Returns:
            Snapshot of the new module.

        Raises:
            AlreadyRegisteredError: If the path is already bound.
            DanglingReferenceError: If a neighbor key has no live module.
            MetaMismatchError: If strict and meta does not cover dependencies.
            InvalidEdgeError: If external and dependencies are given, or a
                dependent is external.
        """
        canonical = self._normalizer.normalize(path)
        existing = self._resolve_path(canonical)
        if existing is not None:
            raise AlreadyRegisteredError(canonical, existing)

        context = f"adding {canonical}"
        dependency_edges = self._resolve_edges(dependencies, context)
        dependent_edges = self._resolve_edges(dependents, context)

        if external and dependency_edges:
            raise InvalidEdgeError(f"external module '{canonical}' cannot have dependencies")
        if self._strict and not external:
            self._validator.check(canonical, [target.id for target, _ in dependency_edges], meta)

        labeled_dependencies = self._dependency_labels(dependency_edges, meta)
        labeled_dependents = self._dependent_labels(None, dependent_edges, canonical)

        kind = ModuleKind.EXTERNAL if external else ModuleKind.INTERNAL
        record = self._store.create(canonical, kind)
        if meta is not None:
            record.meta = dict(meta)
        elif external:
            record.meta["external"] = True

        for target, label in labeled_dependencies:
            self._mutator.link(record, target, label)
        for importer, label in labeled_dependents:
            self._mutator.link(importer, record, label)
        self._sync_importer_imports(record, {}, self._inbound_labels(record))

        logger.debug(
            f"Added {kind} module {record} with {len(labeled_dependencies)} dependencies "
            f"and {len(labeled_dependents)} dependents"
        )
        return Module.from_record(record)

    def update_module(
        self,
        key: ModuleKey,
        dependencies: Optional[Iterable[EdgeSpec]] = None,
        dependents: Optional[Iterable[EdgeSpec]] = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> Module:
        """Replace a module's edge lists wholesale.

        Args:
            key: Path or id of the module.
            dependencies: New import list. None keeps the current one.
            dependents: New importer list. None re-links the current
                importers with their current specifiers. Importers whose edge
                is added, dropped or relabeled have their "imports" metadata
                rewritten to match.
            meta: New caller metadata. None keeps the current metadata.

        Returns:
            Snapshot of the updated module.

        Raises:
            NotFoundError: If the key has no live binding.
            DanglingReferenceError: If a neighbor key has no live module.
            MetaMismatchError: If strict and meta does not cover dependencies.
            InvalidEdgeError: If an external module would gain dependencies or
                a dependent is external.
        """
        start_time = time.time()
        record = self._lookup(key)
        context = f"updating {record.path}"
        effective_meta = meta if meta is not None else record.meta

        if dependencies is None:
            current = record.dependencies if isinstance(record, InternalModule) else {}
            dependency_edges: List[ResolvedEdge] = [
                (self._neighbor(dep_id, context), source) for dep_id, source in current.items()
            ]
        else:
            dependency_edges = self._resolve_edges(dependencies, context)

        if dependents is None:
            # Self-imports are governed by the dependency list
            dependent_edges: List[ResolvedEdge] = [
                (self._neighbor(importer_id, context), None)
                for importer_id in self._mutator.inbound_ids(record)
                if importer_id != record.id
            ]
        else:
            dependent_edges = self._resolve_edges(dependents, context)

        if is_external(record) and dependency_edges:
            raise InvalidEdgeError(f"external module '{record}' cannot have dependencies")
        if self._strict and dependencies is not None and not is_external(record):
            self._validator.check(
                record.path, [target.id for target, _ in dependency_edges], effective_meta
            )

        labeled_dependencies = self._dependency_labels(dependency_edges, effective_meta)
        labeled_dependents = self._dependent_labels(record, dependent_edges, record.path)

        previous_importers = self._inbound_labels(record)
        self._mutator.replace_edges(record, labeled_dependencies, labeled_dependents)
        self._sync_importer_imports(record, previous_importers, self._inbound_labels(record))
        if meta is not None:
            record.meta = dict(meta)

        elapsed = time.time() - start_time
        logger.debug(f"Updated module {record} in {elapsed * 1000:.1f}ms")
        if elapsed * 1000 > self._slow_threshold_ms:
            logger.warning(
                f"Update of {record} took {elapsed * 1000:.1f}ms "
                f"(threshold: {self._slow_threshold_ms}ms)"
            )
        return Module.from_record(record)

    def remove_module(self, key: ModuleKey) -> None:
        """Unlink a module from every neighbor and delete it.

        Specifiers in importers' "imports" metadata that resolve to the
        module are dropped. The module's id is retired; adding the same path
        later assigns a new id.

        Raises:
            NotFoundError: If the key has no live binding.
        """
        record = self._lookup(key)

        importers = [
            importer_id
            for importer_id in self._mutator.inbound_ids(record)
            if importer_id != record.id
        ]
        if importers:
            importer_paths = ", ".join(self._snapshot(importer_id).path for importer_id in importers)
            logger.warning(f"Removing {record.path}, which is still imported by: {importer_paths}")

        try:
            previous_importers = self._inbound_labels(record)
            self._mutator.unlink(record)
            self._sync_importer_imports(record, previous_importers, {})
            self._store.delete(record.id)
        except DependencyGraphError as e:
            logger.error(f"Graph removal failed for {record}: {e}")
            raise

        logger.debug(f"Removed module {record}")

    def reset(self) -> None:
        """Clear every module and restart id assignment."""
        removed = self.size
        self._store.clear()
        logger.info(f"Dependency graph reset ({removed} modules removed)")

    # =========================================================================
    # Consistency checks and export
    # =========================================================================

    def validate(self) -> Tuple[bool, List[str]]:
        """Validate graph structure for consistency.

        Checks for:
        - Path/id binding drift between registry and store
        - Dangling ids in any dependencies/dependents container
        - Bidirectional consistency of every internal edge
        - External modules recorded as dependents

        Returns:
            Tuple of (is_valid, error_messages).
        """
        errors: List[str] = []
        registry = self._store.registry
        records = self._store.values()

        if len(registry) != len(records):
            errors.append(
                f"Registry inconsistency: {len(registry)} bound paths "
                f"but {len(records)} live modules"
            )

        for record in records:
            if registry.resolve(record.path) != record.id:
                errors.append(f"Binding inconsistency: {record.path} is not bound to id {record.id}")
            elif registry.path_of(record.id) != record.path:
                errors.append(f"Binding inconsistency: id {record.id} is not bound to {record.path}")

            if not isinstance(record, InternalModule):
                continue

            for dep_id in record.dependencies:
                if not self._store.has(dep_id):
                    errors.append(f"Dangling dependency: {record} -> id {dep_id}")
                    continue
                target = self._store.get(dep_id)
                if isinstance(target, InternalModule) and record.id not in target.dependents:
                    errors.append(f"Index inconsistency: {record} -> {target} not in dependents")

            for dependent_id in record.dependents:
                if not self._store.has(dependent_id):
                    errors.append(f"Dangling dependent: {record} <- id {dependent_id}")
                    continue
                importer = self._store.get(dependent_id)
                if not isinstance(importer, InternalModule):
                    errors.append(f"External module {importer} recorded as dependent of {record}")
                elif record.id not in importer.dependencies:
                    errors.append(f"Index inconsistency: {record} <- {importer} not in dependencies")

        return len(errors) == 0, errors

    def detect_corruption(self) -> bool:
        """Run validate() and log any errors found.

        Returns:
            True if corruption detected, False if graph is valid.
        """
        is_valid, errors = self.validate()
        if not is_valid:
            logger.error(
                f"Graph corruption detected! Found {len(errors)} consistency errors. "
                f"Errors: {errors}"
            )
            return True
        return False

    def export_to_dict(self, limit: int = 10) -> Dict[str, Any]:
        """Export the graph to a JSON-compatible dict.

        Args:
            limit: Number of entries in graph_metadata.most_depended_upon.

        Returns:
            Dictionary containing:
            - metadata: timestamp, format version, root, strict, counts
            - modules: every module snapshot
            - edges: {source, target, specifier} for every dependency edge
            - graph_metadata: modules with the most importers
        """
        modules = self.modules()
        edges: List[Dict[str, Any]] = []
        importer_counts: Counter = Counter()
        for module in modules:
            for dep in module.dependencies:
                edges.append({"source": module.id, "target": dep.id, "specifier": dep.source})
                importer_counts[dep.id] += 1

        paths = {module.id: module.path for module in modules}
        most_depended_upon = [
            {"module": paths[module_id], "id": module_id, "dependent_count": count}
            for module_id, count in importer_counts.most_common(limit)
        ]

        return {
            "metadata": {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "version": EXPORT_FORMAT_VERSION,
                "root": self.root,
                "strict": self._strict,
                "total_modules": len(modules),
                "external_modules": sum(1 for module in modules if module.is_external),
                "total_edges": len(edges),
            },
            "modules": [module.to_dict() for module in modules],
            "edges": edges,
            "graph_metadata": {"most_depended_upon": most_depended_upon},
        }
