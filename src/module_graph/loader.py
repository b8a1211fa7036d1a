# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Manifest loader: merges decoded build manifests into the graph.

Input is a build manifest that has already been decoded into records of
the form:

    {"modulePath": "src/app.js",
     "imports": [{"path": "src/util.js", "external": False, "originalSpecifier": "./util"}]}

Loading is additive and idempotent per edge:
- Every record's source module is resolved or created
- Every import target is resolved or created (external if flagged)
- Each edge is linked with the original specifier as its label

Re-linking an existing edge overwrites its label, so loading the same
manifest twice yields the same edge set. Loading a different manifest on
top merges new modules and edges without touching the rest of the graph.

All records are decoded and validated before the first mutation, so a
malformed manifest leaves the graph unchanged.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from module_graph.exceptions import ManifestError
from module_graph.models import ExternalModule, ModuleKind, ModuleRecord
from module_graph.mutator import GraphMutator
from module_graph.store import ModuleStore

logger = logging.getLogger(__name__)


@dataclass
class ImportRecord:
    """One import edge declared by a manifest record."""

    path: str  # Resolved path of the imported module
    external: bool = False  # True for third-party/runtime boundary modules
    original_specifier: Optional[str] = None  # Literal specifier, e.g. "./util"

    @property
    def label(self) -> str:
        """Edge label: the original specifier, or the path for externals."""
        if self.original_specifier is not None:
            return self.original_specifier
        return self.path

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict using the manifest key names."""
        result: Dict[str, Any] = {"path": self.path, "external": self.external}
        if self.original_specifier is not None:
            result["originalSpecifier"] = self.original_specifier
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ImportRecord":
        """Deserialize from a decoded manifest import entry.

        Accepts camelCase ("originalSpecifier"), snake_case
        ("original_specifier"), and the bundler's own "original" key.

        Raises:
            ManifestError: If the entry has no string "path".
        """
        if not isinstance(data, Mapping) or not isinstance(data.get("path"), str):
            raise ManifestError(f"import entry must have a string 'path': {data!r}")

        specifier = data.get("originalSpecifier")
        if specifier is None:
            specifier = data.get("original_specifier")
        if specifier is None:
            specifier = data.get("original")

        return cls(
            path=data["path"],
            external=bool(data.get("external", False)),
            original_specifier=specifier,
        )


@dataclass
class ManifestRecord:
    """A module path plus the imports the manifest declares for it."""

    module_path: str
    imports: List[ImportRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict using the manifest key names."""
        return {
            "modulePath": self.module_path,
            "imports": [imp.to_dict() for imp in self.imports],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ManifestRecord":
        """Deserialize from a decoded manifest record.

        Raises:
            ManifestError: If the record has no module path or its imports
                are not a list of import entries.
        """
        if not isinstance(data, Mapping):
            raise ManifestError(f"manifest record must be a mapping: {data!r}")

        module_path = data.get("modulePath", data.get("module_path"))
        if not isinstance(module_path, str) or not module_path:
            raise ManifestError(f"manifest record must have a 'modulePath': {data!r}")

        imports = data.get("imports") or []
        if not isinstance(imports, list):
            raise ManifestError(f"'imports' of {module_path} must be a list")

        return cls(
            module_path=module_path,
            imports=[
                imp if isinstance(imp, ImportRecord) else ImportRecord.from_dict(imp)
                for imp in imports
            ],
        )


Manifest = Union[str, Mapping[str, Any], Iterable[Union[ManifestRecord, Mapping[str, Any]]]]


@dataclass
class LoadStats:
    """Summary of one load() call."""

    records: int = 0
    modules_created: int = 0
    modules_promoted: int = 0
    edges_linked: int = 0
    elapsed_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "records": self.records,
            "modules_created": self.modules_created,
            "modules_promoted": self.modules_promoted,
            "edges_linked": self.edges_linked,
            "elapsed_ms": self.elapsed_ms,
        }


def decode_manifest(manifest: Manifest) -> List[ManifestRecord]:
    """Normalize any accepted manifest shape into a list of records.

    Accepted shapes:
    - JSON string of any shape below
    - {"inputs": {module_path: {"imports": [...]}}} (bundler metafile)
    - {module_path: {"imports": [...]}}
    - A single record dict with "modulePath"
    - Iterable of record dicts or ManifestRecord instances

    Raises:
        ManifestError: If the manifest cannot be decoded or a record is
            malformed. Internal imports must carry an original specifier.
    """
    if isinstance(manifest, (str, bytes)):
        try:
            manifest = json.loads(manifest)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ManifestError(f"manifest is not valid JSON: {e}") from e

    if isinstance(manifest, Mapping) and ("modulePath" in manifest or "module_path" in manifest):
        raw_records: List[Any] = [manifest]
    elif isinstance(manifest, Mapping):
        inputs = manifest.get("inputs", manifest)
        if not isinstance(inputs, Mapping):
            raise ManifestError("manifest 'inputs' must be a mapping")
        raw_records = []
        for module_path, entry in inputs.items():
            if not isinstance(entry, Mapping):
                raise ManifestError(f"manifest entry for {module_path} must be a mapping")
            raw_records.append({"modulePath": module_path, "imports": entry.get("imports")})
    else:
        raw_records = list(manifest)

    records = [
        raw if isinstance(raw, ManifestRecord) else ManifestRecord.from_dict(raw)
        for raw in raw_records
    ]

    for record in records:
        for imp in record.imports:
            if not imp.external and imp.original_specifier is None:
                raise ManifestError(
                    f"internal import {imp.path} of {record.module_path} "
                    f"must have an original specifier"
                )
    return records


class ManifestLoader:
    """Creates and merges modules and edges from decoded manifests.

    Thread Safety:
    - NOT thread-safe: callers serialize load() with every other mutation
    """

    def __init__(
        self,
        store: ModuleStore,
        mutator: GraphMutator,
        normalize: Callable[[str], str],
        slow_threshold_ms: int = 200,
    ):
        self.store = store
        self.mutator = mutator
        self.normalize = normalize
        self.slow_threshold_ms = slow_threshold_ms

    def _resolve_or_create(self, path: str, kind: str, stats: LoadStats) -> ModuleRecord:
        module_id = self.store.registry.resolve(path)
        if module_id is not None and self.store.has(module_id):
            return self.store.get(module_id)

        record = self.store.create(path, kind)
        if kind == ModuleKind.EXTERNAL:
            record.meta["external"] = True
        stats.modules_created += 1
        return record

    def _load_record(self, record: ManifestRecord, stats: LoadStats) -> None:
        source = self._resolve_or_create(
            self.normalize(record.module_path), ModuleKind.INTERNAL, stats
        )
        if isinstance(source, ExternalModule):
            # Seen earlier only as an external import; it now has content
            source = self.mutator.promote(source)
            stats.modules_promoted += 1

        imports_meta = source.meta.setdefault("imports", {})
        for imp in record.imports:
            kind = ModuleKind.EXTERNAL if imp.external else ModuleKind.INTERNAL
            target = self._resolve_or_create(self.normalize(imp.path), kind, stats)

            self.mutator.link(source, target, imp.label)
            imports_meta[imp.label] = {"id": target.id, "path": target.path}
            stats.edges_linked += 1

    def load(self, manifest: Manifest) -> LoadStats:
        """Merge a decoded manifest into the graph.

        Args:
            manifest: Any shape accepted by decode_manifest().

        Returns:
            LoadStats describing what changed.

        Raises:
            ManifestError: If the manifest is malformed (graph unchanged).
        """
        start_time = time.time()
        records = decode_manifest(manifest)

        stats = LoadStats(records=len(records))
        for record in records:
            self._load_record(record, stats)

        elapsed = time.time() - start_time
        stats.elapsed_ms = elapsed * 1000

        logger.info(
            f"Loaded {stats.records} manifest records in {stats.elapsed_ms:.1f}ms: "
            f"{stats.modules_created} modules created, {stats.modules_promoted} promoted, "
            f"{stats.edges_linked} edges linked",
            extra={"extra_fields": stats.to_dict()},
        )
        if stats.elapsed_ms > self.slow_threshold_ms:
            logger.warning(
                f"Manifest load took {stats.elapsed_ms:.1f}ms "
                f"(threshold: {self.slow_threshold_ms}ms)"
            )
        return stats
