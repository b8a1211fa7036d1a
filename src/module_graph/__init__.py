# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""In-memory module dependency graph for bundler build manifests."""

from .config import Config, ConfigurationError
from .exceptions import (
    AlreadyRegisteredError,
    DanglingReferenceError,
    DependencyGraphError,
    InvalidEdgeError,
    ManifestError,
    MetaMismatchError,
    NotFoundError,
)
from .graph import DependencyGraph
from .loader import ImportRecord, LoadStats, ManifestLoader, ManifestRecord, decode_manifest
from .logging_setup import StructuredFormatter, setup_logging
from .models import Dependency, ExternalModule, InternalModule, Module, ModuleKind
from .registry import IdentityRegistry, PathNormalizer
from .store import InMemoryModuleStore, ModuleStore

__version__ = "0.1.0"

__all__ = [
    "DependencyGraph",
    "Config",
    "ConfigurationError",
    "DependencyGraphError",
    "NotFoundError",
    "AlreadyRegisteredError",
    "DanglingReferenceError",
    "MetaMismatchError",
    "InvalidEdgeError",
    "ManifestError",
    "ImportRecord",
    "ManifestRecord",
    "ManifestLoader",
    "LoadStats",
    "decode_manifest",
    "Module",
    "Dependency",
    "ModuleKind",
    "InternalModule",
    "ExternalModule",
    "IdentityRegistry",
    "PathNormalizer",
    "ModuleStore",
    "InMemoryModuleStore",
    "StructuredFormatter",
    "setup_logging",
]
