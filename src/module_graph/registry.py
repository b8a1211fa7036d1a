# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Module identity: canonical paths and stable integer ids.

- PathNormalizer: Rewrites caller paths to the canonical root-relative form
- IdentityRegistry: Maps canonical paths to monotonically assigned ids

The registry is the only source of identity stability across repeated
loads. Ids are never reissued while the registry is live: releasing a path
retires its id, and binding the same path again allocates a fresh one.
"""

import logging
import os
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class PathNormalizer:
    """Canonicalizes module paths relative to a root directory.

    Relative paths are interpreted against the root; absolute paths are
    taken as-is. Both are then rewritten relative to the root with "/"
    separators, so "src/a.js", "./src/a.js" and "<root>/src/a.js" resolve
    to the same key.

    This is a pure string operation: the file system is never consulted
    and symlinks are not resolved.
    """

    def __init__(self, root: PathLike):
        self.root = os.path.abspath(os.fspath(root))

    def normalize(self, path: PathLike) -> str:
        """Compute the canonical key for a path.

        Args:
            path: Absolute or root-relative path.

        Returns:
            Root-relative path using "/" separators, or the normalized
            absolute path if it cannot be expressed relative to root.
        """
        raw = os.fspath(path)
        absolute = os.path.normpath(os.path.join(self.root, raw))
        try:
            relative = os.path.relpath(absolute, self.root)
        except ValueError:
            # On Windows, relpath fails for paths on different drives
            return absolute.replace(os.sep, "/")
        return relative.replace(os.sep, "/")


class IdentityRegistry:
    """Bijective mapping between canonical paths and module ids.

    Thread Safety:
    - NOT thread-safe: callers serialize all access
    """

    def __init__(self) -> None:
        self._ids: Dict[str, int] = {}
        self._paths: Dict[int, str] = {}
        self._next_id = 0

    def resolve(self, path: str) -> Optional[int]:
        """Get the id bound to a canonical path, or None if unseen."""
        return self._ids.get(path)

    def path_of(self, module_id: int) -> Optional[str]:
        """Get the canonical path bound to an id, or None if unbound."""
        return self._paths.get(module_id)

    def assign(self, path: str) -> int:
        """Get the id for a path, allocating the next id on first reference.

        Idempotent under repeated calls with the same path.
        """
        module_id = self._ids.get(path)
        if module_id is not None:
            return module_id

        module_id = self._next_id
        self._next_id += 1
        self._ids[path] = module_id
        self._paths[module_id] = path
        logger.debug(f"Assigned id {module_id} to {path}")
        return module_id

    def release(self, path: str) -> Optional[int]:
        """Drop the binding for a path. The id itself is retired, not reused.

        Returns:
            The released id, or None if the path was not bound.
        """
        module_id = self._ids.pop(path, None)
        if module_id is not None:
            del self._paths[module_id]
        return module_id

    def clear(self) -> None:
        """Drop every binding and restart the id counter."""
        self._ids.clear()
        self._paths.clear()
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, path: object) -> bool:
        return path in self._ids
