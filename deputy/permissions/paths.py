# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# deputy/permissions/paths.py
"""Path containment checks for directory-scoped permissions."""

import os
import re
from pathlib import Path

from deputy.core.exceptions import PathTraversalError


_SEGMENT_SPLIT = re.compile(r"[\\/]+")


def has_path_traversal(path: object) -> bool:
    """Check a raw path for parent-directory segments.

    Absolute paths and ``~`` are not traversal on their own; they are
    normalized and checked by :func:`resolve_within`.

    Args:
        path: Raw path as supplied in a tool call.

    Returns:
        True if the path is not a string or contains a ``..`` segment.
    """
    if not isinstance(path, str):
        return True
    return ".." in _SEGMENT_SPLIT.split(path)


def _normalize(path: str | Path, base_dir: str | Path | None) -> Path:
    """Expand ``~``, anchor relative paths at ``base_dir`` and resolve symlinks.

    ``Path.resolve(strict=False)`` resolves symlinks for the existing prefix
    and appends the non-existing remainder unchanged.
    """
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        anchor = Path(base_dir).expanduser() if base_dir is not None else Path.cwd()
        candidate = anchor / candidate
    return candidate.resolve(strict=False)


def _is_path_within_allowed(resolved_path: Path, allowed_dir: Path) -> bool:
    """Prefix test that does not let ``/allowed`` match ``/allowed-other``."""
    resolved_str = str(resolved_path)
    allowed_str = str(allowed_dir).rstrip(os.sep) or os.sep
    if resolved_str == allowed_str:
        return True
    prefix = allowed_str if allowed_str.endswith(os.sep) else allowed_str + os.sep
    return resolved_str.startswith(prefix)


def resolve_within(
    path: str,
    directory: str | Path,
    base_dir: str | Path | None = None,
) -> Path:
    """Resolve ``path`` and require it to stay inside ``directory``.

    Args:
        path: Path to check (absolute, relative or ``~``-prefixed).
        directory: Directory the path must resolve into.
        base_dir: Directory relative paths are anchored at (defaults to cwd).

    Returns:
        The fully resolved path.

    Raises:
        PathTraversalError: If the path contains ``..`` segments or resolves
            (after symlink resolution) outside ``directory``.
    """
    if has_path_traversal(path):
        raise PathTraversalError("Path traversal patterns not allowed in file paths")

    resolved_dir = _normalize(directory, base_dir)
    resolved_path = _normalize(path, base_dir)

    if not _is_path_within_allowed(resolved_path, resolved_dir):
        raise PathTraversalError(
            f"Path '{path}' resolves to '{resolved_path}' which is "
            f"outside allowed directory: {directory}"
        )
    return resolved_path


def is_path_within(
    path: str,
    directory: str | Path,
    base_dir: str | Path | None = None,
) -> bool:
    """Boolean form of :func:`resolve_within`; resolution errors count as outside."""
    try:
        resolve_within(path, directory, base_dir)
    except (PathTraversalError, OSError, RuntimeError, ValueError):
        return False
    return True
