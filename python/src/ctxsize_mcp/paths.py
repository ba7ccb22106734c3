"""
Path normalization for cache identity.
"""

import os

from .errors import ResolutionError


def normalize_target(target: str | bytes | os.PathLike) -> str:
    """
    Convert a caller-supplied path into its canonical absolute form.

    Relative paths are joined to the current working directory and
    ``.``/``..`` segments are collapsed. Symlinks are not resolved, so two
    links to the same tree are cached separately.

    Raises:
        ResolutionError: if no absolute form can be produced (empty target,
            NUL byte, or the working directory cannot be read).
    """
    try:
        raw = os.fsdecode(target)
    except TypeError as e:
        raise ResolutionError(repr(target), str(e)) from e

    if not raw:
        raise ResolutionError(raw, "empty path")

    if "\x00" in raw:
        raise ResolutionError(raw, "path contains null bytes")

    try:
        return os.path.abspath(raw)
    except (OSError, ValueError) as e:
        # os.getcwd() fails when the working directory was removed or is unreadable
        raise ResolutionError(raw, f"{type(e).__name__}: {e}") from e


def cache_key(normalized_path: str) -> str:
    """
    Cache identity for a normalized target.

    Absolute paths are already unique, so the path itself is the key. A
    hashed key could let two targets collide and silently share a result.
    """
    return normalized_path
