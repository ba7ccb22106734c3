"""
File Scanner for complexity analysis

Walks a target file or directory, classifies each entry, and streams every
eligible file to count characters and lines without loading it whole.

Skip rules, in precedence order:
1. Hidden entries (leading dot) are excluded, including everything below a
   hidden directory.
2. Anything under a repository-metadata directory (.git, .hg, ...) is
   excluded.
3. Files with a binary/media extension are excluded from content analysis.
4. Files larger than the size ceiling are treated as binary and excluded.

Below the target, rules 1 and 2 are evaluated on the relative path. The
target itself is excluded when its own name is hidden or any segment of its
path is a metadata directory, but a target that merely lives under a dotted
directory (~/.config/tool) is still analyzed.

Failures on individual entries are logged as warnings and the entry is
skipped. Only a missing target is fatal.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Any, Iterator

from .complexity import FileStats
from .config import AnalyzerConfig
from .errors import TargetNotFoundError


logger = logging.getLogger(__name__)


@dataclass
class ScanOutcome:
    """Per-file counts and the mtimes observed while producing them."""

    file_stats: list[FileStats] = field(default_factory=list)
    mod_times: dict[str, int] = field(default_factory=dict)  # path -> st_mtime_ns
    skipped_files: int = 0
    errors: int = 0

    def add(self, stats: FileStats) -> None:
        self.file_stats.append(stats)
        self.mod_times[stats.path] = stats.mtime_ns


def is_hidden(name: str) -> bool:
    """Check if a file or directory name is hidden."""
    return name.startswith(".")


def should_descend(dir_name: str, config: AnalyzerConfig) -> bool:
    """Check if the walker should enter a directory."""
    if is_hidden(dir_name):
        return False
    return dir_name not in config.metadata_directories


def should_analyze_file(relative_path: str | PurePath, config: AnalyzerConfig) -> bool:
    """
    Check if a file, given relative to the target, passes the name-based rules.

    Applies the hidden, metadata-directory and extension rules. The size
    rule needs file metadata and is applied by ``is_likely_binary``.
    """
    parts = PurePath(relative_path).parts

    for part in parts:
        if part in (".", ".."):
            continue
        if is_hidden(part):
            return False
        if part in config.metadata_directories:
            return False

    return not has_binary_extension(relative_path, config)


def is_excluded_target(target: str | PurePath, config: AnalyzerConfig) -> bool:
    """
    Apply the hidden and metadata rules to the target itself.

    Only the target's own name is checked for a leading dot; its ancestors
    are not. Every segment is checked against the metadata directories.
    """
    path = PurePath(target)
    if is_hidden(path.name):
        return True
    return any(part in config.metadata_directories for part in path.parts)


def has_binary_extension(path: str | PurePath, config: AnalyzerConfig) -> bool:
    """Check the binary/media extension denylist (case-insensitive)."""
    return PurePath(path).suffix.lower() in config.binary_extensions


def is_likely_binary(path: str | PurePath, size: int, config: AnalyzerConfig) -> bool:
    """
    Fast binary detection from extension and size.

    Very large files are assumed to be binary (or generated) regardless of
    their extension.
    """
    if size > config.max_file_size_bytes:
        return True
    return has_binary_extension(path, config)


def analyze_file(
    path: Path,
    config: AnalyzerConfig,
) -> FileStats | None:
    """
    Stream a file and count its characters and lines.

    The file is read in fixed-size chunks. A final line without a trailing
    newline still counts as a line. The mtime comes from ``fstat`` on the
    open handle so it describes the same file that was read.

    Returns:
        FileStats, or None if the file turned out to be binary by size.

    Raises:
        OSError: if the file cannot be opened or read.
    """
    with open(path, "rb") as f:
        info = os.fstat(f.fileno())

        if is_likely_binary(path, info.st_size, config):
            return None

        chars = 0
        lines = 0
        last_byte = b""

        while True:
            chunk = f.read(config.read_chunk_bytes)
            if not chunk:
                break
            chars += len(chunk)
            lines += chunk.count(b"\n")
            last_byte = chunk[-1:]

    if chars > 0 and last_byte != b"\n":
        lines += 1

    return FileStats(
        path=str(path),
        lines=lines,
        chars=chars,
        mtime_ns=info.st_mtime_ns,
    )


def iter_candidate_files(
    target: Path,
    config: AnalyzerConfig,
    log: Any = logger,
) -> Iterator[Path]:
    """
    Yield the regular files under ``target`` that pass the name-based rules.

    Symlinked directories are not followed, which also rules out symlink
    loops. Symlinked files are yielded and read through the link.
    """
    if is_excluded_target(target, config):
        logger.debug(f"Target {target} is hidden or repository metadata, skipping")
        return

    if not target.is_dir():
        if target.is_file() and not has_binary_extension(target, config):
            yield target
        return

    yield from _walk_directory(target, target, config, log)


def _walk_directory(
    root: Path,
    directory: Path,
    config: AnalyzerConfig,
    log: Any,
) -> Iterator[Path]:
    try:
        entries = sorted(directory.iterdir())
    except OSError as e:
        log.warning(f"Warning: Error accessing path {directory}: {e}")
        return

    for item in entries:
        try:
            if item.is_symlink() and item.is_dir():
                continue
            if item.is_dir():
                if should_descend(item.name, config):
                    yield from _walk_directory(root, item, config, log)
            elif item.is_file():
                if should_analyze_file(item.relative_to(root), config):
                    yield item
        except OSError as e:
            log.warning(f"Warning: Error accessing path {item}: {e}")


def scan_target(
    target: str,
    config: AnalyzerConfig | None = None,
    log: Any = None,
) -> ScanOutcome:
    """
    Walk and analyze a normalized target path.

    Args:
        target: Absolute path to a file or directory
        config: Analyzer configuration
        log: Anything with a ``warning(msg)`` method; defaults to this
            module's logger

    Returns:
        ScanOutcome with the counted files and their modification times

    Raises:
        TargetNotFoundError: if the target does not exist
    """
    config = config or AnalyzerConfig()
    log = log if log is not None else logger

    root = Path(target)
    try:
        root.stat()
    except OSError as e:
        raise TargetNotFoundError(target) from e

    outcome = ScanOutcome()

    for file_path in iter_candidate_files(root, config, log):
        try:
            stats = analyze_file(file_path, config)
        except OSError as e:
            log.warning(f"Warning: Cannot analyze file {file_path}: {e}")
            outcome.errors += 1
            continue

        if stats is None:
            logger.debug(f"Skipping likely binary file {file_path}")
            outcome.skipped_files += 1
            continue

        outcome.add(stats)

    return outcome
