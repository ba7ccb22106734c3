"""
Pytest configuration and fixtures for ctxsize MCP tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from ctxsize_mcp.config import AnalyzerConfig
from ctxsize_mcp.analysis_cache import AnalysisCache
from ctxsize_mcp.context_analyzer import ContextAnalyzer


class FakeClock:
    """Manually advanced wall clock for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingLogger:
    """Logger stand-in that keeps warning messages."""

    def __init__(self):
        self.warnings: list[str] = []

    def warning(self, msg: str) -> None:
        self.warnings.append(msg)


def bump_mtime(path: Path, seconds: float = 10.0) -> None:
    """Move a file's mtime forward so the change is visible on any filesystem."""
    st = os.stat(path)
    bumped = st.st_mtime_ns + int(seconds * 1_000_000_000)
    os.utime(path, ns=(st.st_atime_ns, bumped))


@pytest.fixture
def analyzer_config() -> AnalyzerConfig:
    """Create a test analyzer configuration (independent of the environment)."""
    return AnalyzerConfig(
        cache_ttl_seconds=30.0,
        chars_per_token=4,
        cache_file=None,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def analysis_cache(clock: FakeClock) -> AnalysisCache:
    """Create an isolated cache driven by the fake clock."""
    return AnalysisCache(ttl_seconds=30.0, clock=clock)


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def analyzer(
    analyzer_config: AnalyzerConfig,
    analysis_cache: AnalysisCache,
    recording_logger: RecordingLogger,
) -> ContextAnalyzer:
    """Create a ContextAnalyzer with its own cache."""
    return ContextAnalyzer(analyzer_config, cache=analysis_cache, logger=recording_logger)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_project(temp_dir: Path) -> Path:
    """
    Create a small project tree with known sizes.

    Counted files:
    - main.py: 3 lines, 35 chars
    - src/utils/helpers.py: 2 lines, 21 chars (no trailing newline)
    - README.md: 1 line, 8 chars

    Totals: 3 files, 6 lines, 64 chars, 16 tokens. Everything else must
    be excluded.
    """
    project = temp_dir / "project"
    project.mkdir()

    (project / "main.py").write_bytes(b"import os\nprint(os.getcwd())\nx = 1\n")
    nested = project / "src" / "utils"
    nested.mkdir(parents=True)
    (nested / "helpers.py").write_bytes(b"def f():\n    return 1")
    (project / "README.md").write_bytes(b"# Title\n")

    # Excluded content
    (project / ".env").write_bytes(b"SECRET=1\n")
    hidden = project / ".hidden"
    hidden.mkdir()
    (hidden / "notes.txt").write_bytes(b"x" * 500)
    git_dir = project / ".git" / "objects"
    git_dir.mkdir(parents=True)
    (git_dir / "pack.txt").write_bytes(b"y" * 500)
    (project / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 200)
    (project / "archive.ZIP").write_bytes(b"PK" + b"\x00" * 200)

    return project
