"""
Complexity bands and token estimation.

Reduces per-file counts into totals, derives a token estimate with a fixed
character divisor, and classifies the estimate into an ordinal band:

    tokens < 10k          -> Simple
    10k  <= tokens < 50k  -> Medium
    50k  <= tokens < 200k -> Large
    tokens >= 200k        -> XLarge

A value exactly at a threshold belongs to the higher band. Model selection
relies on these exact boundaries.
"""

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any, Iterable


# Complexity thresholds in tokens
SIMPLE_THRESHOLD = 10_000
MEDIUM_THRESHOLD = 50_000
LARGE_THRESHOLD = 200_000

# ~4 characters per token; a heuristic, not a tokenizer
CHARS_PER_TOKEN = 4


class ComplexityBand(IntEnum):
    """Ordinal size category of an analyzed target."""

    SIMPLE = 0
    MEDIUM = 1
    LARGE = 2
    XLARGE = 3

    @property
    def display_name(self) -> str:
        return _BAND_NAMES.get(self, "Unknown")

    def __str__(self) -> str:
        return self.display_name


_BAND_NAMES = {
    ComplexityBand.SIMPLE: "Simple",
    ComplexityBand.MEDIUM: "Medium",
    ComplexityBand.LARGE: "Large",
    ComplexityBand.XLARGE: "XLarge",
}


def estimate_tokens(chars: int, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Convert a character count to an estimated token count (truncating)."""
    return chars // chars_per_token


def categorize_complexity(tokens: int) -> ComplexityBand:
    """Classify a token estimate into its complexity band."""
    if tokens < SIMPLE_THRESHOLD:
        return ComplexityBand.SIMPLE
    if tokens < MEDIUM_THRESHOLD:
        return ComplexityBand.MEDIUM
    if tokens < LARGE_THRESHOLD:
        return ComplexityBand.LARGE
    return ComplexityBand.XLARGE


@dataclass(frozen=True)
class FileStats:
    """Counts for a single analyzed file."""

    path: str
    lines: int
    chars: int
    mtime_ns: int


@dataclass(frozen=True)
class AnalysisResult:
    """Snapshot of a complexity analysis."""

    total_files: int
    total_lines: int
    total_chars: int
    estimated_tokens: int
    complexity: ComplexityBand
    analysis_time: float = 0.0  # seconds
    cache_hit: bool = False

    def with_timing(self, analysis_time: float, cache_hit: bool) -> "AnalysisResult":
        """Return a copy carrying the timing and cache flag of one call."""
        return replace(self, analysis_time=analysis_time, cache_hit=cache_hit)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_files": self.total_files,
            "total_lines": self.total_lines,
            "total_chars": self.total_chars,
            "estimated_tokens": self.estimated_tokens,
            "complexity": int(self.complexity),
            "analysis_time_ns": int(self.analysis_time * 1_000_000_000),
            "cache_hit": self.cache_hit,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisResult":
        return cls(
            total_files=int(data["total_files"]),
            total_lines=int(data["total_lines"]),
            total_chars=int(data["total_chars"]),
            estimated_tokens=int(data["estimated_tokens"]),
            complexity=ComplexityBand(int(data["complexity"])),
            analysis_time=int(data.get("analysis_time_ns", 0)) / 1_000_000_000,
            cache_hit=bool(data.get("cache_hit", False)),
        )


def aggregate(
    file_stats: Iterable[FileStats],
    chars_per_token: int = CHARS_PER_TOKEN
) -> AnalysisResult:
    """
    Reduce per-file counts into an AnalysisResult.

    Pure function: no I/O, timing fields left at their defaults.
    """
    total_files = 0
    total_lines = 0
    total_chars = 0

    for stats in file_stats:
        total_files += 1
        total_lines += stats.lines
        total_chars += stats.chars

    tokens = estimate_tokens(total_chars, chars_per_token)

    return AnalysisResult(
        total_files=total_files,
        total_lines=total_lines,
        total_chars=total_chars,
        estimated_tokens=tokens,
        complexity=categorize_complexity(tokens),
    )
