"""
ctxsize MCP Server

Estimates the "complexity" of a file or directory: how many tokens its
source content would take in a model's context window, and which ordinal
band (Simple, Medium, Large, XLarge) that puts it in. A model selector uses
the estimate to pick a backend whose context window fits.

Estimates are cached per target path and revalidated on every lookup:
- entries expire after a short freshness window (30s by default)
- any tracked file that was modified or deleted invalidates the entry

Token counts are a fixed ~4 characters-per-token heuristic, not a real
tokenizer.
"""

__version__ = "1.0.0"

from .analysis_cache import AnalysisCache, CacheEntry
from .complexity import (
    AnalysisResult,
    ComplexityBand,
    CHARS_PER_TOKEN,
    categorize_complexity,
    estimate_tokens,
)
from .context_analyzer import (
    ContextAnalyzer,
    analyze_task_complexity_for_model_selection,
    get_complexity_analysis,
)
from .errors import (
    CacheFormatError,
    ComplexityAnalysisError,
    ConfigurationError,
    ResolutionError,
    TargetNotFoundError,
)

__all__ = [
    "ContextAnalyzer",
    "AnalysisCache",
    "CacheEntry",
    "AnalysisResult",
    "ComplexityBand",
    "CHARS_PER_TOKEN",
    "categorize_complexity",
    "estimate_tokens",
    "analyze_task_complexity_for_model_selection",
    "get_complexity_analysis",
    "ComplexityAnalysisError",
    "ConfigurationError",
    "ResolutionError",
    "TargetNotFoundError",
    "CacheFormatError",
]
