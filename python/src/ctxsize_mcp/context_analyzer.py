"""
Context Analyzer

Public entry point for complexity analysis with caching:

    normalize path -> cache lookup -> [hit] return cached copy
                                   -> [miss] walk + analyze + aggregate
                                             -> cache write -> return result

Everything runs synchronously on the caller's thread. The async variant
hands the blocking call to a worker thread.
"""

import asyncio
import logging
import time
from typing import Any

from .analysis_cache import AnalysisCache
from .complexity import AnalysisResult, aggregate
from .config import AnalyzerConfig
from .errors import ConfigurationError
from .file_scanner import scan_target
from .paths import cache_key, normalize_target


logger = logging.getLogger(__name__)


class ContextAnalyzer:
    """
    Estimates the token footprint of a file or directory.

    Features:
    - Streaming line and character counting
    - Skips hidden, repository-metadata and binary content
    - TTL + per-file mtime cache validation
    - Safe for concurrent use from multiple threads
    """

    def __init__(
        self,
        config: AnalyzerConfig | None = None,
        cache: AnalysisCache | None = None,
        logger: Any = None,
    ):
        """
        Args:
            config: Analyzer configuration
            cache: Cache to use; a private one is created when omitted
            logger: Anything with a ``warning(msg)`` method, used for
                per-file diagnostics. Defaults to this module's logger.

        Raises:
            ConfigurationError: if ``config.validate()`` reports errors
        """
        self.config = config or AnalyzerConfig()

        errors = self.config.validate()
        if errors:
            raise ConfigurationError(errors)

        if cache is None:
            cache = AnalysisCache(ttl_seconds=self.config.cache_ttl_seconds)
        self.cache = cache
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def analyze_complexity(self, target: Any) -> AnalysisResult:
        """
        Analyze a target path, using the cache when it is still valid.

        Args:
            target: File or directory path, absolute or relative

        Returns:
            AnalysisResult; ``cache_hit`` tells whether it came from cache
            and ``analysis_time`` is the time spent in this call

        Raises:
            ResolutionError: if the path cannot be made absolute
            TargetNotFoundError: if the target does not exist
        """
        start_time = time.perf_counter()

        abs_path = normalize_target(target)
        key = cache_key(abs_path)

        cached = self.cache.lookup(key)
        if cached is not None:
            elapsed = time.perf_counter() - start_time
            logger.debug(f"Cache hit for {abs_path} ({elapsed * 1000:.1f}ms)")
            return cached.with_timing(elapsed, cache_hit=True)

        outcome = scan_target(abs_path, self.config, self.logger)
        result = aggregate(outcome.file_stats, self.config.chars_per_token)
        result = result.with_timing(time.perf_counter() - start_time, cache_hit=False)

        self.cache.store(key, result, outcome.mod_times)

        logger.debug(
            f"Analyzed {abs_path}: {result.total_files} files, "
            f"~{result.estimated_tokens:,} tokens ({result.complexity}) "
            f"in {result.analysis_time * 1000:.1f}ms"
        )
        return result

    def analyze_task_complexity(self, target: Any) -> int:
        """Estimated token count for a target, for model selection."""
        return self.analyze_complexity(target).estimated_tokens

    async def analyze_complexity_async(self, target: Any) -> AnalysisResult:
        """Analyze without blocking the event loop."""
        return await asyncio.to_thread(self.analyze_complexity, target)

    def clear_cache(self) -> int:
        """Remove all cached entries."""
        return self.cache.clear()

    def get_cache_stats(self) -> dict[str, Any]:
        """Get cache statistics for monitoring."""
        return self.cache.get_stats()

    def serialize_cache(self) -> str:
        """Export the cache as JSON text."""
        return self.cache.serialize()

    def deserialize_cache(self, data: str | bytes) -> int:
        """Replace the cache with entries decoded from JSON text."""
        return self.cache.deserialize(data)


def analyze_task_complexity_for_model_selection(target: Any) -> int:
    """
    Estimated token count for a target using a fresh analyzer.

    Intended for one-shot callers such as a model selector.
    """
    return ContextAnalyzer().analyze_task_complexity(target)


def get_complexity_analysis(target: Any) -> AnalysisResult:
    """Detailed complexity analysis using a fresh analyzer."""
    return ContextAnalyzer().analyze_complexity(target)
