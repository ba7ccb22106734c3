"""
Request Handlers for the ctxsize MCP Server.

- analysis: complexity analysis and cache management handlers
  (ctx_analyze_complexity, ctx_cache_stats, ctx_clear_cache)
"""

from .analysis import (
    handle_analyze_complexity,
    handle_cache_stats,
    handle_clear_cache,
    validate_path,
)

__all__ = [
    "handle_analyze_complexity",
    "handle_cache_stats",
    "handle_clear_cache",
    "validate_path",
]
