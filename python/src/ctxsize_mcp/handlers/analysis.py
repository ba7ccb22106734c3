"""
Analysis Handlers for the ctxsize MCP Server.

Provides handlers for:
- ctx_analyze_complexity: Estimate tokens and complexity band for a path
- ctx_cache_stats: Report cache statistics and configuration
- ctx_clear_cache: Drop all cached analyses
"""

import json
from typing import Any, Callable

from mcp.types import TextContent

from ..errors import ComplexityAnalysisError, ConfigurationError


# Input validation constants
MAX_PATH_LENGTH = 4096


def validate_path(path: Any) -> tuple[bool, str]:
    """
    Validate a target path argument.

    Returns:
        (is_valid, error_message) tuple
    """
    if not path:
        return False, "Empty path"

    if not isinstance(path, str):
        return False, f"Path must be a string, got {type(path).__name__}"

    if len(path) > MAX_PATH_LENGTH:
        return False, f"Path too long ({len(path)} > {MAX_PATH_LENGTH})"

    if '\x00' in path:
        return False, "Path contains null bytes"

    return True, ""


def _text(payload: Any) -> list[TextContent]:
    if isinstance(payload, str):
        return [TextContent(type="text", text=payload)]
    return [TextContent(type="text", text=json.dumps(payload, indent=2))]


def _config_error(errors: list[str]) -> list[TextContent]:
    return _text(f"Configuration error: {'; '.join(errors)}")


async def handle_analyze_complexity(
    arguments: dict[str, Any],
    get_instances: Callable,
) -> list[TextContent]:
    """
    Handle ctx_analyze_complexity tool call.

    Runs the blocking analysis in a worker thread and returns the result
    as JSON, including the band name for display.
    """
    path = arguments.get("path", "")

    is_valid, error = validate_path(path)
    if not is_valid:
        return _text(f"Error: {error}")

    try:
        analyzer_config, _, analyzer = get_instances()
    except ConfigurationError as e:
        return _config_error(e.errors)

    errors = analyzer_config.validate()
    if errors:
        return _config_error(errors)

    try:
        result = await analyzer.analyze_complexity_async(path)
    except ComplexityAnalysisError as e:
        return _text(f"Error: {e}")

    payload = {
        "path": path,
        "total_files": result.total_files,
        "total_lines": result.total_lines,
        "total_chars": result.total_chars,
        "estimated_tokens": result.estimated_tokens,
        "complexity": result.complexity.display_name,
        "complexity_level": int(result.complexity),
        "analysis_time_ms": round(result.analysis_time * 1000, 3),
        "cache_hit": result.cache_hit,
    }
    return _text(payload)


async def handle_cache_stats(
    arguments: dict[str, Any],
    get_instances: Callable,
) -> list[TextContent]:
    """Handle ctx_cache_stats tool call."""
    try:
        analyzer_config, server_config, analyzer = get_instances()
    except ConfigurationError as e:
        return _text({"errors": e.errors})

    status = {
        "server": {
            "name": server_config.name,
            "version": server_config.version,
        },
        "configuration": {
            "cache_ttl_seconds": analyzer_config.cache_ttl_seconds,
            "chars_per_token": analyzer_config.chars_per_token,
            "max_file_size_bytes": analyzer_config.max_file_size_bytes,
            "cache_file": analyzer_config.cache_file,
        },
        "cache": analyzer.get_cache_stats(),
    }

    errors = analyzer_config.validate()
    if errors:
        status["errors"] = errors

    return _text(status)


async def handle_clear_cache(
    arguments: dict[str, Any],
    get_instances: Callable,
) -> list[TextContent]:
    """Handle ctx_clear_cache tool call."""
    try:
        _, _, analyzer = get_instances()
    except ConfigurationError as e:
        return _config_error(e.errors)

    removed = analyzer.clear_cache()
    return _text(f"Cleared {removed} cached analyses")
