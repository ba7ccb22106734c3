#!/usr/bin/env python3
"""
ctxsize MCP Server

Estimates how much of a model's context window a file or directory would
take, so the caller can pick a backend whose window fits.

Tools provided:
- ctx_analyze_complexity: Token estimate and complexity band for a path
- ctx_cache_stats: Cache statistics and configuration
- ctx_clear_cache: Drop all cached analyses

When CTXSIZE_CACHE_FILE is set, the cache is loaded on startup and saved on
shutdown so repeated server runs can reuse still-valid analyses.
"""

import asyncio
import logging
import signal
import sys
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    Tool,
    TextContent,
)

from .config import get_config, AnalyzerConfig, ServerConfig
from .context_analyzer import ContextAnalyzer
from .errors import CacheFormatError, ConfigurationError
from .handlers import (
    handle_analyze_complexity,
    handle_cache_stats,
    handle_clear_cache,
)
from .profiling import LatencyTracker, enable_logging


logger = logging.getLogger(__name__)

# Global instances
_analyzer_config: AnalyzerConfig | None = None
_server_config: ServerConfig | None = None
_analyzer: ContextAnalyzer | None = None

# Shutdown flag for graceful termination
_shutdown_event: asyncio.Event | None = None


def get_instances() -> tuple[AnalyzerConfig, ServerConfig, ContextAnalyzer]:
    """
    Get or create the server-wide configuration and analyzer.

    Raises:
        ConfigurationError: if the analyzer configuration is invalid. The
            analyzer is not created and the next call tries again.
    """
    global _analyzer_config, _server_config, _analyzer

    if _analyzer is None:
        _analyzer_config, _server_config = get_config()
        _analyzer = ContextAnalyzer(_analyzer_config)

    return _analyzer_config, _server_config, _analyzer


def reset_instances() -> None:
    """Forget the global instances (used by tests)."""
    global _analyzer_config, _server_config, _analyzer
    _analyzer_config = None
    _server_config = None
    _analyzer = None


def load_persisted_cache() -> int:
    """Restore the cache from the configured cache file, if any."""
    try:
        analyzer_config, _, analyzer = get_instances()
    except ConfigurationError as e:
        logger.warning(f"Not loading complexity cache: {e}")
        return 0

    cache_file = analyzer_config.cache_file
    if not cache_file:
        return 0

    try:
        count = analyzer.cache.load(cache_file)
    except FileNotFoundError:
        return 0
    except (OSError, CacheFormatError) as e:
        logger.warning(f"Failed to load complexity cache from {cache_file}: {e}")
        return 0

    logger.info(f"Loaded {count} cached analyses from {cache_file}")
    return count


def save_persisted_cache() -> bool:
    """Write the cache to the configured cache file, if any."""
    try:
        analyzer_config, _, analyzer = get_instances()
    except ConfigurationError:
        return False

    cache_file = analyzer_config.cache_file
    if not cache_file:
        return False

    try:
        analyzer.cache.save(cache_file)
    except OSError as e:
        logger.warning(f"Failed to save complexity cache to {cache_file}: {e}")
        return False

    return True


def create_server() -> Server:
    """Create and configure the MCP server."""
    server = Server("ctxsize-complexity")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return [
            Tool(
                name="ctx_analyze_complexity",
                description=(
                    "Estimate the token footprint of a file or directory and classify it "
                    "as Simple (<10k tokens), Medium (<50k), Large (<200k) or XLarge. "
                    "Hidden files, repository metadata and binary files are ignored. "
                    "Results are cached and revalidated against file modification times."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "path": {
                            "type": "string",
                            "description": "File or directory to analyze (absolute or relative)",
                        },
                    },
                    "required": ["path"],
                },
            ),
            Tool(
                name="ctx_cache_stats",
                description="Show complexity cache statistics and analyzer configuration.",
                inputSchema={
                    "type": "object",
                    "properties": {},
                },
            ),
            Tool(
                name="ctx_clear_cache",
                description="Drop all cached complexity analyses.",
                inputSchema={
                    "type": "object",
                    "properties": {},
                },
            ),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool calls."""
        return await dispatch_tool(name, arguments or {})

    return server


async def dispatch_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Route a tool call to its handler, turning failures into error text."""
    try:
        with LatencyTracker(f"tool:{name}"):
            if name == "ctx_analyze_complexity":
                return await handle_analyze_complexity(arguments, get_instances)
            elif name == "ctx_cache_stats":
                return await handle_cache_stats(arguments, get_instances)
            elif name == "ctx_clear_cache":
                return await handle_clear_cache(arguments, get_instances)
            else:
                return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except Exception as e:
        logger.exception(f"Tool {name} failed")
        return [TextContent(type="text", text=f"Error: {str(e)}")]


async def run_server():
    """Run the MCP server with graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    server = create_server()
    load_persisted_cache()

    # Setup signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()

    def handle_shutdown(sig):
        logger.info(f"Received {sig.name}, shutting down gracefully...")
        _shutdown_event.set()

    # Register signal handlers (Unix only)
    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: handle_shutdown(s))

    try:
        async with stdio_server() as (read_stream, write_stream):
            server_task = asyncio.create_task(
                server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options(),
                )
            )

            # Wait for either server completion or shutdown signal
            done, pending = await asyncio.wait(
                [server_task, asyncio.create_task(_shutdown_event.wait())],
                return_when=asyncio.FIRST_COMPLETED,
            )

            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    finally:
        save_persisted_cache()


def main():
    """Main entry point."""
    _, server_config = get_config()
    enable_logging(server_config.log_level)

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
