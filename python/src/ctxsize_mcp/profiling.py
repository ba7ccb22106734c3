"""
Logging and latency hooks for the ctxsize server.
"""

import logging
import time

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class LatencyTracker:
    """
    Context manager to track latency for a code block.

    Usage:
        with LatencyTracker("tool:ctx_analyze_complexity") as tracker:
            ...
        tracker.elapsed_ms

    Logs: "[LATENCY] tool:ctx_analyze_complexity: 45.3ms"
    """
    def __init__(self, phase_name: str = "operation"):
        self.phase_name = phase_name
        self.start_time = None
        self.elapsed_ms = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000
        status = "failed" if exc_type is not None else "ok"
        logger.debug(f"[LATENCY] {self.phase_name}: {self.elapsed_ms:.1f}ms ({status})")


def enable_logging(log_level: int | str = logging.WARNING) -> None:
    """Configure root logging to stderr (stdout carries the MCP protocol)."""
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.WARNING

    logging.basicConfig(level=log_level, format=LOG_FORMAT)
