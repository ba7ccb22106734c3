"""
Configuration for the ctxsize MCP Server

Environment Variables:
- CTXSIZE_CACHE_TTL: Freshness window for cached analyses in seconds (default: 30)
- CTXSIZE_CHARS_PER_TOKEN: Character-to-token divisor for the estimate (default: 4)
- CTXSIZE_CACHE_FILE: Optional path where the server persists the cache between runs
- CTXSIZE_LOG_LEVEL: Log level for the server process (default: WARNING)

The divisor is a provider-agnostic heuristic (~4 characters per token for
Claude/GPT style tokenizers), not a real tokenizer.
"""

import os
from dataclasses import dataclass, field
from typing import Set
from dotenv import load_dotenv

load_dotenv()


# Freshness window for cache entries
DEFAULT_CACHE_TTL_SECONDS = 30.0

# Approximate characters per token
DEFAULT_CHARS_PER_TOKEN = 4

# Streaming read buffer
DEFAULT_READ_CHUNK_BYTES = 8192

# Files above this size are treated as binary regardless of extension
DEFAULT_MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024  # 50MB


@dataclass
class AnalyzerConfig:
    """Configuration for complexity analysis and caching."""

    cache_ttl_seconds: float = field(
        default_factory=lambda: float(
            os.getenv("CTXSIZE_CACHE_TTL", str(DEFAULT_CACHE_TTL_SECONDS))
        )
    )
    chars_per_token: int = field(
        default_factory=lambda: int(
            os.getenv("CTXSIZE_CHARS_PER_TOKEN", str(DEFAULT_CHARS_PER_TOKEN))
        )
    )

    read_chunk_bytes: int = DEFAULT_READ_CHUNK_BYTES
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES

    # Binary/media formats excluded from content analysis
    binary_extensions: Set[str] = field(default_factory=lambda: {
        # Executables and object code
        ".exe", ".bin", ".so", ".dll", ".o", ".obj", ".a", ".lib",
        # Images
        ".jpg", ".jpeg", ".png", ".gif", ".bmp",
        # Documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx",
        # Archives
        ".zip", ".tar", ".gz", ".bz2", ".rar",
        # Audio/video
        ".mp3", ".mp4", ".avi", ".mov", ".wav",
    })

    # Repository metadata directories, excluded wherever they appear
    metadata_directories: Set[str] = field(default_factory=lambda: {
        ".git", ".hg", ".svn", ".bzr", "CVS", "_darcs",
    })

    # Persistence is caller-driven; only the server uses this
    cache_file: str | None = field(
        default_factory=lambda: os.getenv("CTXSIZE_CACHE_FILE") or None
    )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.cache_ttl_seconds < 0:
            errors.append("cache_ttl_seconds must not be negative")

        if self.chars_per_token < 1:
            errors.append("chars_per_token must be at least 1")

        if self.read_chunk_bytes < 1:
            errors.append("read_chunk_bytes must be at least 1")

        if self.max_file_size_bytes < 0:
            errors.append("max_file_size_bytes must not be negative")

        return errors


@dataclass
class ServerConfig:
    """Configuration for the MCP server."""

    name: str = "ctxsize-complexity"
    version: str = "1.0.0"
    description: str = (
        "MCP server estimating the token footprint of files and directories "
        "so a caller can pick a model whose context window fits"
    )

    log_level: str = field(
        default_factory=lambda: os.getenv("CTXSIZE_LOG_LEVEL", "WARNING").upper()
    )


def get_config() -> tuple[AnalyzerConfig, ServerConfig]:
    """Get configuration instances."""
    return AnalyzerConfig(), ServerConfig()
