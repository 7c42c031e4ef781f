"""Environment configuration and logging setup."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_path(name: str, default: str) -> Optional[Path]:
    value = os.getenv(name, default)
    return Path(value).expanduser() if value else None


def get_env_config() -> Dict[str, Any]:
    """Get configuration from environment variables."""
    threshold = os.getenv("SIMILARITY_THRESHOLD", "0.3")
    max_chars = os.getenv("MAX_EMBEDDING_CHARS", "")
    return {
        "qdrant_host": os.getenv("QDRANT_HOST", "localhost"),
        "qdrant_port": int(os.getenv("QDRANT_PORT", "6333")),
        "qdrant_location": os.getenv("QDRANT_LOCATION") or None,
        "collection_name": os.getenv("COLLECTION_NAME", "code_chunks"),
        "vector_size": int(os.getenv("VECTOR_SIZE", "768")),
        "ollama_host": os.getenv("OLLAMA_HOST", "http://localhost:11434"),
        "embedding_model": os.getenv("EMBEDDING_MODEL", "nomic-embed-text"),
        "index_path": _env_path("INDEX_PATH", "~/.codechunk/index"),
        "cache_path": _env_path("CACHE_PATH", "~/.codechunk/cache"),
        "batch_size": int(os.getenv("BATCH_SIZE", "300")),
        "max_concurrent": int(os.getenv("MAX_CONCURRENT_EMBEDDINGS", "4")),
        "max_embedding_chars": int(max_chars) if max_chars else None,
        "embed_include_path": _env_bool("EMBED_INCLUDE_PATH", "false"),
        "dependency_strategy": os.getenv("DEPENDENCY_STRATEGY", "structural"),
        "resolve_against_stored": _env_bool("RESOLVE_AGAINST_STORED_CHUNKS", "false"),
        "similarity_threshold": float(threshold) if threshold else None,
        "max_retries": int(os.getenv("MAX_RETRIES", "3")),
        "retry_base_delay": float(os.getenv("RETRY_BASE_DELAY", "1.0")),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "log_file": os.getenv("LOG_FILE") or None,
    }


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure the root logger with a stderr console handler and an optional file.

    stdout is left alone because the MCP stdio transport writes protocol
    messages there. Calling this again replaces the handlers it installed.
    """
    formatter = logging.Formatter(LOG_FORMAT)
    root_logger = logging.getLogger()

    for handler in list(root_logger.handlers):
        if getattr(handler, "_codechunk", False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler._codechunk = True
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler._codechunk = True
        root_logger.addHandler(file_handler)

    root_logger.setLevel(log_level)
