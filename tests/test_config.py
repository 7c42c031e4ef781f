import logging
from pathlib import Path

from codechunk.config import get_env_config, setup_logging

ENV_VARS = (
    "QDRANT_HOST",
    "QDRANT_PORT",
    "QDRANT_LOCATION",
    "INDEX_PATH",
    "CACHE_PATH",
    "BATCH_SIZE",
    "MAX_EMBEDDING_CHARS",
    "EMBED_INCLUDE_PATH",
    "RESOLVE_AGAINST_STORED_CHUNKS",
    "SIMILARITY_THRESHOLD",
    "LOG_LEVEL",
)


def clear_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    clear_env(monkeypatch)
    config = get_env_config()

    assert config["qdrant_host"] == "localhost"
    assert config["qdrant_port"] == 6333
    assert config["qdrant_location"] is None
    assert config["batch_size"] == 300
    assert config["max_embedding_chars"] is None
    assert config["embed_include_path"] is False
    assert config["resolve_against_stored"] is False
    assert config["similarity_threshold"] == 0.3
    assert config["index_path"] == Path("~/.codechunk/index").expanduser()
    assert config["log_level"] == "INFO"


def test_overrides(monkeypatch, tmp_path):
    clear_env(monkeypatch)
    monkeypatch.setenv("QDRANT_LOCATION", ":memory:")
    monkeypatch.setenv("INDEX_PATH", str(tmp_path))
    monkeypatch.setenv("CACHE_PATH", "")
    monkeypatch.setenv("MAX_EMBEDDING_CHARS", "4000")
    monkeypatch.setenv("EMBED_INCLUDE_PATH", "true")
    monkeypatch.setenv("RESOLVE_AGAINST_STORED_CHUNKS", "1")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = get_env_config()
    assert config["qdrant_location"] == ":memory:"
    assert config["index_path"] == tmp_path
    assert config["cache_path"] is None
    assert config["max_embedding_chars"] == 4000
    assert config["embed_include_path"] is True
    assert config["resolve_against_stored"] is True
    assert config["log_level"] == "DEBUG"


def test_setup_logging_replaces_its_own_handlers(tmp_path):
    root_logger = logging.getLogger()
    before = list(root_logger.handlers)
    level = root_logger.level
    try:
        setup_logging("INFO", str(tmp_path / "codechunk.log"))
        setup_logging("DEBUG")
        ours = [h for h in root_logger.handlers if getattr(h, "_codechunk", False)]
        assert len(ours) == 1
        assert ours[0].level == logging.DEBUG
    finally:
        for handler in list(root_logger.handlers):
            if handler not in before:
                root_logger.removeHandler(handler)
                handler.close()
        root_logger.setLevel(level)
