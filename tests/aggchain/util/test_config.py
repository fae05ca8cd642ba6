"""Tests for aggchain.util.config module."""
import logging
import os
import pytest

import aggchain.util.config
from aggchain.util.config import configure_logger, get_config, parse_key_value_str, reset_config
from testutils import monkeypatched_env


def test_parse_key_value_list():
    assert parse_key_value_str("a:b,c") == {"a": "b", "c": "c"}
    assert parse_key_value_str("a,b,c:d") == {"a": "a", "b": "b", "c": "d"}
    assert parse_key_value_str("a, b, c: d") == {"a": "a", "b": "b", "c": "d"}
    assert parse_key_value_str("aggchain.mongo.manager") == {"aggchain.mongo.manager": "manager"}
    assert parse_key_value_str("root:DEBUG,aggchain:INFO") == {"root": "DEBUG", "aggchain": "INFO"}

    with pytest.raises(ValueError):
        parse_key_value_str("a:b,c", True)


def test_get_config_file_and_env(tmp_path, monkeypatch, clean_config):
    test_path = tmp_path / "aggchain.toml"
    test_path.write_text('mongo_connection_string = "mongodb://file"\nmongo_database = "cinema"\n')
    monkeypatch.setenv("AGGCHAIN_MONGO_CONNECTION_STRING", "mongodb://env")

    cfg = get_config(path=str(test_path))
    assert cfg["mongo_connection_string"] == "mongodb://env"
    assert cfg["mongo_database"] == "cinema"

    cfg = get_config(path=str(test_path), reload=True, ignore_env=True)
    assert cfg["mongo_connection_string"] == "mongodb://file"


def test_get_config_is_cached(tmp_path, clean_config):
    cfg = get_config(path=str(tmp_path / "missing.toml"))
    assert aggchain.util.config._config is cfg
    assert get_config(path=str(tmp_path / "other.toml")) is cfg


def test_get_config_nofile(monkeypatch, monkeypatched_env, clean_config):
    monkeypatched_env({
        "AGGCHAIN_LOGGER_LEVELS": "aggchain:DEBUG",
        "X": "Y"
    })
    monkeypatch.setattr(os.path, "exists", lambda path: False)

    cfg = get_config(reload=True)
    assert cfg == {"logger_levels": "aggchain:DEBUG"}


def test_configure_logging(tmp_path, capsys):
    configure_logger("aggchain.test:INFO")
    logger = logging.getLogger("aggchain.test")
    assert logger.level == logging.INFO
    logger.debug("This is a test debug message")
    logger.info("This is a test info message")
    captured = capsys.readouterr()
    assert "DEBUG" not in captured.err
    assert "INFO" in captured.err

    log_file = tmp_path / "aggchain.log"
    configure_logger("aggchain.test:WARNING", logger_files=f"aggchain.test:{log_file}")
    logger.info("This is a test info message")
    logger.warning("This is a test warning message")
    for handler in logger.handlers:
        handler.flush()
    contents = log_file.read_text()
    assert "WARNING" in contents
    assert "INFO" not in contents
