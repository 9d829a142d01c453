import logging

import pytest

import config
import logger as log_module
from config import Config, load_config
from logger import get_logger, setup_logging


@pytest.fixture
def root(monkeypatch):
    root = logging.getLogger()
    level = root.level
    monkeypatch.setattr(log_module, "_configured", False)
    yield root
    root.setLevel(level)


def test_get_logger_does_not_configure(root):
    get_logger("pricetag.test")
    assert log_module._configured is False


def test_level_comes_from_config(root, monkeypatch):
    monkeypatch.setattr(config, "load_dotenv", lambda: None)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    setup_logging(load_config())
    assert root.level == logging.DEBUG

    # второй вызов ничего не меняет
    setup_logging(Config(log_level="ERROR"))
    assert root.level == logging.DEBUG


def test_file_handler(root, monkeypatch, tmp_path):
    monkeypatch.setattr(root, "handlers", [])
    log_file = tmp_path / "logs" / "bot.log"
    setup_logging(Config(log_to_stdout=False, log_to_file=True, log_file=log_file))
    added = list(root.handlers)
    assert len(added) == 1

    get_logger("pricetag.test").warning("печать ценников")
    for handler in added:
        handler.close()
    assert "печать ценников" in log_file.read_text(encoding="utf-8")
