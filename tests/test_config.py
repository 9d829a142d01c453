from pathlib import Path

import pytest

import config
from config import DEFAULT_ITEMS_PER_PAGE, DEFAULT_PAGE_MARGIN, load_config

ENV_VARS = (
    "BOT_TOKEN",
    "DATA_DIR",
    "FONTS_DIR",
    "STATE_FILE",
    "ITEMS_PER_PAGE",
    "PAGE_FORMAT",
    "PAGE_MARGIN",
    "SHOW_THEME_LABELS",
    "LOG_LEVEL",
    "LOG_TO_STDOUT",
    "LOG_TO_FILE",
    "LOG_FILE",
    "LOG_MAX_BYTES",
    "LOG_BACKUPS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr(config, "load_dotenv", lambda: None)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    cfg = load_config()
    assert cfg.bot_token == ""
    assert cfg.items_per_page == DEFAULT_ITEMS_PER_PAGE
    assert cfg.page_format == "A4"
    assert cfg.page_margin == DEFAULT_PAGE_MARGIN
    assert cfg.state_file == Path("data") / "sessions.json"
    assert cfg.show_theme_labels is False
    assert cfg.log_level == "INFO"
    assert cfg.log_to_file is False
    assert cfg.log_file == Path("data") / "pricetag_assistant.log"


def test_values_from_env(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", " 123:abc ")
    monkeypatch.setenv("DATA_DIR", "/tmp/tags")
    monkeypatch.setenv("ITEMS_PER_PAGE", "9")
    monkeypatch.setenv("PAGE_FORMAT", "letter")
    monkeypatch.setenv("PAGE_MARGIN", "0.5in")
    monkeypatch.setenv("SHOW_THEME_LABELS", "yes")
    cfg = load_config()
    assert cfg.bot_token == "123:abc"
    assert cfg.state_file == Path("/tmp/tags") / "sessions.json"
    assert cfg.items_per_page == 9
    assert cfg.page_format == "Letter"
    assert cfg.page_margin == "0.5in"
    assert cfg.show_theme_labels is True


@pytest.mark.parametrize("name, value, attr, expected", [
    ("ITEMS_PER_PAGE", "zero", "items_per_page", DEFAULT_ITEMS_PER_PAGE),
    ("ITEMS_PER_PAGE", "0", "items_per_page", DEFAULT_ITEMS_PER_PAGE),
    ("PAGE_FORMAT", "B5", "page_format", "A4"),
    ("PAGE_MARGIN", "wide", "page_margin", DEFAULT_PAGE_MARGIN),
])
def test_bad_values_fall_back(monkeypatch, name, value, attr, expected):
    monkeypatch.setenv(name, value)
    assert getattr(load_config(), attr) == expected


def test_logging_values_from_env(monkeypatch):
    monkeypatch.setenv("DATA_DIR", "/tmp/tags")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_TO_FILE", "true")
    monkeypatch.setenv("LOG_BACKUPS", "0")
    cfg = load_config()
    assert cfg.log_level == "DEBUG"
    assert cfg.log_to_file is True
    assert cfg.log_file == Path("/tmp/tags") / "pricetag_assistant.log"
    assert cfg.log_backups == 0


def test_unknown_log_level_falls_back(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "LOUD")
    assert load_config().log_level == "INFO"
