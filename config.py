import os
import re
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from logger import get_logger

logger = get_logger(__name__)

PAGE_FORMATS = ("A4", "A3", "Letter")

DEFAULT_ITEMS_PER_PAGE = 18
DEFAULT_PAGE_MARGIN = "12mm"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_MARGIN_RE = re.compile(r"^\d+(\.\d+)?(mm|cm|in|px|pt)$")


@dataclass
class Config:
    bot_token: str = ""
    data_dir: Path = Path("data")
    fonts_dir: Path = Path("fonts")
    state_file: Path = Path("data") / "sessions.json"
    items_per_page: int = DEFAULT_ITEMS_PER_PAGE
    page_format: str = "A4"
    page_margin: str = DEFAULT_PAGE_MARGIN
    show_theme_labels: bool = False
    log_level: str = "INFO"
    log_to_stdout: bool = True
    log_to_file: bool = False
    log_file: Path = Path("data") / "pricetag_assistant.log"
    log_max_bytes: int = 2 * 1024 * 1024
    log_backups: int = 3


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer, using %s", name, raw, default)
        return default
    if value < minimum:
        logger.warning("%s=%s is below %s, using %s", name, value, minimum, default)
        return default
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _page_format(raw: str) -> str:
    for fmt in PAGE_FORMATS:
        if fmt.lower() == raw.strip().lower():
            return fmt
    logger.warning("Unknown PAGE_FORMAT %r, using A4", raw)
    return "A4"


def _page_margin(raw: str) -> str:
    raw = raw.strip()
    if not raw:
        return DEFAULT_PAGE_MARGIN
    if not _MARGIN_RE.match(raw):
        logger.warning("PAGE_MARGIN=%r is not a CSS length, using %s", raw, DEFAULT_PAGE_MARGIN)
        return DEFAULT_PAGE_MARGIN
    return raw


def _log_level(raw: str) -> str:
    level = raw.strip().upper()
    if not level:
        return "INFO"
    if level not in LOG_LEVELS:
        logger.warning("Unknown LOG_LEVEL %r, using INFO", raw)
        return "INFO"
    return level


def load_config() -> Config:
    load_dotenv()

    data_dir = Path(os.getenv("DATA_DIR", "data").strip() or "data")
    state_file = os.getenv("STATE_FILE", "").strip()
    log_file = os.getenv("LOG_FILE", "").strip()

    return Config(
        bot_token=os.getenv("BOT_TOKEN", "").strip(),
        data_dir=data_dir,
        fonts_dir=Path(os.getenv("FONTS_DIR", "fonts").strip() or "fonts"),
        state_file=Path(state_file) if state_file else data_dir / "sessions.json",
        items_per_page=_env_int("ITEMS_PER_PAGE", DEFAULT_ITEMS_PER_PAGE),
        page_format=_page_format(os.getenv("PAGE_FORMAT", "A4")),
        page_margin=_page_margin(os.getenv("PAGE_MARGIN", "")),
        show_theme_labels=_env_bool("SHOW_THEME_LABELS", False),
        log_level=_log_level(os.getenv("LOG_LEVEL", "")),
        log_to_stdout=_env_bool("LOG_TO_STDOUT", True),
        log_to_file=_env_bool("LOG_TO_FILE", False),
        log_file=Path(log_file) if log_file else data_dir / "pricetag_assistant.log",
        log_max_bytes=_env_int("LOG_MAX_BYTES", 2 * 1024 * 1024),
        log_backups=_env_int("LOG_BACKUPS", 3, minimum=0),
    )
