import logging
import sys
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(config):
    """Настраивает корневой логгер по Config: уровень, stdout и файл с ротацией.

    Вызывается из bot.main после load_config, когда .env уже прочитан.
    Повторные вызовы ничего не делают.
    """
    global _configured
    if _configured:
        return

    level = getattr(logging, config.log_level, logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    # не дублируем хэндлеры (pytest может поставить свои)
    if not root.handlers:
        if config.log_to_stdout:
            ch = logging.StreamHandler(sys.stdout)
            ch.setFormatter(formatter)
            root.addHandler(ch)

        if config.log_to_file:
            try:
                config.log_file.parent.mkdir(parents=True, exist_ok=True)
                fh = RotatingFileHandler(
                    config.log_file,
                    maxBytes=config.log_max_bytes,
                    backupCount=config.log_backups,
                    encoding="utf-8",
                )
                fh.setFormatter(formatter)
                root.addHandler(fh)
            except OSError as e:
                root.warning("Failed to initialize file logging: %s", e)

    # aiogram пишет каждое обновление на INFO
    if level > logging.DEBUG:
        logging.getLogger("aiogram.event").setLevel(logging.WARNING)

    _configured = True


def get_logger(name=None) -> logging.Logger:
    return logging.getLogger(name)
