import asyncio

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from config import load_config
from handlers import router
from logger import get_logger, setup_logging
from render import register_fonts
from storage import SessionStorage

logger = get_logger(__name__)


async def main():
    config = load_config()
    setup_logging(config)

    if not config.bot_token:
        raise RuntimeError("В .env нет BOT_TOKEN")

    fonts = register_fonts(config.fonts_dir)

    config.data_dir.mkdir(parents=True, exist_ok=True)
    sessions = SessionStorage(config.state_file, show_theme_labels=config.show_theme_labels)

    bot = Bot(token=config.bot_token)
    dp = Dispatcher(storage=MemoryStorage())
    dp.include_router(router)

    logger.info("Starting bot: format %s, %d tags per page", config.page_format, config.items_per_page)
    # прокидываем зависимости в хэндлеры
    await dp.start_polling(bot, sessions=sessions, fonts=fonts, config=config)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
