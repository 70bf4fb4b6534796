"""Главный файл бота"""
import asyncio
import logging
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from config import settings
from bot.handlers import admin, auction, start
from bot.middlewares.database import DatabaseMiddleware
from database.connection import init_models
from services.scheduler import start_scheduler

# Настройка логирования
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Запуск бота"""
    if settings.STORAGE_BACKEND == "sql":
        await init_models()

    # Создаем бот и диспетчер
    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML)
    )
    dp = Dispatcher()

    # Регистрируем middleware
    dp.message.middleware(DatabaseMiddleware())
    dp.callback_query.middleware(DatabaseMiddleware())

    # Регистрируем роутеры
    dp.include_router(start.router)
    dp.include_router(admin.router)  # Админ команды
    dp.include_router(auction.router)  # FSM ввода ставки последним

    # Периодическое завершение аукционов (если включено)
    start_scheduler(bot)

    logger.info("Бот запущен")

    # Запускаем polling
    await dp.start_polling(bot)


if __name__ == "__main__":
    asyncio.run(main())
