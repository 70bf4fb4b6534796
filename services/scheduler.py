"""Планировщик задач для завершения аукционов

По умолчанию выключен (AUCTION_SWEEP_INTERVAL_SECONDS=0): аукционы
завершаются лениво при обращении. Включенный планировщик периодически
завершает истекшие аукционы, к которым никто не обращался.
"""
import asyncio
from typing import Callable, List, Optional
import logging
from aiogram import Bot
from config import settings
from database.connection import async_session_maker
from database.models import AuctionStatus
from services.auction import AuctionEngine, build_engine

logger = logging.getLogger(__name__)


async def finish_expired_auctions(engine: AuctionEngine) -> List[int]:
    """Завершить все активные аукционы с истекшим end_time. Возвращает их ID"""
    now = engine.clock()
    expired = await engine.store.list_auctions(status=AuctionStatus.ACTIVE, ended_before=now)
    finished = []

    for auction in expired:
        auction_id = auction.id
        try:
            finished_auction = await engine.finalize(auction_id)
            if finished_auction.status == AuctionStatus.ENDED.value:
                finished.append(auction_id)
        except Exception as e:
            logger.error(f"Ошибка при завершении аукциона {auction_id}: {e}")

    if finished:
        logger.info(f"Завершено аукционов: {len(finished)}")
    return finished


async def check_and_finish_auctions(bot: Optional[Bot] = None) -> List[int]:
    """Проверить и завершить истекшие аукционы"""
    if settings.STORAGE_BACKEND == "memory":
        return await finish_expired_auctions(build_engine(bot=bot))
    async with async_session_maker() as session:
        return await finish_expired_auctions(build_engine(session=session, bot=bot))


async def scheduler_loop(
    bot: Optional[Bot] = None,
    interval: Optional[int] = None,
    check: Callable = check_and_finish_auctions,
):
    """Основной цикл планировщика"""
    interval = interval or settings.AUCTION_SWEEP_INTERVAL_SECONDS

    while True:
        try:
            await check(bot)
        except Exception as e:
            logger.error(f"Ошибка в планировщике: {e}")

        await asyncio.sleep(interval)


def start_scheduler(bot: Optional[Bot] = None) -> Optional[asyncio.Task]:
    """Запустить планировщик, если он включен в настройках"""
    if settings.AUCTION_SWEEP_INTERVAL_SECONDS <= 0:
        logger.info("Планировщик аукционов выключен, завершение по обращению")
        return None
    task = asyncio.create_task(scheduler_loop(bot))
    logger.info(f"Планировщик аукционов запущен (каждые {settings.AUCTION_SWEEP_INTERVAL_SECONDS} с)")
    return task
