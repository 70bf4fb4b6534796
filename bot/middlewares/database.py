"""Middleware для работы с базой данных"""
from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from database.connection import async_session_maker
from services.auction import build_engine


class DatabaseMiddleware(BaseMiddleware):
    """Middleware для создания сессии БД и движка аукционов"""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        async with async_session_maker() as session:
            data["session"] = session
            data["auctions"] = build_engine(session=session, bot=data.get("bot"))
            return await handler(event, data)
