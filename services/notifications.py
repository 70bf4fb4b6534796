"""Уведомления победителю и продавцу после завершения аукциона"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol
import logging
from aiogram import Bot, html
from database.models import User
from services.increments import format_money

logger = logging.getLogger(__name__)


@dataclass
class NotificationResult:
    """Результат отправки"""
    success: bool
    error: Optional[str] = None


class Notifier(Protocol):
    """Отправка уведомлений о завершении аукциона"""

    async def send_auction_winner_email(
        self,
        email: Optional[str],
        data: Dict[str, Any],
        recipient: Optional[User] = None,
    ) -> NotificationResult: ...

    async def send_seller_auction_ended_email(
        self,
        email: Optional[str],
        data: Dict[str, Any],
        recipient: Optional[User] = None,
    ) -> NotificationResult: ...


def winner_message(data: Dict[str, Any]) -> str:
    return (
        f"🎉 Congratulations! You won the auction!\n\n"
        f"📦 Lot: <b>{html.quote(data['auction_title'])}</b>\n"
        f"💰 Final price: <b>{format_money(data['amount'])}</b>\n"
        f"🔗 Auction #{data['auction_id']}"
    )


def seller_message(data: Dict[str, Any]) -> str:
    if data.get("amount") is None:
        return (
            f"⌛ Your auction has ended without a sale.\n\n"
            f"📦 Lot: <b>{html.quote(data['auction_title'])}</b>\n"
            f"Reason: {data.get('reason') or 'no qualifying bids'}"
        )
    return (
        f"✅ Your auction has ended!\n\n"
        f"📦 Lot: <b>{html.quote(data['auction_title'])}</b>\n"
        f"💰 Final price: <b>{format_money(data['amount'])}</b>\n"
        f"👤 Winner: {html.quote(data.get('winner_name') or 'n/a')}"
    )


class BotNotifier:
    """Доставляет уведомления личным сообщением в Telegram"""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def _send(self, recipient: Optional[User], text: str) -> NotificationResult:
        if recipient is None or not recipient.telegram_id:
            return NotificationResult(success=False, error="recipient has no telegram chat")
        try:
            await self.bot.send_message(
                chat_id=recipient.telegram_id,
                text=text,
                parse_mode="HTML"
            )
        except Exception as e:
            logger.error(f"Ошибка отправки уведомления пользователю {recipient.telegram_id}: {e}")
            return NotificationResult(success=False, error=str(e))
        return NotificationResult(success=True)

    async def send_auction_winner_email(self, email, data, recipient=None) -> NotificationResult:
        result = await self._send(recipient, winner_message(data))
        if result.success:
            logger.info(f"Победитель аукциона {data['auction_id']} уведомлен")
        return result

    async def send_seller_auction_ended_email(self, email, data, recipient=None) -> NotificationResult:
        result = await self._send(recipient, seller_message(data))
        if result.success:
            logger.info(f"Продавец аукциона {data['auction_id']} уведомлен")
        return result


class LoggingNotifier:
    """Уведомления в лог (режим разработки)"""

    async def send_auction_winner_email(self, email, data, recipient=None) -> NotificationResult:
        logger.info(f"[winner -> {email}] {winner_message(data)}")
        return NotificationResult(success=True)

    async def send_seller_auction_ended_email(self, email, data, recipient=None) -> NotificationResult:
        logger.info(f"[seller -> {email}] {seller_message(data)}")
        return NotificationResult(success=True)
