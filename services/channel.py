"""Публикация событий аукционов в Telegram канал"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging
from aiogram import Bot, html
from config import settings
from services.events import NEW_BID, OUTBID, AUCTION_UPDATE
from services.increments import format_money

logger = logging.getLogger(__name__)

# Время в сообщениях показываем в UTC
DISPLAY_TZ = timezone.utc


def _format_time(value: Optional[str]) -> str:
    """ISO-время события -> строка для канала"""
    if not value:
        return "n/a"
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(DISPLAY_TZ).strftime("%d.%m.%Y %H:%M UTC")


def _auction_id(channel: str) -> str:
    return channel.split("-", 1)[1] if "-" in channel else channel


def format_event_text(channel: str, event: str, payload: Dict[str, Any]) -> Optional[str]:
    """Текст сообщения в канал для события. None - событие в канал не идет"""
    lot = _auction_id(channel)
    if event == NEW_BID:
        bid = payload["bid"]
        auction = payload["auction"]
        bidder = bid["bidder"]
        name = f"@{bidder['username']}" if bidder.get("username") else (bidder.get("firstName") or "participant")
        name = html.quote(name)
        auto_mark = " (auto)" if bid.get("bidType") == "auto" else ""
        return (
            f"🔔 <b>New bid on lot #{lot}</b>{auto_mark}\n\n"
            f"💰 Amount: <b>{format_money(bid['amount'])}</b> by {name}\n"
            f"👥 Bids: {auction['bidCount']}\n"
            f"⏰ Ends: {_format_time(auction['endTime'])}"
        )
    if event == AUCTION_UPDATE:
        status = payload.get("status")
        if status == "ended":
            return (
                f"🤝 <b>Lot #{lot} closed</b>\n\n"
                f"Final price: <b>{format_money(payload['currentBid'])}</b>\n"
                f"👥 Bids: {payload['bidCount']}"
            )
        if status:
            return f"ℹ️ Lot #{lot} is now <b>{status}</b>"
        return (
            f"⏳ <b>Lot #{lot} extended</b>\n\n"
            f"New end time: {_format_time(payload['endTime'])}\n"
            f"Current price: <b>{format_money(payload['currentBid'])}</b>"
        )
    if event == OUTBID:
        # outbid адресован конкретному участнику, в общий канал не публикуем
        return None
    return None


class TelegramChannelBroadcaster:
    """Отправляет события аукционов в канал бота"""

    def __init__(self, bot: Bot, chat_id: Optional[str] = None):
        self.bot = bot
        self.chat_id = chat_id or settings.CHANNEL_ID

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        text = format_event_text(channel, event, payload)
        if text is None:
            logger.debug(f"Событие {event} для {channel} не публикуется в канал")
            return
        await self.bot.send_message(
            chat_id=self.chat_id,
            text=text,
            parse_mode="HTML",
        )
        logger.info(f"Событие {event} для {channel} опубликовано в канал")
