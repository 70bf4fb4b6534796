"""События аукциона для подписчиков

Отправка событий - fire-and-forget: без подтверждений, без повторной
доставки. Пропустивший событие клиент перечитывает состояние аукциона.
"""
import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Tuple
import logging
from database.models import Auction, Bid, User

logger = logging.getLogger(__name__)

NEW_BID = "new-bid"
OUTBID = "outbid"
AUCTION_UPDATE = "auction-update"


class Broadcaster(Protocol):
    """Канал рассылки событий"""

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None: ...


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def new_bid_payload(bid: Bid, bidder: Optional[User], auction: Auction, bid_count: int) -> Dict[str, Any]:
    """Событие new-bid"""
    return {
        "bid": {
            "id": bid.id,
            "amount": _money(bid.amount),
            "bidder": {
                "username": bidder.username if bidder else None,
                "firstName": bidder.first_name if bidder else None,
                "lastName": bidder.last_name if bidder else None,
            },
            "bidTime": _iso(bid.bid_time),
            "bidType": bid.bid_type,
        },
        "auction": {
            "currentBid": _money(auction.current_bid),
            "bidCount": bid_count,
            "endTime": _iso(auction.end_time),
        },
    }


def outbid_payload(auction: Auction, previous_bidder_id: int, timestamp: datetime) -> Dict[str, Any]:
    """Событие outbid: предыдущего лидера перебили"""
    return {
        "auctionId": auction.id,
        "previousHighestBidderId": previous_bidder_id,
        "currentBid": _money(auction.current_bid),
        "timestamp": _iso(timestamp),
    }


def auction_update_payload(auction: Auction, bid_count: int, include_status: bool = False) -> Dict[str, Any]:
    """Событие auction-update (время окончания, цена, кол-во ставок)"""
    payload = {
        "endTime": _iso(auction.end_time),
        "currentBid": _money(auction.current_bid),
        "bidCount": bid_count,
    }
    if include_status:
        payload["status"] = auction.status
    return payload


class EventEmitter:
    """Отправляет события и не дает ошибкам доставки сломать операцию"""

    def __init__(self, broadcaster: Broadcaster):
        self.broadcaster = broadcaster

    async def emit(self, auction: Auction, event: str, payload: Dict[str, Any]) -> None:
        try:
            await self.broadcaster.publish(auction.channel, event, payload)
        except Exception as e:
            logger.error(f"Не удалось отправить событие {event} для аукциона {auction.id}: {e!r}")


class LoggingBroadcaster:
    """Пишет события в лог"""

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        logger.info(f"[{channel}] {event}: {payload}")


class InMemoryBroadcaster:
    """Рассылка событий подписчикам внутри процесса.

    Каждый подписчик получает свою asyncio.Queue. Переполненная очередь
    теряет событие - клиент должен перечитать состояние.
    """

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}

    def subscribe(self, channel: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.setdefault(channel, []).append(queue)
        return queue

    def unsubscribe(self, channel: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(channel, [])
        if queue in queues:
            queues.remove(queue)

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((channel, event, payload))
        for queue in self._subscribers.get(channel, []):
            try:
                queue.put_nowait((event, payload))
            except asyncio.QueueFull:
                logger.warning(f"Очередь подписчика {channel} переполнена, событие {event} пропущено")

    def names(self, channel: Optional[str] = None) -> List[str]:
        """Имена отправленных событий (для отладки и тестов)"""
        return [event for ch, event, _ in self.events if channel is None or ch == channel]
