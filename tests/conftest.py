"""Общие фикстуры тестов

Движок собирается на хранилище в памяти с управляемыми часами.
SQL-тесты используют файловую SQLite (aiosqlite) во временной папке.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import Settings
from database.connection import Base
from database.models import Auction, User
from services.auction import AuctionDraft, AuctionEngine
from services.events import InMemoryBroadcaster
from services.locks import AuctionLocks
from services.notifications import NotificationResult
from services.storage import MemoryAuctionStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Часы, которые двигает тест"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeNotifier:
    """Запоминает уведомления, может имитировать сбой доставки"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.winner_calls: List[Dict[str, Any]] = []
        self.seller_calls: List[Dict[str, Any]] = []

    def _result(self) -> NotificationResult:
        if self.fail:
            return NotificationResult(success=False, error="mail server down")
        return NotificationResult(success=True)

    async def send_auction_winner_email(self, email, data, recipient=None) -> NotificationResult:
        self.winner_calls.append(data)
        return self._result()

    async def send_seller_auction_ended_email(self, email, data, recipient=None) -> NotificationResult:
        self.seller_calls.append(data)
        return self._result()


def make_settings(**overrides) -> Settings:
    values = {
        "SOFT_CLOSE_THRESHOLD_SECONDS": 120,
        "SOFT_CLOSE_EXTENSION_SECONDS": 120,
        "SOFT_CLOSE_MAX_EXTENSIONS": None,
        "SOFT_CLOSE_MAX_TOTAL_SECONDS": None,
        "AUTO_BID_MAX_ROUNDS": 1,
        "STORAGE_BACKEND": "memory",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def build_test_engine(store=None, clock=None, broadcaster=None, notifier=None, **overrides) -> AuctionEngine:
    return AuctionEngine(
        store if store is not None else MemoryAuctionStore(),
        broadcaster=broadcaster if broadcaster is not None else InMemoryBroadcaster(),
        notifier=notifier if notifier is not None else FakeNotifier(),
        locks=AuctionLocks(),
        clock=clock or FakeClock(),
        settings=make_settings(**overrides),
    )


async def add_user(engine: AuctionEngine, name: str, balance="10000", **fields) -> User:
    user = User(
        username=name,
        first_name=name.capitalize(),
        email=f"{name}@example.com",
        balance=Decimal(balance),
        is_admin=fields.pop("is_admin", False),
        is_active=fields.pop("is_active", True),
        **fields
    )
    return await engine.store.add_user(user)


async def make_auction(
    engine: AuctionEngine,
    seller: User,
    starting_price="100",
    duration: timedelta = timedelta(hours=1),
    start_in: timedelta = timedelta(minutes=-1),
    reserve_price: Optional[str] = None,
    bid_increment: Optional[str] = None,
    schedule: bool = True,
) -> Auction:
    """Лот; по умолчанию уже активный (start_time в прошлом)"""
    now = engine.clock()
    start = now + start_in
    auction = await engine.create_auction(seller.id, AuctionDraft(
        title="Vintage camera",
        starting_price=Decimal(starting_price),
        start_time=start,
        end_time=now + duration,
        reserve_price=Decimal(reserve_price) if reserve_price else None,
        bid_increment=Decimal(bid_increment) if bid_increment else None,
    ))
    if schedule:
        auction = await engine.schedule(auction.id)
    return auction


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def broadcaster() -> InMemoryBroadcaster:
    return InMemoryBroadcaster()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def engine(clock, broadcaster, notifier) -> AuctionEngine:
    return build_test_engine(clock=clock, broadcaster=broadcaster, notifier=notifier)


@pytest.fixture
async def seller(engine) -> User:
    return await add_user(engine, "seller")


@pytest.fixture
async def alice(engine) -> User:
    return await add_user(engine, "alice")


@pytest.fixture
async def bob(engine) -> User:
    return await add_user(engine, "bob")


@pytest.fixture
async def sql_session_maker(tmp_path):
    """Файловая SQLite: несколько сессий видят одни данные"""
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'auction.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await db_engine.dispose()
