"""Текущее время"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Используем timezone-aware datetime с явным указанием UTC"""
    return datetime.now(timezone.utc)
