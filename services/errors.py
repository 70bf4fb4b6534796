"""Ошибки аукционного движка

Все ошибки наследуют ValueError, поэтому обработчики бота по-прежнему
ловят их через `except ValueError` и показывают текст пользователю.
"""
from decimal import Decimal
from typing import Optional
import enum


class RejectionReason(str, enum.Enum):
    """Причина отказа"""
    INVALID_AMOUNT = "invalid_amount"
    INVALID_BID_TYPE = "invalid_bid_type"
    INVALID_AUCTION = "invalid_auction"
    AUCTION_NOT_FOUND = "auction_not_found"
    USER_NOT_FOUND = "user_not_found"
    AUCTION_NOT_ACTIVE = "auction_not_active"
    AUCTION_ENDED = "auction_ended"
    SELF_BID = "self_bid"
    ALREADY_HIGHEST_BIDDER = "already_highest_bidder"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    BID_TOO_LOW = "bid_too_low"
    AUTO_BID_TOO_LOW = "auto_bid_too_low"
    INVALID_TRANSITION = "invalid_transition"
    FORBIDDEN = "forbidden"
    STALE_WRITE = "stale_write"


class AuctionError(ValueError):
    """Базовая ошибка движка"""

    default_reason = RejectionReason.INVALID_TRANSITION

    def __init__(
        self,
        message: str,
        reason: Optional[RejectionReason] = None,
        minimum_bid: Optional[Decimal] = None,
    ):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason
        self.minimum_bid = minimum_bid

    def to_dict(self) -> dict:
        data = {
            "success": False,
            "reason": self.reason.value,
            "message": self.message,
        }
        if self.minimum_bid is not None:
            data["minimumBid"] = self.minimum_bid
        return data


class ValidationError(AuctionError):
    """Некорректные входные данные"""
    default_reason = RejectionReason.INVALID_AMOUNT


class BidTooLowError(ValidationError):
    """Ставка ниже минимально допустимой"""
    default_reason = RejectionReason.BID_TOO_LOW


class NotFoundError(AuctionError):
    """Аукцион, ставка или пользователь не найдены"""
    default_reason = RejectionReason.AUCTION_NOT_FOUND


class StateError(AuctionError):
    """Операция недопустима в текущем состоянии аукциона"""
    default_reason = RejectionReason.INVALID_TRANSITION


class InsufficientFundsError(AuctionError):
    """Недостаточно средств на балансе"""
    default_reason = RejectionReason.INSUFFICIENT_FUNDS


class ConcurrencyError(AuctionError):
    """Запись устарела: аукцион изменили параллельно"""
    default_reason = RejectionReason.STALE_WRITE
