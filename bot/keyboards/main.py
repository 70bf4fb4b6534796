"""Основные клавиатуры"""
from aiogram.types import ReplyKeyboardMarkup, KeyboardButton

ACTIVE_AUCTIONS_BUTTON = "🔨 Active auctions"
BALANCE_BUTTON = "💰 Balance"
HELP_BUTTON = "ℹ️ Help"


def get_main_keyboard() -> ReplyKeyboardMarkup:
    """Главная клавиатура"""
    keyboard = [
        [KeyboardButton(text=ACTIVE_AUCTIONS_BUTTON)],
        [KeyboardButton(text=BALANCE_BUTTON)],
        [KeyboardButton(text=HELP_BUTTON)]
    ]
    return ReplyKeyboardMarkup(
        keyboard=keyboard,
        resize_keyboard=True
    )
