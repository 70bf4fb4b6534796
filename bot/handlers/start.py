"""Обработчики команды /start"""
from aiogram import Router, F
from aiogram.types import Message
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from bot.keyboards.main import BALANCE_BUTTON, HELP_BUTTON, get_main_keyboard
from services.auction import AuctionEngine
from services.increments import format_money
from services.user import get_or_create_user

router = Router()

HELP_TEXT = (
    "🔨 <b>Auction bot</b>\n\n"
    "/auctions - active auctions\n"
    "/auction &lt;id&gt; - auction card\n"
    "/bid &lt;id&gt; &lt;amount&gt; - place a bid\n"
    "/autobid &lt;id&gt; &lt;max&gt; - bid automatically up to a maximum\n"
    "/cancelautobid &lt;id&gt; - stop auto bidding\n"
    "/history &lt;id&gt; [page] - bid history\n"
    "/mybids &lt;id&gt; - your bids on an auction\n"
    "/watch &lt;id&gt;, /unwatch &lt;id&gt; - watchlist\n"
    "/sell &lt;start price&gt; &lt;hours&gt; &lt;title&gt; - put a lot up for auction\n"
    "/balance - your balance"
)


@router.message(Command("start"))
async def cmd_start(message: Message, auctions: AuctionEngine, state: FSMContext, command: CommandObject):
    """Обработчик команды /start"""
    await state.clear()
    await get_or_create_user(
        auctions.store,
        message.from_user.id,
        message.from_user.username,
        message.from_user.first_name,
        message.from_user.last_name
    )

    # deep-link вида auction_123 сразу открывает карточку аукциона
    if command.args and command.args.startswith("auction_"):
        try:
            auction_id = int(command.args.split("_")[1])
        except (ValueError, IndexError):
            auction_id = None
        if auction_id:
            from bot.handlers.auction import send_auction_card
            await send_auction_card(message, auctions, auction_id)
            return

    await message.answer(
        "👋 Welcome to the auction bot!\n\nChoose a section:",
        reply_markup=get_main_keyboard()
    )


@router.message(F.text == HELP_BUTTON)
@router.message(Command("help"))
async def cmd_help(message: Message):
    await message.answer(HELP_TEXT)


@router.message(F.text == BALANCE_BUTTON)
@router.message(Command("balance"))
async def cmd_balance(message: Message, auctions: AuctionEngine):
    """Показать баланс"""
    user = await get_or_create_user(
        auctions.store,
        message.from_user.id,
        message.from_user.username,
        message.from_user.first_name,
        message.from_user.last_name
    )
    await message.answer(
        f"💰 Your balance: <b>{format_money(user.balance or 0)}</b>\n"
        f"🆔 Your ID: <code>{message.from_user.id}</code>"
    )
