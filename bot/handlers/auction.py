"""Обработчики аукционов"""
from datetime import timedelta
from aiogram import Router, F, html
from aiogram.types import CallbackQuery, Message
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from bot.keyboards.auction import get_auction_keyboard, get_bid_keyboard
from bot.keyboards.main import ACTIVE_AUCTIONS_BUTTON
from database.models import Auction, User
from services.auction import AuctionDraft, AuctionEngine
from services.bidding import CurrentBidInfo
from services.increments import format_money
from services.user import get_or_create_user
import logging

logger = logging.getLogger(__name__)

router = Router()

HISTORY_PAGE_SIZE = 10
MAX_AUCTION_HOURS = 24 * 30


class BidState(StatesGroup):
    """Состояния для ввода ставки"""
    waiting_amount = State()


async def _current_user(auctions: AuctionEngine, from_user) -> User:
    return await get_or_create_user(
        auctions.store,
        from_user.id,
        from_user.username,
        from_user.first_name,
        from_user.last_name
    )


def _parse_auction_id(command: CommandObject) -> int:
    if not command.args:
        raise ValueError("Specify the auction ID")
    try:
        return int(command.args.split()[0])
    except ValueError:
        raise ValueError("Auction ID must be a number")


def auction_text(auction: Auction, info: CurrentBidInfo) -> str:
    """Карточка аукциона"""
    text_parts = [f"📦 <b>{html.quote(auction.title)}</b> (#{auction.id})"]
    if auction.description:
        text_parts.append(html.quote(auction.description))
    text_parts.append(f"Status: {auction.status}")
    text_parts.append(f"Starting price: {format_money(auction.starting_price)}")
    text_parts.append(f"⚡️ Current price: <b>{format_money(info.current_price)}</b>")
    text_parts.append(f"👥 Bids: {info.total_bids}")
    if auction.is_active:
        text_parts.append(f"➡️ Minimum next bid: {format_money(info.minimum_next_bid)}")
    text_parts.append(f"⏰ Ends: {auction.end_time.strftime('%d.%m.%Y %H:%M UTC')}")
    if auction.reserve_price is not None and auction.is_active:
        met = info.current_bid is not None and info.current_price >= auction.reserve_price
        text_parts.append("✅ Reserve met" if met else "🔒 Reserve not met yet")
    return "\n".join(text_parts)


async def send_auction_card(message: Message, auctions: AuctionEngine, auction_id: int):
    """Отправить карточку аукциона"""
    user = await _current_user(auctions, message.from_user)
    try:
        auction = await auctions.get_auction(auction_id, viewer_id=user.id)
        info = await auctions.get_current_bid(auction_id)
    except ValueError as e:
        await message.answer(str(e))
        return
    await message.answer(
        auction_text(auction, info),
        reply_markup=get_auction_keyboard(auction.id) if auction.is_active else None
    )


async def _submit_bid(message: Message, auctions: AuctionEngine, from_user, auction_id: int, amount) -> bool:
    """Сделать ставку и ответить пользователю. True - ставка принята"""
    user = await _current_user(auctions, from_user)
    try:
        placed = await auctions.place_bid(auction_id, user.id, amount)
    except ValueError as e:
        await message.answer(f"❌ {e}")
        return False

    text = (
        f"✅ Your bid of <b>{format_money(placed.bid.amount)}</b> is accepted!\n"
        f"Minimum next bid: {format_money(placed.minimum_next_bid)}"
    )
    if placed.auto_bids:
        text += (
            f"\n\n⚡️ You were immediately outbid by an automatic bid of "
            f"{format_money(placed.auto_bids[-1].amount)}"
        )
    await message.answer(text)
    return True


@router.message(F.text == ACTIVE_AUCTIONS_BUTTON)
@router.message(Command("auctions"))
async def cmd_auctions(message: Message, auctions: AuctionEngine):
    """Список активных аукционов"""
    active = await auctions.get_active_auctions()
    if not active:
        await message.answer("There are no active auctions right now")
        return

    lines = ["🔨 <b>Active auctions</b>\n"]
    for auction in active[:20]:
        lines.append(
            f"#{auction.id} {html.quote(auction.title)}: {format_money(auction.current_bid)}, "
            f"ends {auction.end_time.strftime('%d.%m %H:%M UTC')}"
        )
    lines.append("\nOpen a lot with /auction &lt;id&gt;")
    await message.answer("\n".join(lines))


@router.message(Command("auction"))
async def cmd_auction(message: Message, auctions: AuctionEngine, command: CommandObject):
    try:
        auction_id = _parse_auction_id(command)
    except ValueError as e:
        await message.answer(str(e))
        return
    await send_auction_card(message, auctions, auction_id)


@router.message(Command("bid"))
async def cmd_bid(message: Message, auctions: AuctionEngine, command: CommandObject):
    """/bid <id> <сумма>"""
    args = (command.args or "").split()
    if len(args) != 2:
        await message.answer("Usage: /bid &lt;auction id&gt; &lt;amount&gt;")
        return
    try:
        auction_id = int(args[0])
    except ValueError:
        await message.answer("Auction ID must be a number")
        return
    await _submit_bid(message, auctions, message.from_user, auction_id, args[1].replace(",", ""))


@router.callback_query(F.data.startswith("auction:bid:"))
async def show_bid_options(callback: CallbackQuery, auctions: AuctionEngine):
    """Показать варианты ставки"""
    auction_id = int(callback.data.split(":")[2])
    try:
        info = await auctions.get_current_bid(auction_id)
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)
        return
    await callback.message.answer(
        f"Current price: {format_money(info.current_price)}\nChoose your bid:",
        reply_markup=get_bid_keyboard(auction_id, info.minimum_next_bid, info.minimum_increment)
    )
    await callback.answer()


@router.callback_query(F.data.startswith("bid:amount:"))
async def quick_bid(callback: CallbackQuery, auctions: AuctionEngine):
    """Быстрая ставка с кнопки"""
    _, _, auction_id, amount = callback.data.split(":")
    await _submit_bid(callback.message, auctions, callback.from_user, int(auction_id), amount)
    await callback.answer()


@router.callback_query(F.data.startswith("bid:custom:"))
async def custom_bid(callback: CallbackQuery, state: FSMContext):
    """Запросить свою сумму"""
    auction_id = int(callback.data.split(":")[2])
    await state.update_data(auction_id=auction_id)
    await state.set_state(BidState.waiting_amount)
    await callback.message.answer("Enter your bid amount:")
    await callback.answer()


@router.callback_query(F.data.startswith("bid:cancel:"))
async def cancel_bid(callback: CallbackQuery, state: FSMContext):
    await state.clear()
    await callback.message.edit_reply_markup(reply_markup=None)
    await callback.answer("Cancelled")


@router.message(BidState.waiting_amount, F.text, ~F.text.startswith("/"))
async def process_bid_amount(message: Message, auctions: AuctionEngine, state: FSMContext):
    """Обработка введенной суммы"""
    data = await state.get_data()
    auction_id = data.get("auction_id")
    if not auction_id:
        await state.clear()
        await message.answer("Open an auction first: /auctions")
        return
    amount = (message.text or "").replace(",", "").replace("$", "").strip()
    if await _submit_bid(message, auctions, message.from_user, auction_id, amount):
        await state.clear()


@router.callback_query(F.data.startswith("auction:bids:"))
async def show_bid_history_callback(callback: CallbackQuery, auctions: AuctionEngine):
    auction_id = int(callback.data.split(":")[2])
    await _send_history(callback.message, auctions, auction_id, 1)
    await callback.answer()


@router.message(Command("history"))
async def cmd_history(message: Message, auctions: AuctionEngine, command: CommandObject):
    """/history <id> [страница]"""
    args = (command.args or "").split()
    try:
        auction_id = int(args[0])
        page = int(args[1]) if len(args) > 1 else 1
    except (ValueError, IndexError):
        await message.answer("Usage: /history &lt;auction id&gt; [page]")
        return
    await _send_history(message, auctions, auction_id, page)


async def _send_history(message: Message, auctions: AuctionEngine, auction_id: int, page: int):
    try:
        history = await auctions.get_bid_history(auction_id, limit=HISTORY_PAGE_SIZE, page=page)
    except ValueError as e:
        await message.answer(str(e))
        return
    if not history.bids:
        await message.answer("No bids yet")
        return

    lines = [f"📊 <b>Bids on lot #{auction_id}</b> (page {history.page}/{history.pages})\n"]
    for bid in history.bids:
        bidder = await auctions.store.get_user(bid.bidder_id)
        name = html.quote(bidder.display_name) if bidder else f"user {bid.bidder_id}"
        auto_mark = " ⚡️" if bid.bid_type == "auto" else ""
        lines.append(f"{format_money(bid.amount)}{auto_mark} by {name}, {bid.bid_time.strftime('%d.%m %H:%M:%S')}")
    await message.answer("\n".join(lines))


@router.message(Command("mybids"))
async def cmd_my_bids(message: Message, auctions: AuctionEngine, command: CommandObject):
    try:
        auction_id = _parse_auction_id(command)
        user = await _current_user(auctions, message.from_user)
        bids = await auctions.get_user_bids(auction_id, user.id)
    except ValueError as e:
        await message.answer(str(e))
        return
    if not bids:
        await message.answer("You have no bids on this auction")
        return
    lines = [f"Your bids on lot #{auction_id}:"]
    for bid in bids:
        lines.append(f"{format_money(bid.amount)}{' (leading)' if bid.is_winning else ''}")
    await message.answer("\n".join(lines))


@router.message(Command("autobid"))
async def cmd_autobid(message: Message, auctions: AuctionEngine, command: CommandObject):
    """/autobid <id> <максимум>"""
    args = (command.args or "").split()
    if len(args) != 2:
        await message.answer("Usage: /autobid &lt;auction id&gt; &lt;maximum&gt;")
        return
    try:
        auction_id = int(args[0])
        user = await _current_user(auctions, message.from_user)
        order = await auctions.set_auto_bid(auction_id, user.id, args[1].replace(",", ""))
    except ValueError as e:
        await message.answer(f"❌ {e}")
        return
    await message.answer(
        f"⚡️ Auto bidding is on for lot #{auction_id} up to {format_money(order.max_amount)}"
    )


@router.message(Command("cancelautobid"))
async def cmd_cancel_autobid(message: Message, auctions: AuctionEngine, command: CommandObject):
    try:
        auction_id = _parse_auction_id(command)
        user = await _current_user(auctions, message.from_user)
        cancelled = await auctions.cancel_auto_bid(auction_id, user.id)
    except ValueError as e:
        await message.answer(str(e))
        return
    await message.answer("Auto bidding stopped" if cancelled else "You had no auto bid on this lot")


@router.callback_query(F.data.startswith("auction:watch:"))
async def watch_callback(callback: CallbackQuery, auctions: AuctionEngine):
    auction_id = int(callback.data.split(":")[2])
    user = await _current_user(auctions, callback.from_user)
    try:
        added = await auctions.add_to_watchlist(auction_id, user.id)
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)
        return
    await callback.answer("Added to your watchlist" if added else "Already in your watchlist")


@router.message(Command("watch"))
async def cmd_watch(message: Message, auctions: AuctionEngine, command: CommandObject):
    try:
        auction_id = _parse_auction_id(command)
        user = await _current_user(auctions, message.from_user)
        added = await auctions.add_to_watchlist(auction_id, user.id)
    except ValueError as e:
        await message.answer(str(e))
        return
    await message.answer("⭐ Added to your watchlist" if added else "Already in your watchlist")


@router.message(Command("unwatch"))
async def cmd_unwatch(message: Message, auctions: AuctionEngine, command: CommandObject):
    try:
        auction_id = _parse_auction_id(command)
        user = await _current_user(auctions, message.from_user)
        removed = await auctions.remove_from_watchlist(auction_id, user.id)
    except ValueError as e:
        await message.answer(str(e))
        return
    await message.answer("Removed from your watchlist" if removed else "This lot was not in your watchlist")


@router.message(Command("sell"))
async def cmd_sell(message: Message, auctions: AuctionEngine, command: CommandObject):
    """/sell <стартовая цена> <часы> <название> - выставить лот сразу"""
    args = (command.args or "").split(maxsplit=2)
    if len(args) != 3:
        await message.answer("Usage: /sell &lt;start price&gt; &lt;hours&gt; &lt;title&gt;")
        return
    try:
        hours = float(args[1])
    except ValueError:
        await message.answer("Duration must be a number of hours")
        return
    if not 0 < hours <= MAX_AUCTION_HOURS:
        await message.answer(f"Duration must be between 0 and {MAX_AUCTION_HOURS} hours")
        return

    user = await _current_user(auctions, message.from_user)
    now = auctions.clock()
    try:
        auction = await auctions.create_auction(user.id, AuctionDraft(
            title=args[2],
            starting_price=args[0].replace(",", ""),
            start_time=now,
            end_time=now + timedelta(hours=hours),
        ))
        auction = await auctions.schedule(auction.id, actor_id=user.id)
    except ValueError as e:
        await message.answer(f"❌ {e}")
        return

    logger.info(f"Пользователь {user.id} выставил лот {auction.id}")
    await message.answer(
        f"✅ Lot #{auction.id} is on auction until {auction.end_time.strftime('%d.%m.%Y %H:%M UTC')}",
        reply_markup=get_auction_keyboard(auction.id)
    )
