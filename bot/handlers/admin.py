"""Обработчики для админов и продавцов

Управлять аукционом (пауза, продление, отмена) может его продавец или
админ. Админы из .env (ADMIN_USER_IDS) назначают админов в БД и
пополняют балансы.
"""
from typing import Optional
from aiogram import Router, html
from aiogram.types import Message
from aiogram.filters import Command, CommandObject
from config import settings
from services.auction import AuctionEngine
from services.increments import format_money
from services.user import get_or_create_user, update_user_balance
import logging

logger = logging.getLogger(__name__)

router = Router()


async def is_admin(telegram_id: int, auctions: AuctionEngine) -> bool:
    """Проверить, является ли пользователь админом"""
    # Проверяем, является ли админом из .env
    if telegram_id in settings.admin_ids_list:
        return True

    # Проверяем, является ли админом из БД
    user = await auctions.store.get_user_by_telegram_id(telegram_id)
    return user is not None and user.is_admin


async def _actor_id(message: Message, auctions: AuctionEngine) -> Optional[int]:
    """ID пользователя для проверки прав. Админ из .env действует от имени системы"""
    if message.from_user.id in settings.admin_ids_list:
        return None
    user = await get_or_create_user(
        auctions.store,
        message.from_user.id,
        message.from_user.username,
        message.from_user.first_name,
        message.from_user.last_name
    )
    return user.id


def _auction_args(command: CommandObject) -> list:
    args = (command.args or "").split(maxsplit=1)
    if not args:
        raise ValueError("Specify the auction ID")
    try:
        args[0] = int(args[0])
    except ValueError:
        raise ValueError("Auction ID must be a number")
    return args


@router.message(Command("admin"))
async def cmd_admin(message: Message, auctions: AuctionEngine):
    """Админ панель"""
    if not await is_admin(message.from_user.id, auctions):
        await message.answer("You don't have admin rights")
        return

    text = (
        "👮 Admin panel\n\n"
        "/pause &lt;id&gt; - pause an auction\n"
        "/resume &lt;id&gt; - resume an auction\n"
        "/extend &lt;id&gt; &lt;minutes&gt; - extend an auction\n"
        "/cancel_auction &lt;id&gt; [reason] - cancel an auction\n"
        "/finalize &lt;id&gt; - close an expired auction now\n"
        "/deposit &lt;telegram id&gt; &lt;amount&gt; - top up a balance\n"
        "/makeadmin &lt;telegram id&gt; - grant admin rights"
    )
    await message.answer(text)


@router.message(Command("pause"))
async def cmd_pause(message: Message, auctions: AuctionEngine, command: CommandObject):
    try:
        auction_id = _auction_args(command)[0]
        auction = await auctions.pause(auction_id, actor_id=await _actor_id(message, auctions))
    except ValueError as e:
        await message.answer(f"❌ {e}")
        return
    await message.answer(f"⏸ Auction #{auction.id} is paused")


@router.message(Command("resume"))
async def cmd_resume(message: Message, auctions: AuctionEngine, command: CommandObject):
    try:
        auction_id = _auction_args(command)[0]
        auction = await auctions.resume(auction_id, actor_id=await _actor_id(message, auctions))
    except ValueError as e:
        await message.answer(f"❌ {e}")
        return
    if auction.status == "ended":
        await message.answer(f"Auction #{auction.id} had already expired and is now closed")
    else:
        await message.answer(f"▶️ Auction #{auction.id} is active again")


@router.message(Command("extend"))
async def cmd_extend(message: Message, auctions: AuctionEngine, command: CommandObject):
    """/extend <id> <минуты>"""
    try:
        args = _auction_args(command)
        if len(args) < 2:
            raise ValueError("Usage: /extend &lt;auction id&gt; &lt;minutes&gt;")
        auction = await auctions.extend_by_minutes(args[0], args[1], actor_id=await _actor_id(message, auctions))
    except ValueError as e:
        await message.answer(f"❌ {e}")
        return
    await message.answer(
        f"⏳ Auction #{auction.id} now ends {auction.end_time.strftime('%d.%m.%Y %H:%M UTC')}"
    )


@router.message(Command("cancel_auction"))
async def cmd_cancel_auction(message: Message, auctions: AuctionEngine, command: CommandObject):
    """/cancel_auction <id> [причина]"""
    try:
        args = _auction_args(command)
        reason = args[1] if len(args) > 1 else None
        auction = await auctions.cancel(args[0], reason, actor_id=await _actor_id(message, auctions))
    except ValueError as e:
        await message.answer(f"❌ {e}")
        return
    await message.answer(f"🚫 Auction #{auction.id} is cancelled")


@router.message(Command("finalize"))
async def cmd_finalize(message: Message, auctions: AuctionEngine, command: CommandObject):
    if not await is_admin(message.from_user.id, auctions):
        await message.answer("You don't have admin rights")
        return
    try:
        auction = await auctions.finalize(_auction_args(command)[0])
    except ValueError as e:
        await message.answer(f"❌ {e}")
        return
    if auction.status != "ended":
        await message.answer(f"Auction #{auction.id} has not expired yet (status: {auction.status})")
    elif auction.winner_id:
        await message.answer(f"🤝 Auction #{auction.id} closed at {format_money(auction.winning_bid)}")
    else:
        await message.answer(f"Auction #{auction.id} closed without a winner")


@router.message(Command("deposit"))
async def cmd_deposit(message: Message, auctions: AuctionEngine, command: CommandObject):
    """/deposit <telegram id> <сумма>"""
    if message.from_user.id not in settings.admin_ids_list:
        await message.answer("Only main admins can top up balances")
        return

    args = (command.args or "").split()
    if len(args) != 2 or not args[0].isdigit():
        await message.answer("Usage: /deposit &lt;telegram id&gt; &lt;amount&gt;")
        return

    user = await auctions.store.get_user_by_telegram_id(int(args[0]))
    if not user:
        await message.answer(
            f"User {args[0]} not found.\n"
            f"Ask them to send /start to the bot first"
        )
        return

    try:
        user = await update_user_balance(auctions.store, user.id, args[1].replace(",", ""))
    except ValueError as e:
        await message.answer(f"❌ {e}")
        return

    logger.info(f"Админ {message.from_user.id} изменил баланс пользователя {user.id} на {args[1]}")
    await message.answer(f"✅ Balance of {html.quote(user.display_name)}: {format_money(user.balance)}")


@router.message(Command("makeadmin"))
async def cmd_make_admin(message: Message, auctions: AuctionEngine, command: CommandObject):
    """Назначить админа"""
    if message.from_user.id not in settings.admin_ids_list:
        await message.answer("Only main admins can grant admin rights")
        return

    if not command.args or not command.args.strip().isdigit():
        await message.answer("Please enter a valid Telegram ID (number)")
        return

    telegram_id = int(command.args.strip())
    user = await auctions.store.get_user_by_telegram_id(telegram_id)
    if not user:
        await message.answer(
            f"User {telegram_id} not found.\n"
            f"Ask them to send /start to the bot first"
        )
        return

    if user.is_admin:
        await message.answer(f"User {telegram_id} is already an admin")
        return

    user.is_admin = True
    await auctions.store.save_user(user)
    logger.info(f"Пользователь {telegram_id} назначен админом")
    await message.answer(f"✅ User {telegram_id} is now an admin")
