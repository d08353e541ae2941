import logging
from typing import Optional

from aiogram import Router, F
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import Message, CallbackQuery
from aiogram.fsm.context import FSMContext

from prep_portal.db.queries import ensure_user, save_feedback, set_registered
from prep_portal.keyboards.main_menu import main_menu_keyboard
from prep_portal.services.portal import Portal

logger = logging.getLogger(__name__)

router = Router()


def welcome_text(owner_id: Optional[int]) -> str:
    mode_line = (
        "✅ Signed in — your results are saved to your history."
        if owner_id is not None
        else "👤 Guest mode — results are kept for this chat only. Use /signup to save them."
    )
    return (
        "👋 Welcome to FBLA Prep! Practice competitive events with AI-generated "
        "or community questions.\n\n"
        f"{mode_line}\n\n"
        "Choose what to do:"
    )


@router.message(CommandStart())
async def cmd_start(message: Message, state: FSMContext, portal: Portal, owner_id: Optional[int] = None):
    await state.clear()
    portal.reset(message.chat.id)
    await ensure_user(message.from_user.id, message.from_user.username, message.from_user.first_name)
    await message.answer(welcome_text(owner_id), reply_markup=main_menu_keyboard())


@router.callback_query(F.data == "go_home")
async def go_home(callback: CallbackQuery, state: FSMContext, portal: Portal, owner_id: Optional[int] = None):
    await state.clear()
    portal.reset(callback.message.chat.id)
    await callback.message.edit_text(welcome_text(owner_id), reply_markup=main_menu_keyboard())
    await callback.answer()


@router.message(Command("signup"))
async def cmd_signup(message: Message, owner_id: Optional[int] = None):
    if owner_id is not None:
        await message.answer("You are already signed in.")
        return
    await set_registered(message.from_user.id, True)
    logger.info("User %s signed up", message.from_user.id)
    await message.answer(
        "✅ Signed in! From now on your results are saved to your history.",
        reply_markup=main_menu_keyboard(),
    )


@router.message(Command("signout"))
async def cmd_signout(message: Message, owner_id: Optional[int] = None):
    if owner_id is None:
        await message.answer("You are in guest mode already.")
        return
    await set_registered(message.from_user.id, False)
    await message.answer(
        "👋 Signed out. New results will be kept for this chat only.",
        reply_markup=main_menu_keyboard(),
    )


@router.message(Command("feedback"))
async def cmd_feedback(message: Message, command: CommandObject):
    text = (command.args or "").strip()
    if not text:
        await message.answer("Format: /feedback <what can we improve?>")
        return
    try:
        await save_feedback(message.from_user.id, text)
    except Exception:
        logger.exception("Saving feedback from %s failed", message.from_user.id)
        await message.answer("😞 Could not send feedback. Please try again later.")
        return
    await message.answer("🙏 Feedback sent successfully!")
