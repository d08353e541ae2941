from typing import Optional

from aiogram import Router, F
from aiogram.types import CallbackQuery
from aiogram.fsm.context import FSMContext

from prep_portal.errors import PreconditionError
from prep_portal.handlers.quiz import launch_quiz
from prep_portal.keyboards.main_menu import main_menu_keyboard
from prep_portal.keyboards.settings_kb import (
    difficulty_keyboard, duration_keyboard, question_count_keyboard, source_keyboard,
)
from prep_portal.models import SessionConfig
from prep_portal.services.portal import Portal
from prep_portal.states.quiz_states import QuizFlow

router = Router()


@router.callback_query(QuizFlow.choosing_mode, F.data.startswith("mode:"))
async def mode_selected(callback: CallbackQuery, state: FSMContext):
    mode = callback.data.split(":")[1]
    await state.update_data(mode=mode)
    await state.set_state(QuizFlow.choosing_difficulty)
    await callback.message.edit_text("🎚 Difficulty:", reply_markup=difficulty_keyboard())
    await callback.answer()


@router.callback_query(QuizFlow.choosing_difficulty, F.data.startswith("diff:"))
async def difficulty_selected(callback: CallbackQuery, state: FSMContext):
    await state.update_data(difficulty=callback.data.split(":")[1])
    await state.set_state(QuizFlow.choosing_question_count)
    await callback.message.edit_text("❓ How many questions?", reply_markup=question_count_keyboard())
    await callback.answer()


@router.callback_query(QuizFlow.choosing_question_count, F.data.startswith("count:"))
async def count_selected(callback: CallbackQuery, state: FSMContext):
    count = int(callback.data.split(":")[1])
    await state.update_data(question_count=count)

    data = await state.get_data()
    if data.get("mode") == "timed":
        await state.set_state(QuizFlow.choosing_duration)
        await callback.message.edit_text("⏱ Time limit:", reply_markup=duration_keyboard())
    else:
        await state.set_state(QuizFlow.choosing_source)
        await callback.message.edit_text("📦 Where should the questions come from?", reply_markup=source_keyboard())
    await callback.answer()


@router.callback_query(QuizFlow.choosing_duration, F.data.startswith("dur:"))
async def duration_selected(callback: CallbackQuery, state: FSMContext):
    await state.update_data(duration_minutes=int(callback.data.split(":")[1]))
    await state.set_state(QuizFlow.choosing_source)
    await callback.message.edit_text("📦 Where should the questions come from?", reply_markup=source_keyboard())
    await callback.answer()


@router.callback_query(QuizFlow.choosing_source, F.data.startswith("src:"))
async def source_selected(
    callback: CallbackQuery,
    state: FSMContext,
    portal: Portal,
    owner_id: Optional[int] = None,
):
    await state.update_data(source_mode=callback.data.split(":")[1])
    data = await state.get_data()
    await callback.answer()

    try:
        config = config_from_data(data)
        config.validate()
    except PreconditionError as e:
        await state.clear()
        await callback.message.edit_text(f"⚠️ {e.user_message}", reply_markup=main_menu_keyboard())
        return

    await launch_quiz(callback.message, state, portal, config, owner_id)


def config_from_data(data: dict) -> SessionConfig:
    """Build a SessionConfig from the values collected in FSM data."""
    kwargs = {
        key: data[key]
        for key in ("topic", "mode", "difficulty", "question_count", "duration_minutes", "source_mode")
        if key in data
    }
    return SessionConfig(**kwargs)
