from aiogram import Router, F
from aiogram.types import CallbackQuery
from aiogram.fsm.context import FSMContext

from prep_portal.config import TOPICS
from prep_portal.keyboards.settings_kb import mode_keyboard
from prep_portal.keyboards.topic_kb import topic_keyboard
from prep_portal.states.quiz_states import QuizFlow

router = Router()

TOPIC_PROMPT = "📚 Choose your event:"


@router.callback_query(F.data == "start_test")
async def choose_topic(callback: CallbackQuery, state: FSMContext):
    await state.set_state(QuizFlow.choosing_topic)
    await callback.message.edit_text(TOPIC_PROMPT, reply_markup=topic_keyboard())
    await callback.answer()


@router.callback_query(F.data == "back_to_topic")
async def back_to_topic(callback: CallbackQuery, state: FSMContext):
    await choose_topic(callback, state)


@router.callback_query(QuizFlow.choosing_topic, F.data.startswith("topic:"))
async def topic_selected(callback: CallbackQuery, state: FSMContext):
    await _select_topic(callback, state, callback.data.split(":")[1])


@router.callback_query(F.data.startswith("retake:"))
async def retake_topic(callback: CallbackQuery, state: FSMContext):
    """Shortcut from the history list straight to the chosen topic."""
    await _select_topic(callback, state, callback.data.split(":")[1])


async def _select_topic(callback: CallbackQuery, state: FSMContext, raw_index: str):
    if not raw_index.isdigit() or int(raw_index) >= len(TOPICS):
        await callback.answer("Unknown topic", show_alert=True)
        return

    topic = TOPICS[int(raw_index)]
    await state.update_data(topic=topic)
    await state.set_state(QuizFlow.choosing_mode)
    await callback.message.edit_text(
        f"📝 Topic: {topic}\n\nPick a mode:",
        reply_markup=mode_keyboard(),
    )
    await callback.answer()
