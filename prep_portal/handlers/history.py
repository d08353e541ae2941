import logging
from typing import Optional

from aiogram import Router, F
from aiogram.types import CallbackQuery
from aiogram.fsm.context import FSMContext

from prep_portal.config import settings
from prep_portal.keyboards.main_menu import history_keyboard
from prep_portal.services.portal import Portal
from prep_portal.services.progress_tracker import format_history, format_weak_areas, format_overall_stats

logger = logging.getLogger(__name__)

router = Router()

RETAKE_BUTTONS = 3


@router.callback_query(F.data == "my_results")
async def show_history(
    callback: CallbackQuery,
    state: FSMContext,
    portal: Portal,
    owner_id: Optional[int] = None,
):
    await state.clear()

    key = owner_id if owner_id is not None else callback.message.chat.id
    records = await portal.history_for(owner_id).recent(key, settings.HISTORY_LIMIT)

    text = format_history(records, is_guest=owner_id is None)
    if owner_id is not None:
        weak = await format_weak_areas(owner_id)
        stats = await format_overall_stats(owner_id)
        if weak:
            text += "\n" + weak
        if stats:
            text += "\n" + stats

    # Most recent distinct topics first
    recent_topics = list(dict.fromkeys(r.topic for r in records))[:RETAKE_BUTTONS]
    await callback.message.edit_text(text, reply_markup=history_keyboard(recent_topics))
    await callback.answer()
