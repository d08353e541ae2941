import logging
from typing import Optional

from aiogram import Router, F
from aiogram.types import BufferedInputFile, CallbackQuery, Message
from aiogram.fsm.context import FSMContext

from prep_portal.errors import PersistenceError
from prep_portal.keyboards.quiz_kb import LABELS, results_keyboard
from prep_portal.models import ResultRecord
from prep_portal.services.portal import Portal
from prep_portal.services.report import render_report, report_filename
from prep_portal.services.scoring import score_comment
from prep_portal.services.session_machine import QuizSession
from prep_portal.states.quiz_states import QuizFlow

logger = logging.getLogger(__name__)

router = Router()

MAX_REVIEW_ITEMS = 10


def render_results(session: QuizSession, record: ResultRecord, is_guest: bool) -> str:
    text = (
        "📊 Quiz results\n\n"
        f"📚 Topic: {record.topic}\n"
        f"🎯 Mode: {record.mode.value.title()} · {record.difficulty.value.title()}\n\n"
        f"Correct: {record.correct_count} of {record.total_count} ({record.score}%)\n"
        f"{score_comment(record.score)}"
    )

    # Review of missed questions
    missed = [
        (i, q) for i, q in enumerate(session.questions)
        if session.answers.get(i) != q.correct_option_index
    ]
    if missed:
        text += "\n\n📝 Review:\n"
        for i, q in missed[:MAX_REVIEW_ITEMS]:
            chosen = session.answers.get(i)
            given = f"{LABELS[chosen]}) {q.options[chosen]}" if chosen is not None else "no answer"
            text += (
                f"\n{i + 1}. {q.text}\n"
                f"   Your answer: {given}\n"
                f"   Correct: {LABELS[q.correct_option_index]}) {q.correct_option}\n"
                f"   💡 {q.explanation}\n"
            )
        if len(missed) > MAX_REVIEW_ITEMS:
            text += f"\n…and {len(missed) - MAX_REVIEW_ITEMS} more. Download the report for the full list."

    if is_guest:
        text += "\n\n👤 Guest result, kept for this chat only. Use /signup to build a history."
    return text


async def deliver_results(
    message: Message,
    state: FSMContext,
    portal: Portal,
    session: QuizSession,
    owner_id: Optional[int] = None,
):
    """Persist the finished session once and show the results."""

    async def notify(error: PersistenceError):
        await message.answer(f"⚠️ {error.user_message}")

    record = await portal.recorder.record(session, owner_id, key=message.chat.id, notify=notify)
    await state.set_state(QuizFlow.viewing_results)

    text = render_results(session, record, is_guest=owner_id is None)
    # Telegram caps message text at 4096 characters
    if len(text) > 4000:
        text = text[:4000] + "…"
    await message.edit_text(text, reply_markup=results_keyboard())


@router.callback_query(F.data == "report")
async def download_report(callback: CallbackQuery, portal: Portal):
    session = portal.get_session(callback.message.chat.id)
    if session is None or session.result is None:
        await callback.answer("No finished quiz to report on.", show_alert=True)
        return
    await callback.answer()
    await send_report(callback.message, session.result)


async def send_report(message: Message, record: ResultRecord):
    document = BufferedInputFile(render_report(record).encode("utf-8"), filename=report_filename(record))
    await message.answer_document(document, caption="📄 Your quiz report")
