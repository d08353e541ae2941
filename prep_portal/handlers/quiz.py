import logging
from typing import Optional

from aiogram import Router, F
from aiogram.types import Message, CallbackQuery
from aiogram.fsm.context import FSMContext

from prep_portal.handlers.results import deliver_results
from prep_portal.keyboards.main_menu import main_menu_keyboard, retry_keyboard
from prep_portal.keyboards.quiz_kb import LABELS, question_keyboard
from prep_portal.models import Mode, Phase, SessionConfig
from prep_portal.services.portal import Portal
from prep_portal.services.report import format_time
from prep_portal.services.session_machine import QuizSession
from prep_portal.states.quiz_states import QuizFlow

logger = logging.getLogger(__name__)

router = Router()


async def launch_quiz(
    message: Message,
    state: FSMContext,
    portal: Portal,
    config: SessionConfig,
    owner_id: Optional[int] = None,
):
    """Source questions for ``config`` and show the first one.

    ``message`` is the bot message that gets edited into the question view.
    """
    chat_id = message.chat.id

    async def on_timeout(session: QuizSession):
        await message.answer("⏰ Time is up!")
        await deliver_results(message, state, portal, session, owner_id)

    session = portal.new_session(chat_id, config, on_timeout=on_timeout)
    await state.set_state(QuizFlow.sourcing)

    source = "the shared pool" if config.source_mode.value == "pool" else "AI"
    await message.edit_text(
        f"⏳ Preparing {config.question_count} questions on {config.topic} from {source}…"
    )

    ok = await session.start()
    if portal.get_session(chat_id) is not session:
        # Replaced by a newer attempt while sourcing
        return

    if not ok:
        if session.error is None:
            return
        await state.clear()
        await message.edit_text(
            f"😞 Could not prepare the quiz.\n\n{session.error}",
            reply_markup=retry_keyboard(),
        )
        return

    await state.set_state(QuizFlow.answering_question)
    await show_question(message, session)


def render_question(session: QuizSession) -> str:
    question = session.current_question
    lines = [f"❓ Question {session.current_index + 1} of {len(session.questions)}"]
    if session.config.is_timed:
        lines.append(f"⏱ {format_time(session.remaining_seconds)} left")
    lines.append("")
    lines.append(question.text)

    if session.config.mode is Mode.PRACTICE and session.is_revealed():
        chosen = session.answers.get(session.current_index)
        if chosen == question.correct_option_index:
            lines.append("\n✅ Correct!")
        else:
            correct = question.correct_option_index
            lines.append(f"\n❌ Incorrect. Answer: {LABELS[correct]}) {question.correct_option}")
        lines.append(f"\n💡 {question.explanation}")

    return "\n".join(lines)


async def show_question(message: Message, session: QuizSession):
    await message.edit_text(render_question(session), reply_markup=question_keyboard(session))


def _live_session(portal: Portal, chat_id: int) -> Optional[QuizSession]:
    session = portal.get_session(chat_id)
    if session is None or session.phase is not Phase.ACTIVE:
        return None
    return session


@router.callback_query(QuizFlow.answering_question, F.data.startswith("ans:"))
async def answer_selected(
    callback: CallbackQuery,
    state: FSMContext,
    portal: Portal,
    owner_id: Optional[int] = None,
):
    _, raw_index, raw_option = callback.data.split(":")
    session = _live_session(portal, callback.message.chat.id)
    if session is None:
        await callback.answer("This quiz is over.")
        return
    if int(raw_index) != session.current_index:
        await callback.answer("That question is no longer shown.")
        return

    if not session.select_option(int(raw_option)):
        await callback.answer("Already answered.")
        return
    await callback.answer()
    await show_question(callback.message, session)


@router.callback_query(QuizFlow.answering_question, F.data.startswith("nav:prev:"))
async def previous_question(callback: CallbackQuery, portal: Portal):
    session = _live_session(portal, callback.message.chat.id)
    if session is None or int(callback.data.split(":")[2]) != session.current_index:
        await callback.answer()
        return
    if not session.retreat():
        await callback.answer("You can't go back from here.")
        return
    await callback.answer()
    await show_question(callback.message, session)


@router.callback_query(QuizFlow.answering_question, F.data.startswith("nav:next:"))
async def next_question(
    callback: CallbackQuery,
    state: FSMContext,
    portal: Portal,
    owner_id: Optional[int] = None,
):
    session = _live_session(portal, callback.message.chat.id)
    if session is None or int(callback.data.split(":")[2]) != session.current_index:
        await callback.answer()
        return
    await callback.answer()

    session.advance()
    if session.phase is Phase.FINISHED:
        await deliver_results(callback.message, state, portal, session, owner_id)
    else:
        await show_question(callback.message, session)


@router.callback_query(QuizFlow.answering_question, F.data == "nav:end")
async def end_quiz(
    callback: CallbackQuery,
    state: FSMContext,
    portal: Portal,
    owner_id: Optional[int] = None,
):
    session = _live_session(portal, callback.message.chat.id)
    await callback.answer()
    if session is None or not session.finish():
        return
    await deliver_results(callback.message, state, portal, session, owner_id)


@router.callback_query(F.data == "cancel_quiz")
async def cancel_quiz(callback: CallbackQuery, state: FSMContext, portal: Portal):
    """Cancel the current quiz and go home."""
    portal.reset(callback.message.chat.id)
    await state.clear()
    await callback.message.edit_text(
        "Quiz cancelled. Back to the main menu.",
        reply_markup=main_menu_keyboard(),
    )
    await callback.answer()


@router.callback_query(F.data == "retry_quiz")
async def retry_quiz(
    callback: CallbackQuery,
    state: FSMContext,
    portal: Portal,
    owner_id: Optional[int] = None,
):
    """Run a new attempt with the settings of the chat's last session."""
    session = portal.get_session(callback.message.chat.id)
    await callback.answer()
    if session is None or not session.config.topic:
        await state.clear()
        await callback.message.edit_text(
            "No previous settings found. Let's pick a topic.",
            reply_markup=main_menu_keyboard(),
        )
        return
    await launch_quiz(callback.message, state, portal, session.config, owner_id)
