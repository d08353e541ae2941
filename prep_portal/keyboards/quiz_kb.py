from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from prep_portal.models import Mode
from prep_portal.services.session_machine import QuizSession

LABELS = ["A", "B", "C", "D"]


def question_keyboard(session: QuizSession) -> InlineKeyboardMarkup:
    """Options plus navigation for the session's current question.

    Callback data carries the question index so taps on stale messages can
    be told apart from taps on the current question.
    """
    index = session.current_index
    question = session.current_question
    revealed = session.config.mode is Mode.PRACTICE and session.is_revealed(index)
    chosen = session.answers.get(index)

    buttons = []
    for i, option in enumerate(question.options):
        mark = ""
        if revealed:
            if i == question.correct_option_index:
                mark = "✅ "
            elif i == chosen:
                mark = "❌ "
        elif i == chosen:
            mark = "👉 "
        buttons.append([InlineKeyboardButton(
            text=f"{mark}{LABELS[i]}) {option}",
            callback_data=f"ans:{index}:{i}",
        )])

    nav = []
    if index > 0 and not revealed:
        nav.append(InlineKeyboardButton(text="◀️ Previous", callback_data=f"nav:prev:{index}"))
    if session.is_last:
        nav.append(InlineKeyboardButton(text="🏁 Finish", callback_data=f"nav:next:{index}"))
    else:
        nav.append(InlineKeyboardButton(text="Next ▶️", callback_data=f"nav:next:{index}"))
    buttons.append(nav)

    buttons.append([
        InlineKeyboardButton(text="⏹ End now", callback_data="nav:end"),
        InlineKeyboardButton(text="❌ Cancel quiz", callback_data="cancel_quiz"),
    ])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def results_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="📄 Download report", callback_data="report")],
        [InlineKeyboardButton(text="🔁 Same settings again", callback_data="retry_quiz")],
        [InlineKeyboardButton(text="🏠 Menu", callback_data="go_home")],
    ])
