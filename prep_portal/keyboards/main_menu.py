from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from prep_portal.config import TOPICS


def main_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="📝 Start a quiz", callback_data="start_test")],
        [InlineKeyboardButton(text="📈 My results", callback_data="my_results")],
    ])


def retry_keyboard() -> InlineKeyboardMarkup:
    """Shown after a sourcing failure; retry reuses the last settings."""
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔁 Try again", callback_data="retry_quiz")],
        [InlineKeyboardButton(text="⚙️ Change settings", callback_data="start_test")],
        [InlineKeyboardButton(text="🏠 Menu", callback_data="go_home")],
    ])


def history_keyboard(topics: list[str]) -> InlineKeyboardMarkup:
    """Retake buttons for recently practiced topics, then the menu."""
    buttons = [
        [InlineKeyboardButton(text=f"🔁 {topic}", callback_data=f"retake:{TOPICS.index(topic)}")]
        for topic in topics
        if topic in TOPICS
    ]
    buttons.append([InlineKeyboardButton(text="📝 Start a quiz", callback_data="start_test")])
    buttons.append([InlineKeyboardButton(text="🏠 Menu", callback_data="go_home")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)
