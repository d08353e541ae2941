from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from prep_portal.config import TOPICS


def topic_keyboard() -> InlineKeyboardMarkup:
    buttons = []
    row = []
    for i, topic in enumerate(TOPICS):
        row.append(InlineKeyboardButton(text=topic, callback_data=f"topic:{i}"))
        if len(row) == 2:
            buttons.append(row)
            row = []
    if row:
        buttons.append(row)
    buttons.append([InlineKeyboardButton(text="🏠 Back", callback_data="go_home")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)
