from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from prep_portal.config import DURATIONS, QUESTION_COUNTS

BACK_TO_TOPIC = InlineKeyboardButton(text="🔙 Back to topics", callback_data="back_to_topic")


def mode_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🎯 Practice", callback_data="mode:practice")],
        [InlineKeyboardButton(text="⏱ Ranked (timed)", callback_data="mode:timed")],
        [BACK_TO_TOPIC],
    ])


def difficulty_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="Easy", callback_data="diff:easy"),
            InlineKeyboardButton(text="Medium", callback_data="diff:medium"),
            InlineKeyboardButton(text="Hard", callback_data="diff:hard"),
        ],
        [BACK_TO_TOPIC],
    ])


def question_count_keyboard() -> InlineKeyboardMarkup:
    buttons = []
    for count in QUESTION_COUNTS:
        buttons.append([InlineKeyboardButton(
            text=f"{count} questions",
            callback_data=f"count:{count}",
        )])
    buttons.append([BACK_TO_TOPIC])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def duration_keyboard() -> InlineKeyboardMarkup:
    buttons = [[
        InlineKeyboardButton(text=f"{minutes} min", callback_data=f"dur:{minutes}")
        for minutes in DURATIONS
    ]]
    buttons.append([BACK_TO_TOPIC])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def source_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🤖 Fresh AI questions", callback_data="src:ai")],
        [InlineKeyboardButton(text="👥 Community pool", callback_data="src:pool")],
        [BACK_TO_TOPIC],
    ])
