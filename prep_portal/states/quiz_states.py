from aiogram.fsm.state import StatesGroup, State


class QuizFlow(StatesGroup):
    choosing_topic = State()
    choosing_mode = State()
    choosing_difficulty = State()
    choosing_question_count = State()
    choosing_duration = State()
    choosing_source = State()
    sourcing = State()
    answering_question = State()
    viewing_results = State()
