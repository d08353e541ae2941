"""Tests for the bot handlers with mocked Telegram objects."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import FakeGenerator, FakeHistory, FakePool
from prep_portal.errors import TransportError
from prep_portal.handlers.admin import cmd_seed, resolve_topic
from prep_portal.handlers.history import show_history
from prep_portal.handlers.quiz import answer_selected, end_quiz, launch_quiz, next_question, retry_quiz
from prep_portal.handlers.results import download_report
from prep_portal.handlers.settings import config_from_data, source_selected
from prep_portal.handlers.start import cmd_signup, cmd_start
from prep_portal.middleware.identity import IdentityMiddleware
from prep_portal.models import Mode, Phase, SessionConfig
from prep_portal.services.portal import Portal
from prep_portal.states.quiz_states import QuizFlow

CHAT_ID = 1001


def _make_mock_message(user_id: int = 12345) -> AsyncMock:
    """Creates a mock Message."""
    message = AsyncMock()
    message.from_user = MagicMock()
    message.from_user.id = user_id
    message.chat = MagicMock()
    message.chat.id = CHAT_ID
    message.chat.type = "private"
    message.answer = AsyncMock()
    message.edit_text = AsyncMock()
    return message


def _make_mock_callback(data: str, user_id: int = 12345) -> AsyncMock:
    """Creates a mock CallbackQuery."""
    callback = AsyncMock()
    callback.from_user = MagicMock()
    callback.from_user.id = user_id
    callback.data = data
    callback.message = _make_mock_message(user_id)
    callback.answer = AsyncMock()
    return callback


def _make_state(data=None) -> AsyncMock:
    state = AsyncMock()
    state.get_data.return_value = data or {}
    return state


@pytest.fixture
def portal(scheduler):
    return Portal(
        generator=FakeGenerator(),
        pool=FakePool(),
        remote_history=FakeHistory(),
        local_history=FakeHistory(),
        scheduler=scheduler,
    )


async def _active_quiz(portal, config=None):
    config = config or SessionConfig(topic="Economics", question_count=5)
    message = _make_mock_message()
    await launch_quiz(message, _make_state(), portal, config)
    return portal.get_session(CHAT_ID)


# ============================================================================
# START AND SIGN-UP
# ============================================================================


class TestStart:
    """Main menu and identity commands."""

    @patch("prep_portal.handlers.start.ensure_user", new_callable=AsyncMock)
    async def test_start_resets_session_keeps_config(self, mock_ensure_user, portal):
        """/start returns to the menu; the last settings survive for a retry."""
        session = await _active_quiz(portal)
        message = _make_mock_message()
        state = _make_state()

        await cmd_start(message, state, portal)

        state.clear.assert_awaited_once()
        mock_ensure_user.assert_awaited_once()
        assert session.phase is Phase.LANDING
        assert session.config.topic == "Economics"
        assert "Guest mode" in message.answer.call_args[0][0]

    @patch("prep_portal.handlers.start.set_registered", new_callable=AsyncMock)
    async def test_signup(self, mock_set_registered):
        message = _make_mock_message()

        await cmd_signup(message, owner_id=None)

        mock_set_registered.assert_awaited_once_with(12345, True)
        assert "Signed in" in message.answer.call_args[0][0]

    @patch("prep_portal.handlers.start.set_registered", new_callable=AsyncMock)
    async def test_signup_twice(self, mock_set_registered):
        message = _make_mock_message()

        await cmd_signup(message, owner_id=12345)

        mock_set_registered.assert_not_awaited()
        assert "already" in message.answer.call_args[0][0]


class TestIdentityMiddleware:
    """owner_id injection."""

    @patch("prep_portal.middleware.identity.is_registered", new_callable=AsyncMock)
    async def test_registered_user(self, mock_is_registered):
        mock_is_registered.return_value = True
        handler = AsyncMock()
        data = {}

        await IdentityMiddleware()(handler, _make_mock_message(), data)

        assert data["owner_id"] == 12345
        handler.assert_awaited_once()

    @patch("prep_portal.middleware.identity.is_registered", new_callable=AsyncMock)
    async def test_db_error_means_guest(self, mock_is_registered):
        """A failing lookup treats the user as a guest instead of failing the update."""
        mock_is_registered.side_effect = OSError("db gone")
        handler = AsyncMock()
        data = {}

        await IdentityMiddleware()(handler, _make_mock_message(), data)

        assert data["owner_id"] is None
        handler.assert_awaited_once()


# ============================================================================
# SETTINGS AND LAUNCH
# ============================================================================


class TestLaunch:
    """Building the config and sourcing questions."""

    def test_config_from_data(self):
        config = config_from_data({
            "topic": "Marketing", "mode": "timed", "difficulty": "easy",
            "question_count": 10, "duration_minutes": 15, "source_mode": "pool",
        })

        assert config.mode is Mode.TIMED
        assert config.duration_minutes == 15
        assert config.source_mode.value == "pool"

    async def test_launch_shows_first_question(self, portal):
        message = _make_mock_message()
        state = _make_state()
        config = SessionConfig(topic="Economics", question_count=5)

        await launch_quiz(message, state, portal, config)

        state.set_state.assert_any_await(QuizFlow.sourcing)
        state.set_state.assert_awaited_with(QuizFlow.answering_question)
        text = message.edit_text.call_args[0][0]
        assert "Question 1 of 5" in text
        assert message.edit_text.call_args.kwargs["reply_markup"] is not None

    async def test_launch_failure_offers_retry(self, portal):
        """A sourcing error is shown with a retry keyboard and the state is cleared."""
        portal.generator.error = TransportError("down")
        message = _make_mock_message()
        state = _make_state()

        await launch_quiz(message, state, portal, SessionConfig(topic="Economics", question_count=5))

        state.clear.assert_awaited_once()
        text = message.edit_text.call_args[0][0]
        assert TransportError.user_message in text
        buttons = message.edit_text.call_args.kwargs["reply_markup"].inline_keyboard
        assert buttons[0][0].callback_data == "retry_quiz"

    async def test_invalid_settings_rejected(self, portal):
        callback = _make_mock_callback("src:ai")
        state = _make_state({"topic": "", "mode": "practice", "question_count": 5})

        await source_selected(callback, state, portal)

        assert "choose a topic" in callback.message.edit_text.call_args[0][0]
        assert portal.get_session(CHAT_ID) is None

    async def test_retry_reuses_settings(self, portal):
        portal.generator.error = TransportError("down")
        await _active_quiz(portal, SessionConfig(topic="Marketing", question_count=10))
        portal.generator.error = None
        callback = _make_mock_callback("retry_quiz")

        await retry_quiz(callback, _make_state(), portal)

        session = portal.get_session(CHAT_ID)
        assert session.phase is Phase.ACTIVE
        assert session.config.topic == "Marketing"
        assert len(session.questions) == 10


# ============================================================================
# ANSWERING AND RESULTS
# ============================================================================


class TestQuizFlow:
    """Answer, navigate, finish."""

    async def test_practice_answer_reveals(self, portal):
        session = await _active_quiz(portal)
        callback = _make_mock_callback("ans:0:0")

        await answer_selected(callback, _make_state(), portal)

        assert session.answers == {0: 0}
        assert "Correct!" in callback.message.edit_text.call_args[0][0]

    async def test_stale_tap_ignored(self, portal):
        """A tap on a question that is no longer shown changes nothing."""
        session = await _active_quiz(portal)
        session.advance()
        callback = _make_mock_callback("ans:0:2")

        await answer_selected(callback, _make_state(), portal)

        assert session.answers == {}
        callback.message.edit_text.assert_not_awaited()

    async def test_finish_on_last_question_records_once(self, portal):
        """Finishing shows the score and writes one guest result under the chat."""
        session = await _active_quiz(portal)
        for _ in range(4):
            session.select_option(0)
            session.advance()
        state = _make_state()
        callback = _make_mock_callback("nav:next:4")

        await next_question(callback, state, portal)
        await end_quiz(_make_mock_callback("nav:end"), state, portal)

        assert session.phase is Phase.FINISHED
        assert len(portal.local_history.appended) == 1
        record, key = portal.local_history.appended[0]
        assert key == CHAT_ID
        assert record.score == 80
        state.set_state.assert_awaited_with(QuizFlow.viewing_results)
        assert "4 of 5 (80%)" in callback.message.edit_text.call_args[0][0]

    async def test_report_download(self, portal):
        session = await _active_quiz(portal)
        await end_quiz(_make_mock_callback("nav:end"), _make_state(), portal)
        callback = _make_mock_callback("report")

        await download_report(callback, portal)

        document = callback.message.answer_document.call_args[0][0]
        assert document.filename.startswith("economics-")
        assert session.result is not None

    async def test_report_without_result(self, portal):
        callback = _make_mock_callback("report")

        await download_report(callback, portal)

        callback.answer.assert_awaited_once()
        callback.message.answer_document.assert_not_awaited()

    async def test_timer_expiry_sends_results(self, portal, scheduler):
        """When time runs out the results arrive on their own and are saved once."""
        message = _make_mock_message()
        state = _make_state()
        config = SessionConfig(topic="Economics", mode=Mode.TIMED, question_count=5, duration_minutes=1)
        await launch_quiz(message, state, portal, config)
        session = portal.get_session(CHAT_ID)
        session.select_option(0)

        ticker = scheduler.last
        pending = [ticker.fire() for _ in range(60)]
        timeouts = [p for p in pending if p is not None]
        assert len(timeouts) == 1
        await timeouts[0]

        assert session.phase is Phase.FINISHED
        assert ticker.cancelled
        message.answer.assert_any_await("⏰ Time is up!")
        state.set_state.assert_awaited_with(QuizFlow.viewing_results)
        assert "1 of 5 (20%)" in message.edit_text.call_args[0][0]
        assert len(portal.local_history.appended) == 1

        # A late "End now" tap changes nothing
        late = _make_mock_callback("nav:end")
        await end_quiz(late, _make_state(), portal)

        late.message.edit_text.assert_not_awaited()
        assert len(portal.local_history.appended) == 1


# ============================================================================
# HISTORY AND ADMIN
# ============================================================================


class TestHistory:
    """My results screen."""

    async def test_guest_history_from_chat(self, portal):
        await _active_quiz(portal)
        await end_quiz(_make_mock_callback("nav:end"), _make_state(), portal)
        callback = _make_mock_callback("my_results")

        await show_history(callback, _make_state(), portal)

        text = callback.message.edit_text.call_args[0][0]
        assert "Economics" in text
        buttons = callback.message.edit_text.call_args.kwargs["reply_markup"].inline_keyboard
        assert buttons[0][0].callback_data.startswith("retake:")


class TestAdmin:
    """Pool seeding."""

    def test_resolve_topic(self):
        assert resolve_topic("1") == "Accounting"
        assert resolve_topic("marketing") == "Marketing"
        assert resolve_topic("99") is None

    @patch("prep_portal.handlers.admin.settings")
    async def test_non_admin_ignored(self, mock_settings, portal):
        mock_settings.ADMIN_ID = 1
        message = _make_mock_message(user_id=2)
        command = MagicMock(args="Marketing")

        await cmd_seed(message, command, portal)

        message.answer.assert_not_awaited()
        assert portal.generator.calls == []

    @patch("prep_portal.handlers.admin.settings")
    async def test_seed_fills_pool(self, mock_settings, portal):
        mock_settings.ADMIN_ID = 12345
        mock_settings.SEED_BATCH_SIZE = 7
        message = _make_mock_message()
        command = MagicMock(args="Marketing")

        await cmd_seed(message, command, portal)

        assert len(portal.pool.batches) == 1
        assert len(portal.pool.batches[0]) == 7
        assert "Added 7 questions" in message.answer.call_args[0][0]
