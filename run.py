import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import BotCommand

from prep_portal.config import settings
from prep_portal.db.database import get_db, close_db
from prep_portal.handlers import admin, start, topic, settings as settings_handlers, quiz, results, history
from prep_portal.middleware.identity import IdentityMiddleware
from prep_portal.services.portal import build_portal

logger = logging.getLogger(__name__)


async def main():
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    if not settings.BOT_TOKEN:
        logger.error("BOT_TOKEN is not set. Create a .env file from .env.example")
        sys.exit(1)

    await get_db()
    portal = build_portal()

    bot = Bot(token=settings.BOT_TOKEN)
    # The portal is injected into handlers as the ``portal`` argument
    dp = Dispatcher(storage=MemoryStorage(), portal=portal)

    dp.message.outer_middleware(IdentityMiddleware())
    dp.callback_query.outer_middleware(IdentityMiddleware())

    # Admin first so its commands are never shadowed
    dp.include_router(admin.router)
    dp.include_router(start.router)
    dp.include_router(topic.router)
    dp.include_router(settings_handlers.router)
    dp.include_router(quiz.router)
    dp.include_router(results.router)
    dp.include_router(history.router)

    await bot.set_my_commands([
        BotCommand(command="start", description="Main menu"),
        BotCommand(command="signup", description="Save results to your history"),
        BotCommand(command="signout", description="Switch to guest mode"),
        BotCommand(command="feedback", description="Send feedback"),
        BotCommand(command="seed", description="Fill the question pool (admin)"),
        BotCommand(command="pool", description="Question pool size (admin)"),
    ])

    logger.info("Bot started, model %s at %s", settings.LLM_MODEL, settings.LLM_BASE_URL)

    try:
        await dp.start_polling(bot)
    finally:
        await portal.shutdown()
        await bot.session.close()
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
