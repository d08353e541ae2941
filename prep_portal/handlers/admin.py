import logging

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from prep_portal.config import TOPICS, settings
from prep_portal.db.queries import count_pool_questions
from prep_portal.errors import SourcingError
from prep_portal.models import Difficulty
from prep_portal.services.portal import Portal
from prep_portal.services.question_source import build_questions

logger = logging.getLogger(__name__)

router = Router()


async def _check_admin(message: Message) -> bool:
    """Check that sender is admin and chat is private. Returns True if OK."""
    if message.chat.type != "private":
        await message.answer("⚠️ This command works in private messages only.")
        return False
    if settings.ADMIN_ID is None or message.from_user.id != settings.ADMIN_ID:
        return False
    return True


def resolve_topic(raw: str):
    """Topic by list number (1-based) or by case-insensitive name."""
    raw = raw.strip()
    if raw.isdigit():
        index = int(raw) - 1
        return TOPICS[index] if 0 <= index < len(TOPICS) else None
    for topic in TOPICS:
        if topic.lower() == raw.lower():
            return topic
    return None


@router.message(Command("seed"))
async def cmd_seed(message: Message, command: CommandObject, portal: Portal):
    if not await _check_admin(message):
        return

    # /seed <number|topic name>
    if not command.args:
        listing = "\n".join(f"{i}. {t}" for i, t in enumerate(TOPICS, 1))
        await message.answer(f"Format: /seed <number|topic>\n\n{listing}")
        return

    topic = resolve_topic(command.args)
    if topic is None:
        await message.answer(f"Unknown topic: {command.args}")
        return

    count = settings.SEED_BATCH_SIZE
    await message.answer(f"⏳ Generating {count} questions for {topic}…")
    try:
        raw = await portal.generator.generate(topic, count, Difficulty.HARD)
        questions = build_questions(raw, topic)
        added = await portal.pool.append_batch(questions)
    except SourcingError as e:
        logger.error("Seeding %r failed: %s", topic, e)
        await message.answer(f"❌ Generation failed: {e.user_message}")
        return
    except Exception:
        logger.exception("Seeding %r failed", topic)
        await message.answer("❌ Could not write the questions to the pool.")
        return

    logger.info("Admin %s seeded %d questions for %r", message.from_user.id, added, topic)
    await message.answer(f"✅ Added {added} questions to the {topic} pool.")


@router.message(Command("pool"))
async def cmd_pool(message: Message):
    if not await _check_admin(message):
        return

    counts = await count_pool_questions()
    if not counts:
        await message.answer("The question pool is empty.")
        return

    lines = ["🗂 Question pool:\n"]
    for topic, n in sorted(counts.items()):
        lines.append(f"• {topic}: {n}")
    lines.append(f"\nTotal: {sum(counts.values())}")
    await message.answer("\n".join(lines))
