from prep_portal.db.queries import get_stats_summary, get_weak_topics
from prep_portal.models import ResultRecord


def format_history(records: list[ResultRecord], is_guest: bool = False) -> str:
    """Format recent results as a readable text."""
    if not records:
        return "📭 No history yet. Start your first quiz!"

    title = "📋 Recent quizzes (guest mode, saved for this chat only):\n" if is_guest else "📋 Recent quizzes:\n"
    lines = [title]
    for r in records:
        mark = "⏱" if r.mode.value == "timed" else "🎯"
        lines.append(
            f"{mark} {r.topic} — {r.correct_count}/{r.total_count} ({r.score}%) · {r.created_at:%Y-%m-%d}"
        )

    return "\n".join(lines)


async def format_weak_areas(owner_id: int) -> str:
    """Format weak topics as a readable text."""
    weak = await get_weak_topics(owner_id)

    if not weak:
        return ""

    lines = ["\n⚠️ Topics to work on:\n"]
    for w in weak:
        avg = round(w["avg_score"])
        lines.append(f"• {w['topic']} — average {avg}%")

    return "\n".join(lines)


async def format_overall_stats(owner_id: int) -> str:
    """Format overall statistics."""
    stats = await get_stats_summary(owner_id)

    if not stats or not stats.get("total_tests"):
        return ""

    avg = round(stats.get("avg_score") or 0)
    return (
        f"\n📊 Overall:\n"
        f"Quizzes taken: {stats['total_tests']}\n"
        f"Questions answered: {stats['total_questions_answered']}\n"
        f"Correct answers: {stats['total_correct']}\n"
        f"Average score: {avg}%"
    )
