import re

from prep_portal.models import ResultRecord
from prep_portal.services.scoring import score_comment


def render_report(record: ResultRecord) -> str:
    """Plain-text summary of a finished session. No I/O."""
    created = record.created_at.strftime("%Y-%m-%d %H:%M UTC")
    lines = [
        "FBLA Prep Portal - Session Report",
        "=" * 34,
        f"Topic:      {record.topic}",
        f"Mode:       {record.mode.value}",
        f"Difficulty: {record.difficulty.value}",
        f"Source:     {record.source.value}",
        f"Score:      {record.score}% ({record.correct_count}/{record.total_count} correct)",
        f"Date:       {created}",
        "",
        score_comment(record.score),
    ]
    return "\n".join(lines) + "\n"


def report_filename(record: ResultRecord) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", record.topic.lower()).strip("-") or "quiz"
    return f"{slug}-{record.created_at.strftime('%Y%m%d-%H%M')}.txt"


def format_time(seconds: int) -> str:
    """m:ss for the timed-mode countdown."""
    return f"{seconds // 60}:{seconds % 60:02d}"
