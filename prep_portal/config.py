"""Configuration settings using pydantic-settings."""
import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Telegram Bot
    BOT_TOKEN: str = Field(default="", description="Telegram Bot API token")
    ADMIN_ID: Optional[int] = Field(
        default=None,
        description="Telegram ID allowed to seed the shared pool"
    )

    # Generation service (any OpenAI-compatible endpoint)
    LLM_BASE_URL: str = Field(
        default="http://localhost:1234/v1",
        description="Base URL of the chat-completions API"
    )
    LLM_MODEL: str = Field(default="qwen2.5-7b-instruct", description="Model name")
    LLM_API_KEY: str = Field(default="not-needed", description="API key for the generation service")
    LLM_TIMEOUT: float = Field(default=120.0, description="Request timeout in seconds")
    GENERATION_MAX_ATTEMPTS: int = Field(
        default=5,
        description="Maximum generation attempts before giving up"
    )
    GENERATION_BASE_DELAY: float = Field(
        default=1.0,
        description="Delay before the first retry, doubled on each further retry"
    )

    # Database
    DB_PATH: str = Field(
        default="data/prep_portal.db",
        description="Path to SQLite database file"
    )

    # Results
    HISTORY_LIMIT: int = Field(default=20, description="How many recent results to show")
    PERSIST_ANONYMOUS_REMOTE: bool = Field(
        default=False,
        description="Store guest results in the database instead of in memory"
    )

    # Admin pool seeding
    SEED_BATCH_SIZE: int = Field(default=50, description="Questions generated per /seed")

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    class Config:
        """Pydantic config."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()

if settings.ADMIN_ID is None:
    logger.warning("ADMIN_ID is not set — pool seeding commands disabled")


TOPICS = [
    "Accounting", "Advertising", "Agribusiness", "Business Communication", "Business Law",
    "Computer Problem Solving", "Cybersecurity", "Data Analysis", "Economics",
    "Entrepreneurship", "Healthcare Administration", "Human Resource Management",
    "Insurance & Risk Management", "Introduction to Business", "Introduction to IT",
    "Journalism", "Marketing", "Networking Infrastructures", "Organizational Leadership",
    "Personal Finance", "Project Management", "Public Speaking",
    "Securities & Investments", "Sports & Entertainment Management", "Supply Chain Management",
    "UX Design", "Website Design",
]

QUESTION_COUNT_RANGE = (5, 200)
DURATION_RANGE = (1, 120)

# Presets offered by the bot keyboards
QUESTION_COUNTS = [5, 10, 20, 50, 100]
DURATIONS = [5, 15, 25, 45, 60]
