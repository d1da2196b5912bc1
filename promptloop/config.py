"""Configuration settings for the application"""
import os
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import ConfigDict

# Get project root directory
PROJECT_ROOT = Path(__file__).parent.parent.absolute()

def get_database_url() -> str:
    """Get database URL, defaulting to SQLite for easy setup"""
    default_url = f"sqlite:///{PROJECT_ROOT}/promptloop.db"
    url = os.getenv("DATABASE_URL", default_url)
    # Some providers use postgres:// but SQLAlchemy requires postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url

class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    DATABASE_URL: str = get_database_url()

    # LLM completion service
    LLM_PROVIDER: str = "openai"  # openai, openrouter
    LLM_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    LLM_BASE_URL: Optional[str] = None
    DEFAULT_LLM_MODEL: str = "gpt-4o-mini"
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Async pipeline
    PIPELINE_MAX_WORKERS: int = 4

    # Reviewer sampling
    DEFAULT_EVALUATION_PERCENTAGE: int = 30
    N8N_EVALUATION_PERCENTAGE: int = 100
    REVIEWER_ACTIVATION_THRESHOLD: int = 5
    REVIEWER_LIMIT: int = 5

    # Optimization loop
    OPTIMIZATION_TRIGGER_PERCENTAGE: int = 20
    AB_TEST_DEFAULT_PERCENTAGE: int = 30
    MAX_INSIGHTS_PER_MODEL: int = 10
    INSIGHT_LOG_WINDOW: int = 10
    INSIGHT_REVIEWS_PER_RUN: int = 5
    INSIGHT_WINDOW_HOURS: int = 24
    SUGGESTIONS_LIMIT: int = 20

    # Evaluation
    EVALUATION_PASS_SCORE: float = 8.0
    EVALUATION_MAX_RETRIES: int = 2

    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )

settings = Settings()
