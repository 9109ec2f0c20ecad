"""
Configuration module for the School Grades statistics backend.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/grade_management.sqlite"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # Exam statistics thresholds
    excellent_threshold: float = 85
    pass_threshold: float = 60
    poor_threshold: float = 40

    # Minimum mean difference before a trend counts as up/down
    semester_trend_delta: float = 2.0
    student_trend_delta: float = 3.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


settings = get_settings()
