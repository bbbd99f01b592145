"""Configuration settings for the study tracker."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
BACKUPS_DIR = DATA_DIR / "backups"

# Study plan layout
VOCAB_TOTAL_CHAPTERS = 22
LISTENING_BOOKS = [12, 13, 14, 15, 16, 17, 18, 19, 20]  # Cambridge 12-20
TESTS_PER_BOOK = 4
SECTIONS_PER_TEST = 4


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        BACKUPS_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    backups_dir: Path = BACKUPS_DIR


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///studybook.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class ReviewSettings:
    """Error book review settings."""
    lookahead_minutes: int = int(os.getenv("REVIEW_LOOKAHEAD_MINUTES", "60"))


@dataclass
class PlanSettings:
    """Study plan settings."""
    vocab_daily_goal: int = int(os.getenv("VOCAB_DAILY_GOAL", "2"))
    listening_daily_goal: int = int(os.getenv("LISTENING_DAILY_GOAL", "16"))
    activity_lookback_years: int = int(os.getenv("ACTIVITY_LOOKBACK_YEARS", "1"))


@dataclass
class TimerSettings:
    """Active timer settings."""
    tick_seconds: float = float(os.getenv("TIMER_TICK_SECONDS", "1.0"))


@dataclass
class MonitoringSettings:
    """Prometheus metrics settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_review_settings() -> ReviewSettings:
    """Get review settings."""
    return ReviewSettings()


def get_plan_settings() -> PlanSettings:
    """Get study plan settings."""
    return PlanSettings()


def get_timer_settings() -> TimerSettings:
    """Get timer settings."""
    return TimerSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    review: ReviewSettings = field(default_factory=get_review_settings)
    plan: PlanSettings = field(default_factory=get_plan_settings)
    timer: TimerSettings = field(default_factory=get_timer_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if not self.database.url:
            raise ValueError("DATABASE_URL is required")

        if self.review.lookahead_minutes < 0:
            raise ValueError("REVIEW_LOOKAHEAD_MINUTES cannot be negative")

        if self.plan.vocab_daily_goal < 1 or self.plan.vocab_daily_goal > VOCAB_TOTAL_CHAPTERS:
            raise ValueError(f"VOCAB_DAILY_GOAL must be between 1 and {VOCAB_TOTAL_CHAPTERS}")

        if self.plan.listening_daily_goal < 1:
            raise ValueError("LISTENING_DAILY_GOAL must be positive")

        if self.plan.activity_lookback_years < 0:
            raise ValueError("ACTIVITY_LOOKBACK_YEARS cannot be negative")

        if self.timer.tick_seconds <= 0:
            raise ValueError("TIMER_TICK_SECONDS must be positive")


# Create global settings instance
settings = Settings()
settings.validate()
