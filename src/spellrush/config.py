"""Configuration settings for the game."""
import os
import shlex
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
NARRATION_CACHE_DIR = DATA_DIR / "narration"
DEFAULT_WORDS_FILE = Path(__file__).parent / "data" / "words.json"


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        NARRATION_CACHE_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    narration_cache_dir: Path = NARRATION_CACHE_DIR
    words_file: Path = Path(os.getenv("WORDS_FILE", str(DEFAULT_WORDS_FILE)))


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///spellrush.db")
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
class GameSettings:
    """Round timing and progression settings (all durations in milliseconds)."""
    starting_lives: int = int(os.getenv("STARTING_LIVES", "3"))
    words_per_level: int = int(os.getenv("WORDS_PER_LEVEL", "5"))
    base_obstacle_speed_ms: int = int(os.getenv("BASE_OBSTACLE_SPEED_MS", "8000"))
    obstacle_speed_step_ms: int = int(os.getenv("OBSTACLE_SPEED_STEP_MS", "400"))
    min_obstacle_speed_ms: int = int(os.getenv("MIN_OBSTACLE_SPEED_MS", "2500"))
    obstacle_reach_fraction: float = float(os.getenv("OBSTACLE_REACH_FRACTION", "0.6"))
    crash_delay_ms: int = int(os.getenv("CRASH_DELAY_MS", "800"))
    correction_display_ms: int = int(os.getenv("CORRECTION_DISPLAY_MS", "2500"))
    feedback_hold_ms: int = int(os.getenv("FEEDBACK_HOLD_MS", "1000"))
    score_animation_ms: int = int(os.getenv("SCORE_ANIMATION_MS", "1200"))
    level_up_delay_ms: int = int(os.getenv("LEVEL_UP_DELAY_MS", "2500"))
    # Multiplies every real sleep; game time itself is not scaled
    time_scale: float = float(os.getenv("TIME_SCALE", "1.0"))
    bucket_size: int = int(os.getenv("SCHEDULER_BUCKET_SIZE", "10"))


def get_player_command() -> list[str]:
    """Get the audio player command from environment variable."""
    return shlex.split(os.getenv("NARRATION_PLAYER", ""))


@dataclass
class NarrationSettings:
    """Text-to-speech settings."""
    enabled: bool = os.getenv("NARRATION_ENABLED", "true").lower() == "true"
    language: str = os.getenv("NARRATION_LANGUAGE", "en")
    tld: str = os.getenv("NARRATION_TLD", "com")
    player_command: list[str] = field(default_factory=get_player_command)
    rate: float = float(os.getenv("NARRATION_RATE", "0.6"))
    pitch: float = float(os.getenv("NARRATION_PITCH", "1.0"))
    # gTTS only knows normal and slow speech
    slow_rate_threshold: float = float(os.getenv("NARRATION_SLOW_RATE_THRESHOLD", "0.8"))
    auto_repeat: bool = os.getenv("NARRATION_AUTO_REPEAT", "false").lower() == "true"
    auto_repeat_delay: int = int(os.getenv("NARRATION_AUTO_REPEAT_DELAY", "3"))


@dataclass
class MonitoringSettings:
    """Prometheus exporter settings."""
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


def get_game_settings() -> GameSettings:
    """Get game settings."""
    return GameSettings()


def get_narration_settings() -> NarrationSettings:
    """Get narration settings."""
    return NarrationSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    game: GameSettings = field(default_factory=get_game_settings)
    narration: NarrationSettings = field(default_factory=get_narration_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.game.starting_lives < 1:
            raise ValueError("STARTING_LIVES must be positive")

        if self.game.words_per_level < 1:
            raise ValueError("WORDS_PER_LEVEL must be positive")

        if self.game.min_obstacle_speed_ms > self.game.base_obstacle_speed_ms:
            raise ValueError("MIN_OBSTACLE_SPEED_MS cannot be greater than BASE_OBSTACLE_SPEED_MS")

        if not 0 < self.game.obstacle_reach_fraction <= 1:
            raise ValueError("OBSTACLE_REACH_FRACTION must be in (0, 1]")

        if self.game.time_scale <= 0:
            raise ValueError("TIME_SCALE must be positive")

        if self.game.bucket_size < 1:
            raise ValueError("SCHEDULER_BUCKET_SIZE must be positive")

        if self.narration.auto_repeat_delay < 0:
            raise ValueError("NARRATION_AUTO_REPEAT_DELAY cannot be negative")


# Create global settings instance
settings = Settings()
settings.validate()
