"""Configuration module for loading and validating environment variables."""

import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from config.config_file import ConfigFile

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Configuration class for viewer settings loaded from environment variables."""

    # Telegram
    bot_token: Optional[str]
    debug_mode: bool

    # Corpus
    messages_path: str
    timezone: Optional[str]
    max_lookback_days: int
    chats_cache_path: str

    # Database
    db_path: str
    archive_after_days: int

    # HTTP
    api_host: str
    api_port: int
    config_file_path: str

    # Sync
    sync_on_startup: bool
    sync_batch_size: int
    sync_recent_interval_minutes: int
    sync_recent_window_hours: int

    # Media
    avatar_service_enabled: bool
    avatars_dir: str
    uploads_dir: str

    @classmethod
    def from_env(cls) -> "Config":
        """
        Load configuration from environment variables.

        Values missing from the environment fall back to the JSON config file
        (``CONFIG_FILE``, default ``config.json``) and then to defaults.

        Returns:
            Config: Configuration instance with loaded values

        Raises:
            ValueError: If environment variables are invalid
        """
        # Load .env file if it exists
        load_dotenv()

        config_file_path = os.getenv("CONFIG_FILE", "config.json")
        file_settings = cls._read_config_file(config_file_path)

        bot_token = os.getenv("BOT_TOKEN") or file_settings.get("Bot Token") or None
        debug_mode = cls._get_bool_env("DEBUG_MODE", default=False)
        messages_path = os.getenv("MESSAGES_PATH") or str(file_settings.get("Listening Path", "messages"))
        timezone = cls._get_validated_timezone_env("TIMEZONE", default=None)
        max_lookback_days = cls._get_int_env("MAX_LOOKBACK_DAYS", default=31)
        chats_cache_path = os.getenv("CHATS_CACHE_PATH", os.path.join(os.getcwd(), "chats_cache.json"))
        db_path = os.getenv("DB_PATH", "data/viewer.db")
        archive_after_days = cls._get_int_env("ARCHIVE_AFTER_DAYS", default=30)
        api_host = os.getenv("API_HOST", "0.0.0.0")
        api_port = cls._get_int_env("API_PORT", default=cls._to_int(file_settings.get("Listening Port"), 3005))
        sync_on_startup = cls._get_bool_env("SYNC_ON_STARTUP", default=True)
        sync_batch_size = cls._get_int_env("SYNC_BATCH_SIZE", default=50)
        sync_recent_interval_minutes = cls._get_int_env("SYNC_RECENT_INTERVAL_MINUTES", default=5)
        sync_recent_window_hours = cls._get_int_env("SYNC_RECENT_WINDOW_HOURS", default=10)
        avatar_service_enabled = cls._get_bool_env("AVATAR_SERVICE_ENABLED", default=True)
        avatars_dir = os.getenv("AVATARS_DIR", "public/avatars")
        uploads_dir = os.getenv("UPLOADS_DIR", "public/uploads")

        # Validate positive values
        cls._validate_positive("MAX_LOOKBACK_DAYS", max_lookback_days)
        cls._validate_positive("ARCHIVE_AFTER_DAYS", archive_after_days)
        cls._validate_positive("API_PORT", api_port)
        cls._validate_positive("SYNC_BATCH_SIZE", sync_batch_size)
        cls._validate_positive("SYNC_RECENT_INTERVAL_MINUTES", sync_recent_interval_minutes)
        cls._validate_positive("SYNC_RECENT_WINDOW_HOURS", sync_recent_window_hours)

        return cls(
            bot_token=bot_token,
            debug_mode=debug_mode,
            messages_path=messages_path,
            timezone=timezone,
            max_lookback_days=max_lookback_days,
            chats_cache_path=chats_cache_path,
            db_path=db_path,
            archive_after_days=archive_after_days,
            api_host=api_host,
            api_port=api_port,
            config_file_path=config_file_path,
            sync_on_startup=sync_on_startup,
            sync_batch_size=sync_batch_size,
            sync_recent_interval_minutes=sync_recent_interval_minutes,
            sync_recent_window_hours=sync_recent_window_hours,
            avatar_service_enabled=avatar_service_enabled,
            avatars_dir=avatars_dir,
            uploads_dir=uploads_dir,
        )

    @staticmethod
    def _read_config_file(path: str) -> Dict[str, Any]:
        """
        Read the JSON config file, never failing startup because of it.

        Args:
            path: Config file path

        Returns:
            Settings dictionary (empty if the file cannot be used)
        """
        try:
            return ConfigFile(path).read()
        except OSError as e:
            logger.warning(f"Config file '{path}' is not usable, using defaults: {e}")
            return {}

    @staticmethod
    def _to_int(value: Any, default: int) -> int:
        """Convert a config file value to int, falling back to default."""
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    @staticmethod
    def _get_int_env(key: str, default: int) -> int:
        """
        Get optional integer environment variable with default.

        Args:
            key: Environment variable name
            default: Default value if not set

        Returns:
            int: Environment variable value as integer or default

        Raises:
            ValueError: If environment variable is set but not a valid integer
        """
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Environment variable '{key}' must be a valid integer, got: {value}")

    @staticmethod
    def _get_bool_env(key: str, default: bool) -> bool:
        """
        Get optional boolean environment variable with default.

        Args:
            key: Environment variable name
            default: Default value if not set

        Returns:
            bool: Environment variable value as boolean or default
        """
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("true", "1", "yes", "on")

    @staticmethod
    def _validate_positive(key: str, value: int) -> None:
        """
        Validate that a value is positive.

        Args:
            key: Parameter name for error message
            value: Value to validate

        Raises:
            ValueError: If value is not positive
        """
        if value <= 0:
            raise ValueError(f"Parameter '{key}' must be positive, got: {value}")

    @staticmethod
    def _get_validated_timezone_env(key: str, default: Optional[str]) -> Optional[str]:
        """
        Get and validate timezone environment variable.

        Args:
            key: Environment variable name
            default: Default value if not set

        Returns:
            Optional[str]: Valid timezone identifier or None (UTC)

        Logs warning if invalid timezone provided.
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            import pytz
            pytz.timezone(value)  # Validate timezone exists
            return value
        except pytz.exceptions.UnknownTimeZoneError:
            logger.warning(f"Invalid timezone '{value}', defaulting to UTC")
            return None
