"""
Unit tests for Config loading and the JSON settings file.
"""
import json
import os
from unittest.mock import patch

import pytest

from config.config_file import DEFAULT_SETTINGS, ConfigFile
from config.settings import Config


@pytest.fixture
def base_env(tmp_path):
    """Minimal environment with the settings file in a temp directory."""
    return {"CONFIG_FILE": str(tmp_path / "config.json")}


@pytest.mark.unit
class TestConfigFromEnv:
    """Test cases for Config.from_env."""

    def test_defaults_without_environment(self, base_env):
        """Test defaults when only the config file location is set."""
        # Arrange
        with patch.dict(os.environ, base_env, clear=True):
            with patch('config.settings.load_dotenv'):
                # Act
                config = Config.from_env()

        # Assert
        assert config.bot_token is None
        assert config.messages_path == "messages"
        assert config.api_port == 3005
        assert config.max_lookback_days == 31
        assert config.archive_after_days == 30
        assert config.sync_batch_size == 50
        assert config.timezone is None

    def test_config_file_values_used_as_fallback(self, base_env, tmp_path):
        """Test listening port and path come from the settings file."""
        # Arrange
        (tmp_path / "config.json").write_text(json.dumps({
            "Listening Port": 4000,
            "Listening Path": "/data/msgs",
            "Bot Token": "123:file-token"
        }))

        with patch.dict(os.environ, base_env, clear=True):
            with patch('config.settings.load_dotenv'):
                # Act
                config = Config.from_env()

        # Assert
        assert config.api_port == 4000
        assert config.messages_path == "/data/msgs"
        assert config.bot_token == "123:file-token"

    def test_environment_overrides_config_file(self, base_env, tmp_path):
        """Test environment variables win over the settings file."""
        # Arrange
        (tmp_path / "config.json").write_text(json.dumps({"Listening Port": 4000}))
        env = {**base_env, "API_PORT": "5000", "MESSAGES_PATH": "/srv/messages"}

        with patch.dict(os.environ, env, clear=True):
            with patch('config.settings.load_dotenv'):
                # Act
                config = Config.from_env()

        # Assert
        assert config.api_port == 5000
        assert config.messages_path == "/srv/messages"

    def test_invalid_integer_raises(self, base_env):
        """Test a non-integer value is a configuration error."""
        # Arrange
        env = {**base_env, "MAX_LOOKBACK_DAYS": "many"}

        with patch.dict(os.environ, env, clear=True):
            with patch('config.settings.load_dotenv'):
                # Act & Assert
                with pytest.raises(ValueError, match="MAX_LOOKBACK_DAYS"):
                    Config.from_env()

    def test_non_positive_value_raises(self, base_env):
        """Test zero batch size is rejected."""
        # Arrange
        env = {**base_env, "SYNC_BATCH_SIZE": "0"}

        with patch.dict(os.environ, env, clear=True):
            with patch('config.settings.load_dotenv'):
                # Act & Assert
                with pytest.raises(ValueError, match="SYNC_BATCH_SIZE"):
                    Config.from_env()

    def test_valid_timezone_loading(self, base_env):
        """Test loading valid timezone from environment."""
        # Arrange
        env = {**base_env, "TIMEZONE": "Europe/Kyiv"}

        with patch.dict(os.environ, env, clear=True):
            with patch('config.settings.load_dotenv'):
                # Act
                config = Config.from_env()

        # Assert
        assert config.timezone == "Europe/Kyiv"

    def test_invalid_timezone_fallback_to_utc_with_warning(self, base_env, caplog):
        """Test invalid timezone falls back to UTC with warning."""
        # Arrange
        env = {**base_env, "TIMEZONE": "Invalid/Timezone"}

        with patch.dict(os.environ, env, clear=True):
            with patch('config.settings.load_dotenv'):
                # Act
                config = Config.from_env()

        # Assert
        assert config.timezone is None
        assert "Invalid timezone 'Invalid/Timezone', defaulting to UTC" in caplog.text

    def test_bool_parsing(self, base_env):
        """Test boolean variables accept common spellings."""
        # Arrange
        env = {**base_env, "SYNC_ON_STARTUP": "no", "DEBUG_MODE": "yes"}

        with patch.dict(os.environ, env, clear=True):
            with patch('config.settings.load_dotenv'):
                # Act
                config = Config.from_env()

        # Assert
        assert config.sync_on_startup is False
        assert config.debug_mode is True


@pytest.mark.unit
class TestConfigFile:
    """Test cases for the JSON settings file."""

    def test_absent_file_created_with_defaults(self, tmp_path):
        """Test a missing file is created with default settings."""
        # Arrange
        path = tmp_path / "nested" / "config.json"

        # Act
        settings = ConfigFile(str(path)).read()

        # Assert
        assert path.exists()
        assert settings == DEFAULT_SETTINGS
        assert json.loads(path.read_text()) == DEFAULT_SETTINGS

    @pytest.mark.parametrize("content", ["", "   ", "{}", "{not json", "[1, 2]"])
    def test_unusable_file_restored_to_defaults(self, tmp_path, content):
        """Test empty, corrupt and non-object files are replaced with defaults."""
        # Arrange
        path = tmp_path / "config.json"
        path.write_text(content)

        # Act
        settings = ConfigFile(str(path)).read()

        # Assert
        assert settings == DEFAULT_SETTINGS
        assert json.loads(path.read_text()) == DEFAULT_SETTINGS

    def test_update_merges_keys(self, tmp_path):
        """Test update keeps existing keys and adds new ones."""
        # Arrange
        config_file = ConfigFile(str(tmp_path / "config.json"))

        # Act
        merged = config_file.update({"Listening Port": 3100, "Theme": "dark"})

        # Assert
        assert merged["Listening Port"] == 3100
        assert merged["Theme"] == "dark"
        assert merged["Listening Path"] == "messages"
        assert config_file.read() == merged

    def test_invalid_filename_type(self):
        """Test non-string filenames are rejected."""
        with pytest.raises(ValueError):
            ConfigFile(123)

    def test_write_rejects_non_dict(self, tmp_path):
        """Test writing a list is rejected."""
        config_file = ConfigFile(str(tmp_path / "config.json"))
        with pytest.raises(ValueError):
            config_file.write(["a"])
