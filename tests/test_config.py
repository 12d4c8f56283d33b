"""Tests for settings storage and runtime configuration."""

import pytest

from faynosync.errors import ConfigurationError
from faynosync.utils.config import (
    DEFAULT_OWNER,
    DEFAULT_SERVER,
    RuntimeConfig,
    Settings,
    config_path,
    dump_settings,
    init_settings,
    load_settings,
    save_settings,
    update_field,
)


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Point the home directory and working directory at a temp dir."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    for name in ("FAYNOSYNC_TOKEN", "FAYNOSYNC_URL", "FAYNOSYNC_ACCOUNT"):
        # setenv first so values loaded from .env are undone on teardown
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return tmp_path


class TestSettingsFile:
    """Test reading and writing the YAML settings file."""

    def test_config_path_under_home(self, tmp_path):
        """Test the settings file lives in ~/.faynosync/config.yaml."""
        assert config_path(tmp_path) == tmp_path / ".faynosync" / "config.yaml"

    def test_defaults(self):
        """Test default settings values."""
        settings = Settings.default()

        assert settings.server == DEFAULT_SERVER
        assert settings.owner == DEFAULT_OWNER

    def test_init_creates_directory(self, home):
        """Test init_settings creates the directory and writes the file."""
        path = init_settings(Settings(server="https://u.example.com", owner="acme"))

        assert path == home / ".faynosync" / "config.yaml"
        assert path.exists()
        loaded, loaded_path = load_settings()
        assert loaded == Settings(server="https://u.example.com", owner="acme")
        assert loaded_path == path

    def test_missing_file(self, tmp_path):
        """Test a missing settings file points at init."""
        with pytest.raises(ConfigurationError, match="run: faynosync init"):
            load_settings(tmp_path / "nope.yaml")

    def test_empty_file_is_blank_settings(self, tmp_path):
        """Test an empty file loads as empty settings."""
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        settings, _ = load_settings(path)

        assert settings == Settings()

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML is a configuration error."""
        path = tmp_path / "config.yaml"
        path.write_text("server: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="failed to parse"):
            load_settings(path)

    def test_non_mapping(self, tmp_path):
        """Test a YAML list is rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("- server\n- owner\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="expected a mapping"):
            load_settings(path)

    def test_dump_keeps_field_order(self):
        """Test dumped YAML lists server before owner."""
        text = dump_settings(Settings(server="https://h", owner="o"))

        assert text == "server: https://h\nowner: o\n"

    def test_save_replaces_contents(self, tmp_path):
        """Test saving overwrites the previous file."""
        path = tmp_path / "config.yaml"
        save_settings(path, Settings(server="a", owner="b"))
        save_settings(path, Settings(server="c", owner="d"))

        assert load_settings(path)[0] == Settings(server="c", owner="d")


class TestUpdateField:
    """Test update_field."""

    @pytest.mark.parametrize("key", ["server", "owner"])
    def test_known_keys(self, key):
        """Test known keys are updated."""
        settings = Settings()
        update_field(settings, key, "value")

        assert getattr(settings, key) == "value"

    def test_unknown_key(self):
        """Test other keys are rejected listing the allowed ones."""
        with pytest.raises(ConfigurationError, match=r"unknown key: token \(allowed: server, owner\)"):
            update_field(Settings(), "token", "x")


class TestRuntimeConfig:
    """Test RuntimeConfig.from_env resolution."""

    def test_token_required(self, home):
        """Test a missing token is reported."""
        with pytest.raises(ConfigurationError, match="FAYNOSYNC_TOKEN is required"):
            RuntimeConfig.from_env()

    def test_env_only_skips_settings_file(self, home, monkeypatch):
        """Test server and owner from the environment need no settings file."""
        monkeypatch.setenv("FAYNOSYNC_TOKEN", " tok ")
        monkeypatch.setenv("FAYNOSYNC_URL", "https://env.example.com")
        monkeypatch.setenv("FAYNOSYNC_ACCOUNT", "env-owner")

        runtime = RuntimeConfig.from_env()

        assert runtime == RuntimeConfig(
            token="tok", server="https://env.example.com", owner="env-owner"
        )

    def test_env_overrides_settings_file(self, home, monkeypatch):
        """Test environment values win over the settings file."""
        init_settings(Settings(server="https://file.example.com", owner="file-owner"))
        monkeypatch.setenv("FAYNOSYNC_TOKEN", "tok")
        monkeypatch.setenv("FAYNOSYNC_URL", "https://env.example.com")

        runtime = RuntimeConfig.from_env()

        assert runtime.server == "https://env.example.com"
        assert runtime.owner == "file-owner"

    def test_missing_settings_file(self, home, monkeypatch):
        """Test the settings file is required when env values are missing."""
        monkeypatch.setenv("FAYNOSYNC_TOKEN", "tok")

        with pytest.raises(ConfigurationError, match="config not found"):
            RuntimeConfig.from_env()

    def test_empty_owner(self, home, monkeypatch):
        """Test an empty owner is reported with its environment variable."""
        init_settings(Settings(server="https://file.example.com", owner=""))
        monkeypatch.setenv("FAYNOSYNC_TOKEN", "tok")

        with pytest.raises(ConfigurationError, match="owner is empty.*FAYNOSYNC_ACCOUNT"):
            RuntimeConfig.from_env()

    def test_empty_server(self, home, monkeypatch):
        """Test an empty server is reported with its environment variable."""
        init_settings(Settings(server="  ", owner="o"))
        monkeypatch.setenv("FAYNOSYNC_TOKEN", "tok")

        with pytest.raises(ConfigurationError, match="server is empty.*FAYNOSYNC_URL"):
            RuntimeConfig.from_env()

    def test_dotenv_file_is_loaded(self, home, monkeypatch):
        """Test variables from .env in the working directory are used."""
        (home / ".env").write_text(
            "FAYNOSYNC_TOKEN=dotenv-token\n"
            "FAYNOSYNC_URL=https://dotenv.example.com\n"
            "FAYNOSYNC_ACCOUNT=dotenv-owner\n",
            encoding="utf-8",
        )

        runtime = RuntimeConfig.from_env()

        assert runtime.token == "dotenv-token"
        assert runtime.server == "https://dotenv.example.com"
        assert runtime.owner == "dotenv-owner"

    def test_exported_variables_win_over_dotenv(self, home, monkeypatch):
        """Test already exported variables are not overridden by .env."""
        (home / ".env").write_text("FAYNOSYNC_TOKEN=dotenv-token\n", encoding="utf-8")
        monkeypatch.setenv("FAYNOSYNC_TOKEN", "exported")
        monkeypatch.setenv("FAYNOSYNC_URL", "https://h")
        monkeypatch.setenv("FAYNOSYNC_ACCOUNT", "o")

        assert RuntimeConfig.from_env().token == "exported"
