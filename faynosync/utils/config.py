"""
Settings storage and runtime configuration for the faynosync CLI.

Persistent settings (server URL and owner) live in a YAML file under the
user's home directory. The bearer token is only ever read from the
environment, and the server/owner environment variables take precedence over
the file.

Example settings file (~/.faynosync/config.yaml):
    ```yaml
    server: https://updates.example.com
    owner: acme
    ```
"""

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional, Tuple

import yaml
from dotenv import load_dotenv

from faynosync.errors import ConfigurationError
from faynosync.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SERVER = "https://example.com"
DEFAULT_OWNER = "example"

ENV_TOKEN = "FAYNOSYNC_TOKEN"
ENV_URL = "FAYNOSYNC_URL"
ENV_ACCOUNT = "FAYNOSYNC_ACCOUNT"

CONFIG_DIR_NAME = ".faynosync"
CONFIG_FILE_NAME = "config.yaml"

SETTINGS_KEYS = ("server", "owner")


@dataclass
class Settings:
    """Values persisted in the settings file."""

    server: str = ""
    owner: str = ""

    @classmethod
    def default(cls) -> "Settings":
        return cls(server=DEFAULT_SERVER, owner=DEFAULT_OWNER)


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Fully resolved settings needed to talk to the server.

    Attributes:
        token: Bearer token (FAYNOSYNC_TOKEN)
        server: Server base URL (FAYNOSYNC_URL or settings file)
        owner: Owner/account identifier (FAYNOSYNC_ACCOUNT or settings file)
    """

    token: str
    server: str
    owner: str

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """
        Resolve runtime configuration from the environment.

        Loads a ``.env`` file from the working directory if present (already
        exported variables win), then reads the token, server and owner. The
        settings file is only read when the server or owner is not set in the
        environment.

        Returns:
            RuntimeConfig with non-empty token, server and owner

        Raises:
            ConfigurationError: If a value is missing or the settings file
                cannot be loaded
        """
        load_dotenv(Path.cwd() / ".env", override=False)

        token = os.getenv(ENV_TOKEN, "").strip()
        if not token:
            raise ConfigurationError(f"{ENV_TOKEN} is required")

        env_server = os.getenv(ENV_URL, "").strip()
        env_owner = os.getenv(ENV_ACCOUNT, "").strip()

        settings = Settings()
        if not env_server or not env_owner:
            settings, path = load_settings()
            logger.debug("Loaded settings file", extra={"path": str(path)})

        server = env_server or settings.server.strip()
        owner = env_owner or settings.owner.strip()

        if not server:
            raise ConfigurationError(
                f"server is empty: set in config or via {ENV_URL}"
            )
        if not owner:
            raise ConfigurationError(
                f"owner is empty: set in config or via {ENV_ACCOUNT}"
            )

        return cls(token=token, server=server, owner=owner)


def config_path(home: Optional[Path] = None) -> Path:
    """Return the settings file location (``~/.faynosync/config.yaml``)."""
    base = home if home is not None else Path.home()
    return base / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_settings(path: Optional[Path] = None) -> Tuple[Settings, Path]:
    """
    Load settings from YAML.

    Args:
        path: Settings file to read (default: config_path())

    Returns:
        Tuple of (settings, path that was read)

    Raises:
        ConfigurationError: If the file is missing or not a YAML mapping
        OSError: If the file exists but cannot be read
    """
    path = path or config_path()

    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError("config not found, run: faynosync init") from None

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"failed to parse {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: expected a mapping of settings")

    settings = Settings(
        server=str(data.get("server") or ""),
        owner=str(data.get("owner") or ""),
    )
    return settings, path


def dump_settings(settings: Settings) -> str:
    """Serialize settings to YAML text."""
    return yaml.safe_dump(asdict(settings), default_flow_style=False, sort_keys=False)


def save_settings(path: Path, settings: Settings) -> None:
    """Write settings to ``path``, replacing its contents."""
    path.write_text(dump_settings(settings), encoding="utf-8")


def init_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    """
    Create the settings directory and write the initial settings file.

    Returns:
        Path of the written file
    """
    path = path or config_path()
    path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
    save_settings(path, settings)
    return path


def update_field(settings: Settings, key: str, value: str) -> None:
    """
    Set one settings field by name.

    Raises:
        ConfigurationError: If ``key`` is not a known settings field
    """
    if key not in SETTINGS_KEYS:
        raise ConfigurationError(
            f"unknown key: {key} (allowed: {', '.join(SETTINGS_KEYS)})"
        )
    setattr(settings, key, value)
