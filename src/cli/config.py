"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./tgclaude.yaml (working directory)
3. ~/.tgclaude/config.yaml (user home)

A missing file is not an error; the config is then built from the
environment alone.

Environment variables override YAML: TGCLAUDE_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
The bridge's plain variable names (TELEGRAM_BOT_TOKEN, WORKSPACE_PATH, ...)
fill in anything still unset.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from src.errors import ConfigurationError
from src.utils.paths import get_default_db_path, get_default_task_inbox

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

ENV_PREFIX = "TGCLAUDE_"

# Plain env var -> (section, field)
LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "TELEGRAM_BOT_TOKEN": ("telegram", "bot_token"),
    "TELEGRAM_USER_ID": ("telegram", "user_id"),
    "WORKSPACE_PATH": ("workspace", "path"),
    "DATABASE_PATH": ("database", "path"),
    "SOUL_PATH": ("agent", "soul_path"),
    "WHISPER_URL": ("voice", "whisper_url"),
    "CHATTERBOX_URL": ("voice", "chatterbox_url"),
    "VOICE_NAME": ("voice", "voice_name"),
}


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with all ${VAR} references replaced by their env values.
        Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure."""
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


def _expand(path: str | None) -> str | None:
    return str(Path(path).expanduser()) if path else path


class TelegramConfig(BaseModel):
    """Bot API access and the single authorized user."""

    bot_token: str = ""
    user_id: int | None = None
    api_base: str = "https://api.telegram.org"
    poll_timeout_seconds: int = 30
    request_timeout_seconds: float = 30.0


class WorkspaceConfig(BaseModel):
    """Default working context for new sessions."""

    path: str = "~/Workspace"

    @field_validator("path")
    @classmethod
    def expand_path(cls, v: str) -> str:
        return _expand(v) or v


class DatabaseConfig(BaseModel):
    """Session store location. `url` wins over `path` when both are set."""

    path: str | None = None
    url: str | None = None

    @field_validator("path")
    @classmethod
    def expand_path(cls, v: str | None) -> str | None:
        return _expand(v)


class AgentConfig(BaseModel):
    """Agent exchange settings."""

    model: str | None = None
    max_turns: int = 50
    permission_mode: str = "bypassPermissions"
    context_window: int = 200_000
    exchange_timeout_seconds: float | None = None
    soul_path: str | None = None

    @field_validator("soul_path")
    @classmethod
    def expand_path(cls, v: str | None) -> str | None:
        return _expand(v)

    @field_validator("context_window", "max_turns")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v


class VoiceConfig(BaseModel):
    """Speech service endpoints."""

    whisper_url: str = "http://localhost:8080"
    chatterbox_url: str = "http://localhost:4123"
    voice_name: str = "Michael"
    ffmpeg_binary: str = "ffmpeg"


class TasksConfig(BaseModel):
    """Task brief inbox."""

    inbox_dir: str | None = None

    @field_validator("inbox_dir")
    @classmethod
    def expand_path(cls, v: str | None) -> str | None:
        return _expand(v)


class LoggingConfig(BaseModel):
    """Log output settings."""

    level: str = "info"
    format: Literal["text", "json"] = "text"
    file: str | None = None


class TgClaudeConfig(BaseModel):
    """Top-level configuration for the bridge."""

    telegram: TelegramConfig = TelegramConfig()
    workspace: WorkspaceConfig = WorkspaceConfig()
    database: DatabaseConfig = DatabaseConfig()
    agent: AgentConfig = AgentConfig()
    voice: VoiceConfig = VoiceConfig()
    tasks: TasksConfig = TasksConfig()
    logging: LoggingConfig = LoggingConfig()

    @property
    def database_path(self) -> str:
        """Configured database path, or the default under the data dir."""
        return self.database.path or str(get_default_db_path())

    @property
    def task_inbox_dir(self) -> str:
        return self.tasks.inbox_dir or str(get_default_task_inbox())

    def require_bot_credentials(self) -> None:
        """Check the settings the bot cannot run without.

        Raises:
            ConfigurationError: If the token or user id is missing.
        """
        missing = []
        if not self.telegram.bot_token:
            missing.append("telegram.bot_token (TELEGRAM_BOT_TOKEN)")
        if self.telegram.user_id is None:
            missing.append("telegram.user_id (TELEGRAM_USER_ID)")
        if missing:
            raise ConfigurationError("Missing required settings: " + ", ".join(missing))


def _find_config_file() -> Path | None:
    """Search for config file in standard locations.

    Returns:
        Path to config file if found, None otherwise.
    """
    candidates = [
        Path.cwd() / "tgclaude.yaml",
        Path.cwd() / "tgclaude.yml",
        Path.home() / ".tgclaude" / "config.yaml",
        Path.home() / ".tgclaude" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _coerce(value: str) -> Any:
    """Coerce an env string to int, bool, or keep it as a string."""
    try:
        return int(value)
    except ValueError:
        if value.lower() in ("true", "false"):
            return value.lower() == "true"
        return value


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply TGCLAUDE_<SECTION>_<KEY> env var overrides to config data.

    Matches section names by longest prefix. For example,
    ``TGCLAUDE_AGENT_MAX_TURNS`` maps to section ``agent``, field
    ``max_turns``.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    known_sections = sorted(
        TgClaudeConfig.model_fields.keys(), key=len, reverse=True
    )
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX):].lower()
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        if matched_section not in data or data[matched_section] is None:
            data[matched_section] = {}
        if isinstance(data[matched_section], dict):
            # Bot tokens look like "123:abc"; never coerce them.
            if matched_field == "bot_token":
                data[matched_section][matched_field] = value
            else:
                data[matched_section][matched_field] = _coerce(value)
    return data


def _apply_legacy_env_defaults(data: dict[str, Any]) -> dict[str, Any]:
    """Fill unset fields from the plain (unprefixed) env var names."""
    for env_name, (section, field) in LEGACY_ENV_VARS.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        if section not in data or data[section] is None:
            data[section] = {}
        if isinstance(data[section], dict) and data[section].get(field) in (None, ""):
            data[section][field] = value
    return data


def load_config(config_path: str | None = None) -> TgClaudeConfig:
    """Load configuration from YAML, env overrides, and plain env defaults.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.tgclaude/).

    Returns:
        Parsed and validated TgClaudeConfig.

    Raises:
        FileNotFoundError: If an explicit config_path does not exist.
        ConfigurationError: If the merged settings fail validation.
    """
    if config_path:
        path: Path | None = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}
    else:
        logger.info("No config file found, using environment only")

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    data = _apply_legacy_env_defaults(data)

    try:
        return TgClaudeConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
