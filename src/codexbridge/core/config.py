"""CodexBridge configuration: Pydantic models and loading from TOML, .env and environment."""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator

from codexbridge.core.constants import (
    DEBOUNCE_SECONDS,
    INACTIVITY_SECONDS,
    MAX_OUTPUT_CHARS,
    PTY_COLS,
    PTY_ROWS,
    START_TIMEOUT_SECONDS,
)
from codexbridge.core.exceptions import ConfigError

CONFIG_FILENAME = "config.toml"


def _default_config_dir() -> Path:
    """
    Return the platform-appropriate CodexBridge config directory.

    macOS : ~/Library/Application Support/codexbridge
    Linux : $XDG_CONFIG_HOME/codexbridge (default ~/.config/codexbridge)
    """
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "codexbridge"
    xdg = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    return xdg / "codexbridge"


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


def _secret_value(v: Any) -> str:
    return str(v.get_secret_value() if hasattr(v, "get_secret_value") else v)


class SlackConfig(BaseModel):
    bot_token: SecretStr  # xoxb-* Bot User OAuth Token
    app_token: SecretStr  # xapp-* App-Level Token for Socket Mode
    signing_secret: SecretStr | None = None
    allowed_users: list[str] = Field(default_factory=list)  # empty → anyone in the workspace

    @field_validator("bot_token", mode="before")
    @classmethod
    def validate_bot_token(cls, v: Any) -> Any:
        if not re.fullmatch(r"xoxb-[A-Za-z0-9\-]+", _secret_value(v)):
            raise ValueError(
                "Invalid Slack bot token format. "
                "Expected: xoxb-<alphanumeric>. Get one from your Slack App settings."
            )
        return v

    @field_validator("app_token", mode="before")
    @classmethod
    def validate_app_token(cls, v: Any) -> Any:
        if not re.fullmatch(r"xapp-[A-Za-z0-9\-]+", _secret_value(v)):
            raise ValueError(
                "Invalid Slack app token format. "
                "Expected: xapp-<alphanumeric>. Enable Socket Mode in your Slack App settings."
            )
        return v

    @field_validator("allowed_users", mode="before")
    @classmethod
    def parse_allowed_users(cls, v: Any) -> Any:
        """Accept both list and comma-separated string."""
        if isinstance(v, str):
            return [uid.strip() for uid in v.split(",") if uid.strip()]
        return v


class CodexConfig(BaseModel):
    """How the Codex CLI is launched for each task."""

    command: str = "codex"
    provider: str = "openai"
    model: str = ""
    approval_mode: str = "full-auto"
    extra_args: list[str] = Field(default_factory=list)
    cwd: str = ""
    cols: int = PTY_COLS
    rows: int = PTY_ROWS
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("approval_mode")
    @classmethod
    def validate_approval_mode(cls, v: str) -> str:
        allowed = {"suggest", "auto-edit", "full-auto"}
        if v not in allowed:
            raise ValueError(f"approval_mode must be one of: {sorted(allowed)}")
        return v


class StreamingConfig(BaseModel):
    """Timing of Slack updates for a running session."""

    debounce_s: float = DEBOUNCE_SECONDS
    inactivity_s: float = INACTIVITY_SECONDS
    start_timeout_s: float = START_TIMEOUT_SECONDS
    max_output_chars: int = MAX_OUTPUT_CHARS

    @field_validator("debounce_s")
    @classmethod
    def validate_debounce(cls, v: float) -> float:
        if not (0.1 <= v <= 10.0):
            raise ValueError("debounce_s must be between 0.1 and 10.0")
        return v

    @field_validator("inactivity_s")
    @classmethod
    def validate_inactivity(cls, v: float) -> float:
        if not (1.0 <= v <= 300.0):
            raise ValueError("inactivity_s must be between 1.0 and 300.0")
        return v

    @field_validator("start_timeout_s")
    @classmethod
    def validate_start_timeout(cls, v: float) -> float:
        if not (0.5 <= v <= 60.0):
            raise ValueError("start_timeout_s must be between 0.5 and 60.0")
        return v

    @field_validator("max_output_chars")
    @classmethod
    def validate_max_output(cls, v: int) -> int:
        if not (100 <= v <= 3000):
            raise ValueError("max_output_chars must be between 100 and 3000")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "text"  # "text" | "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


class CodexBridgeConfig(BaseModel):
    """Root CodexBridge configuration model."""

    slack: SlackConfig
    codex: CodexConfig = Field(default_factory=CodexConfig)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def redacted(self) -> dict[str, Any]:
        """Config as a dict with secrets masked, for display."""
        return self.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def _config_file_path() -> Path:
    if env_path := os.environ.get("CODEXBRIDGE_CONFIG"):
        return Path(env_path)
    return _default_config_dir() / CONFIG_FILENAME


def load_config(
    path: Path | str | None = None,
    *,
    env_file: Path | str | None = ".env",
) -> CodexBridgeConfig:
    """
    Load CodexBridgeConfig from an optional TOML file, overlaid with the environment.

    Priority (highest to lowest):
      1. Environment variables (CODEXBRIDGE_*, then SLACK_* / PROVIDER / MODEL)
      2. Variables from *env_file* (never overriding the real environment)
      3. Config file (explicit *path*, $CODEXBRIDGE_CONFIG, or the platform dir)

    An explicit *path* must exist; the default location is optional, so a bot
    configured purely through ``.env`` works without any TOML file.
    """
    import tomllib

    if env_file is not None and Path(env_file).is_file():
        load_dotenv(env_file, override=False)

    explicit = path is not None or "CODEXBRIDGE_CONFIG" in os.environ
    cfg_path = Path(path) if path is not None else _config_file_path()

    data: dict[str, Any] = {}
    if cfg_path.exists():
        try:
            with open(cfg_path, "rb") as f:
                data = tomllib.load(f)
        except Exception as exc:
            raise ConfigError(f"Cannot read config file {cfg_path}: {exc}") from exc
    elif explicit:
        raise ConfigError(f"Config file not found: {cfg_path}")

    _apply_env_overrides(data)

    if "slack" not in data:
        raise ConfigError(
            "Slack is not configured. Set SLACK_BOT_TOKEN and SLACK_APP_TOKEN "
            f"(or add a [slack] section to {cfg_path})."
        )

    try:
        return CodexBridgeConfig.model_validate(data)
    except Exception as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Overlay CODEXBRIDGE_* (and the bare SLACK_*/PROVIDER/MODEL) variables onto parsed TOML."""

    def _env(*names: str) -> str:
        for name in names:
            v = os.environ.get(name, "")
            if v:
                return v
        return ""

    # Slack
    if bot := _env("CODEXBRIDGE_SLACK_BOT_TOKEN", "SLACK_BOT_TOKEN"):
        data.setdefault("slack", {})["bot_token"] = bot
    if app := _env("CODEXBRIDGE_SLACK_APP_TOKEN", "SLACK_APP_TOKEN"):
        data.setdefault("slack", {})["app_token"] = app
    if secret := _env("CODEXBRIDGE_SLACK_SIGNING_SECRET", "SLACK_SIGNING_SECRET"):
        data.setdefault("slack", {})["signing_secret"] = secret
    if users := _env("CODEXBRIDGE_SLACK_ALLOWED_USERS", "SLACK_ALLOWED_USERS"):
        data.setdefault("slack", {})["allowed_users"] = users

    # Codex
    if command := _env("CODEXBRIDGE_CODEX_COMMAND"):
        data.setdefault("codex", {})["command"] = command
    if provider := _env("CODEXBRIDGE_PROVIDER", "PROVIDER"):
        data.setdefault("codex", {})["provider"] = provider
    if model := _env("CODEXBRIDGE_MODEL", "MODEL"):
        data.setdefault("codex", {})["model"] = model
    if cwd := _env("CODEXBRIDGE_CWD"):
        data.setdefault("codex", {})["cwd"] = cwd

    # General
    if level := _env("CODEXBRIDGE_LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = level
