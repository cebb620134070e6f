"""
Configuration management with Pydantic settings.
Process settings come from the environment, bridge definitions from a JSON file.
"""
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from slackirc.errors import ConfigurationError

REQUIRED_FIELDS = ("server", "nickname", "channelMapping", "token")
DEFAULT_AVATAR_URL = "http://api.adorable.io/avatars/48/$username.png"
DEFAULT_SLACK_USERNAME_FORMAT = "$username (IRC)"
DEFAULT_IRC_USERNAME_FORMAT = "<$username> "

_ENV_REFERENCE = re.compile(r"\$\{(\w+)\}")


class Settings(BaseSettings):
    """Process-wide settings read from SLACKIRC_* environment variables."""

    config_path: Optional[Path] = Field(
        default=None,
        description="Path to the JSON file holding one bridge or a list of bridges"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    debug_mode: bool = Field(default=False)
    json_logs: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_prefix="SLACKIRC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept lower-case level names from the environment."""
        if isinstance(v, str):
            return v.strip().upper()
        return v


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class IrcOptions(_CamelModel):
    """Tuning for the IRC connection."""

    port: int = Field(default=6667, ge=1, le=65535)
    secure: bool = False
    self_signed: bool = False
    password: Optional[str] = None
    user_name: Optional[str] = None
    real_name: Optional[str] = None
    flood_protection: bool = True
    flood_protection_delay: int = Field(default=500, ge=0, description="Milliseconds between lines")
    retry_count: int = Field(default=10, ge=0)
    retry_delay: int = Field(default=2000, ge=0, description="Milliseconds before a reconnect")


class StatusNotices(_CamelModel):
    join: bool = False
    leave: bool = False


class MuteUsers(_CamelModel):
    slack: List[str] = Field(default_factory=list)
    irc: List[str] = Field(default_factory=list)

    @field_validator("slack", "irc", mode="before")
    @classmethod
    def null_as_empty_list(cls, v):
        return [] if v is None else v


class BridgeConfig(_CamelModel):
    """One Slack workspace <-> IRC server bridge."""

    server: str
    nickname: str
    channel_mapping: Dict[str, str]
    token: str
    app_token: Optional[str] = None

    irc_options: IrcOptions = Field(default_factory=IrcOptions)
    irc_status_notices: StatusNotices = Field(default_factory=StatusNotices)
    command_characters: List[str] = Field(default_factory=list)
    mute_users: MuteUsers = Field(default_factory=MuteUsers)
    mute_words: List[str] = Field(default_factory=list)
    mute_slackbot: bool = False
    queue_for: int = Field(default=30000, ge=0, description="Quiet period after a join, in milliseconds")

    # False disables avatars, None falls back to the default template
    avatar_url: Union[bool, str, None] = None
    slack_username_format: str = DEFAULT_SLACK_USERNAME_FORMAT
    irc_username_format: Optional[str] = DEFAULT_IRC_USERNAME_FORMAT
    auto_send_commands: List[List[str]] = Field(default_factory=list)

    @field_validator("irc_username_format", mode="before")
    @classmethod
    def default_irc_username_format(cls, v):
        # An empty string is a legal format, only a missing one gets the default
        return DEFAULT_IRC_USERNAME_FORMAT if v is None else v

    @field_validator("slack_username_format", mode="before")
    @classmethod
    def default_slack_username_format(cls, v):
        return v or DEFAULT_SLACK_USERNAME_FORMAT

    @field_validator("irc_options", "irc_status_notices", "mute_users", mode="before")
    @classmethod
    def null_as_empty_object(cls, v):
        return {} if v is None else v

    @field_validator("mute_words", mode="before")
    @classmethod
    def null_as_empty_list(cls, v):
        return [] if v is None else v

    @field_validator("command_characters", mode="before")
    @classmethod
    def parse_command_characters(cls, v):
        """Allow a plain string such as "!." as shorthand for a list of prefixes."""
        if v is None:
            return []
        if isinstance(v, str):
            return list(v)
        return v

    @field_validator("auto_send_commands", mode="before")
    @classmethod
    def parse_auto_send_commands(cls, v):
        if v is None:
            return []
        return [[str(part) for part in command] for command in v]

    @property
    def avatar_template(self) -> Optional[str]:
        """Icon URL template for relayed IRC users, None when disabled."""
        if self.avatar_url is False:
            return None
        if isinstance(self.avatar_url, str) and self.avatar_url:
            return self.avatar_url
        return DEFAULT_AVATAR_URL

    @property
    def queue_seconds(self) -> float:
        return self.queue_for / 1000.0


def _expand_env(value: Any) -> Any:
    """Substitute ${VAR} references with environment values."""
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    return value


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(item) for item in detail["loc"])
        parts.append(f"{location}: {detail['msg']}")
    return "Invalid configuration: " + "; ".join(parts)


def build_bridge_config(raw: Dict[str, Any]) -> BridgeConfig:
    """Validate a single bridge definition."""
    if not isinstance(raw, dict):
        raise ConfigurationError("Bridge configuration must be an object")

    raw = _expand_env(raw)
    for field in REQUIRED_FIELDS:
        snake = re.sub(r"([A-Z])", lambda m: "_" + m.group(1).lower(), field)
        if not raw.get(field) and not raw.get(snake):
            raise ConfigurationError(f"Missing configuration field {field}")

    try:
        config = BridgeConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(_format_validation_error(e)) from e

    from slackirc.core.channel_mapper import ChannelMapper
    ChannelMapper(config.channel_mapping)

    return config


def load_bridge_configs(path: Union[str, Path]) -> List[BridgeConfig]:
    """Read a JSON file holding one bridge object or a list of them."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration file {path} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not data:
        raise ConfigurationError("Configuration must be a bridge object or a non-empty list of them")

    return [build_bridge_config(item) for item in data]


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
