"""YAML-backed configuration for parley."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from parley.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PARLEY_CONFIG"


@dataclass
class RelayConfig:
    relay_host: str = "127.0.0.1"
    relay_port: int = 8787
    relay_request_timeout_seconds: int = 60
    transcription_model: str = "whisper-1"
    translation_model: str = "gpt-3.5-turbo"
    translation_temperature: float = 0.2
    translation_max_tokens: int = 1000


@dataclass
class RealtimeConfig:
    realtime_url: str = "wss://api.openai.com/v1/realtime"
    realtime_model: str = "gpt-4o-realtime-preview-2024-12-17"
    realtime_voice: str = "alloy"
    realtime_transcription_model: str = "whisper-1"
    vad_threshold: float = 0.5
    vad_prefix_padding_ms: int = 300
    vad_silence_duration_ms: int = 500


@dataclass
class SessionDefaults:
    default_mode: str = "transcribe"
    default_language: str = "English"
    stop_on_protocol_error: bool = False


@dataclass
class LoggingConfig:
    log_level: str = "INFO"
    log_file: Path = field(default_factory=lambda: Path.home() / ".parley" / "parley.log")


@dataclass
class DeveloperConfig:
    debug_mode: bool = False


def _coerce(value: Any, default: Any) -> Any:
    """Coerce a raw YAML value to the type of its default, else keep the default."""
    if value is None:
        return default
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in {"1", "true", "yes", "on"}
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, Path):
            return Path(str(value)).expanduser()
        return str(value)
    except (TypeError, ValueError):
        return default


def _load_section(section_cls, raw: Dict[str, Any]):
    section = section_cls()
    for item in fields(section):
        if item.name in raw:
            setattr(section, item.name, _coerce(raw[item.name], getattr(section, item.name)))
    return section


class Config:
    """Application configuration loaded from a flat YAML mapping."""

    DEFAULT_PATH = Path.home() / ".parley" / "config.yaml"

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
        self.config_path = Path(config_path or env_path or self.DEFAULT_PATH).expanduser()
        raw = self._read(self.config_path)

        self.relay = _load_section(RelayConfig, raw)
        self.realtime = _load_section(RealtimeConfig, raw)
        self.session = _load_section(SessionDefaults, raw)
        self.logging = _load_section(LoggingConfig, raw)
        self.developer = _load_section(DeveloperConfig, raw)

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to read config {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config {path} must contain a mapping")
        return loaded
