from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from loguru import logger
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from whisperkey.commands import DEFAULT_CLIPBOARD_KEYWORDS, DEFAULT_REFINE_KEYWORDS
from whisperkey.hotkey_listener import default_hotkey
from whisperkey.output.pynput_output import OutputMethod
from whisperkey.refine import RefineConfig
from whisperkey.transcribe import TranscribeConfig


class HotkeyConfig(BaseModel):
    """Global hotkey that starts and stops recording."""

    hotkey: str = Field(
        default_factory=default_hotkey,
        description="Hotkey in pynput format, e.g. '<ctrl>+<shift>+p'",
    )
    enabled: bool = Field(default=True, description="Register the hotkey at startup")


class RecorderConfig(BaseModel):
    """Microphone capture settings."""

    device_name: Optional[str] = Field(
        default=None,
        description="Substring of the input device name (default: system default)",
    )
    sample_rate: int = 16000
    minimum_duration: float = Field(
        default=0.5,
        ge=0.0,
        description="Recordings shorter than this many seconds are discarded",
    )


class OutputConfig(BaseModel):
    """How transcribed text reaches the focused window."""

    method: OutputMethod = "type"
    progress_indicators: bool = Field(
        default=True,
        description="Type 'Recording'/'Processing' into the window while working",
    )
    release_timeout: float = Field(
        default=1.0,
        ge=0.0,
        description="Seconds to wait for the hotkey to be released before typing",
    )
    char_delay: float = Field(default=0.0, ge=0.0)
    clipboard_restore_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Seconds after a paste before the previous clipboard is put back",
    )


class CommandConfig(BaseModel):
    """Voice command keywords, matched against the first two words."""

    refine_keywords: List[str] = list(DEFAULT_REFINE_KEYWORDS)
    clipboard_keywords: List[str] = list(DEFAULT_CLIPBOARD_KEYWORDS)


class TelemetryConfig(BaseModel):
    """Telemetry configuration for OpenTelemetry tracing."""

    enabled: bool = False
    service_name: str = "whisperkey"
    export_to_file: bool = True
    trace_file: Optional[str] = None
    otlp_endpoint: Optional[str] = None
    rotation_enabled: bool = True
    rotation_max_size_mb: int = 10


class Settings(BaseSettings):
    """Main application settings.

    Values can also come from WHISPERKEY_* environment variables, e.g.
    WHISPERKEY_OUTPUT__METHOD=paste.
    """

    model_config = SettingsConfigDict(env_prefix="WHISPERKEY_", env_nested_delimiter="__")

    hotkey: HotkeyConfig = HotkeyConfig()
    recorder: RecorderConfig = RecorderConfig()
    transcribe: TranscribeConfig = TranscribeConfig()
    refine: RefineConfig = RefineConfig()
    output: OutputConfig = OutputConfig()
    commands: CommandConfig = CommandConfig()

    # Telemetry configuration (disabled by default)
    telemetry: TelemetryConfig = TelemetryConfig()

    # Path to log file (uses platform defaults if not specified)
    log_file: Optional[Path] = None


DEFAULT_LOCATIONS = [
    Path("settings.toml"),
    Path.home() / ".config" / "whisperkey" / "settings.toml",
    Path("/etc/whisperkey/settings.toml"),
]


def _drop_unknown_sections(data: Dict[str, Any]) -> Dict[str, Any]:
    """Warn about and remove top-level keys Settings does not define."""
    unknown = set(data) - set(Settings.model_fields)
    if unknown:
        logger.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")
    return {key: value for key, value in data.items() if key not in unknown}


def find_settings_file() -> Optional[Path]:
    for location in DEFAULT_LOCATIONS:
        if location.is_file():
            return location
    return None


def load_settings(settings_file: Path | None = None) -> Settings:
    """Loads settings from a TOML file, falling back to the defaults.

    If no settings_file is provided, searches in order:
    1. ./settings.toml (current directory)
    2. ~/.config/whisperkey/settings.toml (user config)
    3. /etc/whisperkey/settings.toml (system-wide)

    Each section only needs the values it changes; missing keys keep their
    defaults. Sections the file leaves out can still be set through the
    environment.
    """
    if settings_file is None:
        settings_file = find_settings_file()

    if settings_file and settings_file.is_file():
        logger.info(f"Loading settings from {settings_file}")
        data = _drop_unknown_sections(toml.load(settings_file))
        return Settings(**data)

    if settings_file:
        logger.warning(f"Settings file not found: {settings_file}, using defaults")
    return Settings()
