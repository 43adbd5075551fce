"""Configuration data models for the Tambola caller.

Each dataclass maps one section of the INI file. Field names are the INI keys, and the type of
each default value decides how the loader converts the raw string.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__: list[str] = [
    "Config",
    "Detection",
    "General",
    "QueueSettings",
    "Speech",
    "VoicePreferences",
]


@dataclass
class General:
    DEBUG: bool = False
    LOG_FILE: str = ""
    LOG_LEVEL: str = "INFO"
    SCRIPT_NAME: str = ""


@dataclass
class Speech:
    ENGINE: str = "gtts"
    LANGUAGE: str = "en-in"
    RATE: float = 1.0
    # Skips the interaction gate; for presenter screens where the host already interacted.
    FORCE_ENABLE: bool = False


@dataclass
class VoicePreferences:
    CALLER_VOICES: list[str] = field(
        default_factory=lambda: ["Neerja", "Jenny", "Aria", "Sonia", "Samantha", "Zira", "India"]
    )
    CELEBRATION_VOICES: list[str] = field(
        default_factory=lambda: ["Prabhat", "Guy", "Davis", "Daniel", "Alex", "United Kingdom"]
    )


@dataclass
class Detection:
    POLL_INTERVAL: float = 0.25
    MAX_POLLS: int = 80
    SECONDS_PER_CHARACTER: float = 0.08
    TIMEOUT_BUFFER: float = 2.0
    MAX_TIMEOUT: float = 15.0


@dataclass
class QueueSettings:
    COOLDOWN: float = 0.1
    MAX_RETRIES: int = 1
    GAME_OVER_DELAY: float = 0.5
    GAME_OVER_MAX_WAIT: float = 5.0


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    SPEECH: Speech = field(default_factory=Speech)
    VOICE: VoicePreferences = field(default_factory=VoicePreferences)
    DETECTION: Detection = field(default_factory=Detection)
    QUEUE: QueueSettings = field(default_factory=QueueSettings)
