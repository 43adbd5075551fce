"""Data models for the Tambola caller.

This package contains dataclass and enum definitions for configuration, announcements and
speech synthesis voices and utterances.
"""

from __future__ import annotations

from models.announcement_models import (
    CATEGORY_PROFILES,
    AnnouncementItem,
    Category,
    CompletionReason,
    ControllerStatus,
    EngineState,
    Priority,
    VoiceRole,
)
from models.config_models import Config
from models.voice_models import SpeechErrorKind, Utterance, VoiceInfo

__all__: list[str] = [
    "CATEGORY_PROFILES",
    "AnnouncementItem",
    "Category",
    "CompletionReason",
    "Config",
    "ControllerStatus",
    "EngineState",
    "Priority",
    "SpeechErrorKind",
    "Utterance",
    "VoiceInfo",
    "VoiceRole",
]
