"""Audio announcement controller.

This package turns game events into an ordered sequence of spoken announcements: a
deduplicating priority queue, voice resolution, a playback adapter over the speech engine,
redundant completion detection and the controller state machine that ties them together.
"""

from core.announcer.announcement_queue import AnnouncementQueue
from core.announcer.completion_detector import CompletionDetector, InFlightHandle
from core.announcer.controller import AnnouncementController
from core.announcer.game_announcer import GameAnnouncer
from core.announcer.playback_adapter import PlaybackAdapter
from core.announcer.voice_resolver import VoiceResolver

__all__: list[str] = [
    "AnnouncementController",
    "AnnouncementQueue",
    "CompletionDetector",
    "GameAnnouncer",
    "InFlightHandle",
    "PlaybackAdapter",
    "VoiceResolver",
]
