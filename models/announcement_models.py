"""Data models for spoken game announcements.

This module defines:
- Category / Priority / VoiceRole: tagged variants that drive scheduling and voice choice.
- CategoryProfile / CATEGORY_PROFILES: the single lookup table from category to scheduling traits.
- AnnouncementItem: one pending announcement.
- EngineState / CompletionReason: controller state machine values.
- ControllerStatus: an inspectable snapshot of the controller.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Callable

__all__: list[str] = [
    "CATEGORY_PROFILES",
    "AnnouncementItem",
    "Category",
    "CategoryProfile",
    "CompletionCallback",
    "CompletionReason",
    "ControllerStatus",
    "EngineState",
    "ItemSummary",
    "Priority",
    "VoiceRole",
]

# Type alias: callbacks are invoked with no arguments once the announcement is finished
type CompletionCallback = Callable[[], object]


class Category(Enum):
    """Kind of game event an announcement belongs to."""

    NUMBER = "number"
    PRIZE = "prize"
    GAME_OVER = "game_over"


class Priority(IntEnum):
    """Dispatch tier. HIGH items are always drained before NORMAL items."""

    NORMAL = 0
    HIGH = 1


class VoiceRole(Enum):
    """Audible character of an announcement.

    CALLER is used for number calls and prize results, CELEBRATION for the end of the game.
    """

    CALLER = "caller"
    CELEBRATION = "celebration"


@dataclass(frozen=True)
class CategoryProfile:
    priority: Priority
    voice_role: VoiceRole


CATEGORY_PROFILES: Final[dict[Category, CategoryProfile]] = {
    Category.NUMBER: CategoryProfile(priority=Priority.HIGH, voice_role=VoiceRole.CALLER),
    Category.PRIZE: CategoryProfile(priority=Priority.NORMAL, voice_role=VoiceRole.CALLER),
    Category.GAME_OVER: CategoryProfile(priority=Priority.NORMAL, voice_role=VoiceRole.CELEBRATION),
}


class EngineState(Enum):
    """Controller state.

    IDLE -> SPEAKING on dispatch, SPEAKING -> IDLE on completion.
    BLOCKED is entered when the engine refuses to speak and left only through enable().
    """

    IDLE = "idle"
    SPEAKING = "speaking"
    BLOCKED = "blocked"


class CompletionReason(Enum):
    """Why an announcement stopped being in flight. Logged, never raised."""

    NATIVE_END = "native_end"
    NATIVE_ERROR = "native_error"
    POLL = "poll"
    TIMEOUT = "timeout"
    PREEMPTED = "preempted"
    BLOCKED = "blocked"
    UNSUPPORTED = "unsupported"
    CANCELLED = "cancelled"


def _new_item_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class AnnouncementItem:
    """A single announcement waiting to be spoken.

    Items compare by identity. Two items carrying the same category and text are
    duplicates for queueing purposes; see `dedup_key`.

    Attributes:
        category (Category): Event kind that produced the announcement.
        text (str): Text handed to the speech engine.
        priority (Priority): Dispatch tier.
        on_complete (CompletionCallback | None): Invoked exactly once when the item is finished.
        retry_count (int): Number of times the item was re-queued after a transient engine error.
        id (str): Tracing and cancellation handle. Not part of the dedup identity.
    """

    category: Category
    text: str
    priority: Priority = Priority.NORMAL
    on_complete: CompletionCallback | None = None
    retry_count: int = 0
    id: str = field(default_factory=_new_item_id)

    @property
    def dedup_key(self) -> tuple[Category, str]:
        return (self.category, self.text)

    @property
    def profile(self) -> CategoryProfile:
        return CATEGORY_PROFILES[self.category]

    def __str__(self) -> str:
        return (
            f"<{self.__class__.__name__} id: {self.id[:8]}, category: {self.category.value}, "
            f"priority: {self.priority.name}, retry: {self.retry_count}, text: {self.text!r}>"
        )


@dataclass(frozen=True)
class ItemSummary:
    id: str
    category: Category
    text: str

    @classmethod
    def of(cls, item: AnnouncementItem) -> ItemSummary:
        return cls(id=item.id, category=item.category, text=item.text)


@dataclass(frozen=True)
class ControllerStatus:
    """Read-only snapshot of the announcement controller.

    Attributes:
        state (EngineState): Current state machine value.
        queue_length (int): Items waiting to be dispatched.
        current_item (ItemSummary | None): The in-flight announcement, if any.
        rate (float): Speech rate applied to the next dispatch.
        engine_supported (bool): False when announcements fail open without audio.
        completed_count (int): Callbacks delivered since the session started.
    """

    state: EngineState
    queue_length: int
    current_item: ItemSummary | None
    rate: float
    engine_supported: bool
    completed_count: int
