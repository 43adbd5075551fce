from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from handlers.number_calls import MAX_NUMBER, MIN_NUMBER, number_call_text
from handlers.prize_phrases import game_over_text, parse_winner_announcement, prize_won_text
from handlers.text_cleaner import clean_announcement_text
from models.announcement_models import Category
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from core.announcer.controller import AnnouncementController
    from handlers.prize_phrases import PrizeEntry
    from models.announcement_models import CompletionCallback

__all__: list[str] = ["GameAnnouncer"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class GameAnnouncer:
    """Turns game events into controller announcements.

    Keeps the per-game guards that stop redundant event sources from repeating themselves:
    the last called number, the last winner line, and whether game over was announced.
    """

    def __init__(self, controller: AnnouncementController) -> None:
        self.controller: AnnouncementController = controller
        self._last_number: int | None = None
        self._last_announcement: str | None = None
        self._game_over_announced: bool = False
        self._generation: int = 0

    def announce_number(self, number: int, on_complete: CompletionCallback | None = None) -> str | None:
        """Announce a called number.

        Returns:
            str | None: The queued item id, or None if the number repeats the last one or was
            deduplicated.

        Raises:
            ValueError: If `number` is outside 1..90.
        """
        if not (MIN_NUMBER <= number <= MAX_NUMBER):
            msg: str = f"Tambola numbers run from {MIN_NUMBER} to {MAX_NUMBER}, got {number}"
            raise ValueError(msg)
        if number == self._last_number:
            logger.debug("Number %d already announced", number)
            return None
        self._last_number = number
        return self.controller.enqueue(Category.NUMBER, number_call_text(number), on_complete=on_complete)

    def announce_prize(
        self, prize_name: str, winners: list[str], on_complete: CompletionCallback | None = None
    ) -> str | None:
        text: str = clean_announcement_text(prize_won_text(prize_name, winners))
        return self.controller.enqueue(Category.PRIZE, text, on_complete=on_complete)

    def announce_prizes(self, announcement: str, on_complete: CompletionCallback | None = None) -> list[str]:
        """Announce every prize named in a host winner line.

        `on_complete` runs once, after the last accepted prize announcement completed, or on the
        next loop iteration when nothing was queued.

        Returns:
            list[str]: Ids of the queued prize announcements.
        """
        if announcement == self._last_announcement:
            logger.debug("Winner announcement already processed")
            return []
        self._last_announcement = announcement

        entries: list[PrizeEntry] = parse_winner_announcement(clean_announcement_text(announcement))
        if not entries:
            logger.warning("No prize entries found in winner announcement: %r", announcement)

        pending: list[str] = []

        def entry_done() -> None:
            pending.pop()
            if not pending and on_complete is not None:
                on_complete()

        for entry in entries:
            item_id: str | None = self.announce_prize(entry.prize_name, entry.winners, on_complete=entry_done)
            if item_id is not None:
                pending.append(item_id)

        if not pending and on_complete is not None:
            asyncio.get_running_loop().call_soon(self._run_guarded, on_complete)
        return list(pending)

    async def announce_game_over(
        self, text: str | None = None, on_complete: CompletionCallback | None = None
    ) -> str | None:
        """Announce the end of the game once, after prize audio has had a chance to finish.

        Returns:
            str | None: The queued item id, or None if game over was already announced.
        """
        if self._game_over_announced:
            logger.debug("Game over already announced")
            return None
        self._game_over_announced = True
        generation: int = self._generation

        settings = self.controller.config.QUEUE
        # Leave room after the last prize announcement before talking again.
        await asyncio.sleep(settings.GAME_OVER_DELAY)
        if not await self.controller.wait_until_idle(settings.GAME_OVER_MAX_WAIT):
            logger.info(
                "Announcements still playing after %.1fs; announcing game over anyway", settings.GAME_OVER_MAX_WAIT
            )
        if generation != self._generation:
            logger.info("New game started while waiting; dropping game over")
            return None

        spoken: str = clean_announcement_text(game_over_text(text)) or game_over_text()
        return self.controller.enqueue(Category.GAME_OVER, spoken, on_complete=on_complete)

    def new_game(self) -> None:
        """Forget the per-game guards and drop everything the controller still holds."""
        self._generation += 1
        self._last_number = None
        self._last_announcement = None
        self._game_over_announced = False
        self.controller.reset()
        logger.info("New game started")

    @staticmethod
    def _run_guarded(callback: CompletionCallback) -> None:
        try:
            callback()
        except Exception as err:  # noqa: BLE001
            logger.error("on_complete callback raised: %r", err)
