"""Announcement text handling for the Tambola caller.

This package provides the traditional number calls, prize and game-over phrasing, parsing of
the host's winner line, and clean-up of text before it reaches a speech engine.
"""

from handlers.number_calls import TRADITIONAL_CALLS, number_call_text
from handlers.prize_phrases import PrizeEntry, game_over_text, parse_winner_announcement, prize_won_text
from handlers.text_cleaner import clean_announcement_text

__all__: list[str] = [
    "TRADITIONAL_CALLS",
    "PrizeEntry",
    "clean_announcement_text",
    "game_over_text",
    "number_call_text",
    "parse_winner_announcement",
    "prize_won_text",
]
