"""Text for prize and game-over announcements, and parsing of the host's winner line."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Final

__all__: list[str] = [
    "DEFAULT_GAME_OVER_TEXT",
    "PrizeEntry",
    "game_over_text",
    "parse_winner_announcement",
    "prize_won_text",
]

DEFAULT_GAME_OVER_TEXT: Final[str] = "Game Over! Congratulations to all our winners! Thanks for playing!"

_ENTRY_PATTERN: Final[re.Pattern[str]] = re.compile(r"(.*?)\s+won\s+by\s+(.*)", re.IGNORECASE)
_TICKET_PATTERN: Final[re.Pattern[str]] = re.compile(r"T(\d+)", re.IGNORECASE)
_TICKET_SUFFIX_PATTERN: Final[re.Pattern[str]] = re.compile(r"\(\s*T\d+\s*\)", re.IGNORECASE)


@dataclass
class PrizeEntry:
    """One 'X won by Y' clause of a winner announcement."""

    prize_name: str
    winners: list[str] = field(default_factory=list)
    ticket_numbers: list[int] = field(default_factory=list)


def prize_won_text(prize_name: str, winners: list[str]) -> str:
    """Compose a prize announcement.

    One winner is named, two winners are both named, three or more are summarised by count
    with one example name.
    """
    names: list[str] = [name.strip() for name in winners if name and name.strip()]
    match len(names):
        case 0:
            return f"{prize_name} has been won!"
        case 1:
            return f"{prize_name} won by {names[0]}! Congratulations!"
        case 2:
            return f"{prize_name} won by {names[0]} and {names[1]}! Congratulations to both!"
        case _:
            return f"{prize_name} won by {len(names)} players, including {names[0]}! Congratulations to all!"


def game_over_text(text: str | None = None) -> str:
    if text and text.strip():
        return text.strip()
    return DEFAULT_GAME_OVER_TEXT


def _winner_name(part: str) -> str:
    name: str = _TICKET_SUFFIX_PATTERN.sub("", part).strip()
    if name:
        # Bare ticket reference such as 'T3'
        ticket: re.Match[str] | None = _TICKET_PATTERN.fullmatch(name)
        if ticket:
            return f"Ticket {int(ticket.group(1))}"
        return name
    ticket = _TICKET_PATTERN.search(part)
    return f"Ticket {int(ticket.group(1))}" if ticket else ""


def parse_winner_announcement(announcement: str) -> list[PrizeEntry]:
    """Split a winner line such as 'Early Five won by Asha (T12)! Full House won by T3, T9!'.

    Clauses are separated by '!'. Clauses that do not match 'X won by Y', or that mention
    'unknown', are skipped.
    """
    entries: list[PrizeEntry] = []
    for clause in (part.strip() for part in announcement.split("!")):
        if not clause:
            continue
        match: re.Match[str] | None = _ENTRY_PATTERN.match(clause)
        if match is None:
            continue
        prize_name, winner_info = match.group(1).strip(), match.group(2).strip()
        if not prize_name or not winner_info:
            continue
        if "unknown" in prize_name.lower() or "unknown" in winner_info.lower():
            continue

        winners: list[str] = [name for name in map(_winner_name, winner_info.split(",")) if name]
        tickets: list[int] = [int(number) for number in _TICKET_PATTERN.findall(winner_info) if int(number) > 0]
        if winners:
            entries.append(PrizeEntry(prize_name=prize_name, winners=winners, ticket_numbers=tickets))
    return entries
