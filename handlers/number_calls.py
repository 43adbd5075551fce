"""Traditional Tambola number calls."""

from __future__ import annotations

from typing import Final

__all__: list[str] = ["MAX_NUMBER", "MIN_NUMBER", "TRADITIONAL_CALLS", "number_call_text"]

MIN_NUMBER: Final[int] = 1
MAX_NUMBER: Final[int] = 90

TRADITIONAL_CALLS: Final[dict[int, str]] = {
    1: "Kelly's Eyes",
    2: "One Little Duck",
    3: "Cup of Tea",
    4: "Knock at the Door",
    5: "Man Alive",
    6: "Half a Dozen",
    7: "Lucky Seven",
    8: "Garden Gate",
    9: "Doctor's Orders",
    10: "Uncle Ben",
    11: "Legs Eleven",
    12: "One Dozen",
    13: "Unlucky for Some",
    14: "Valentine's Day",
    15: "Young and Keen",
    16: "Sweet Sixteen",
    17: "Dancing Queen",
    18: "Now You Can Vote",
    19: "Goodbye Teens",
    20: "One Score",
    21: "Key of the Door",
    22: "Two Little Ducks",
    23: "Thee and Me",
    24: "Two Dozen",
    25: "Duck and Dive",
    26: "Pick and Mix",
    27: "Gateway to Heaven",
    28: "Overweight",
    29: "Rise and Shine",
    30: "Dirty Thirty",
    31: "Get Up and Run",
    32: "Buckle My Shoe",
    33: "All the Threes",
    34: "Ask for More",
    35: "Jump and Jive",
    36: "Three Dozen",
    37: "More Than Eleven",
    38: "Christmas Cake",
    39: "Steps",
    40: "Naughty Forty",
    41: "Time for Fun",
    42: "Winnie the Pooh",
    43: "Down on Your Knees",
    44: "Droopy Drawers",
    45: "Halfway There",
    46: "Up to Tricks",
    47: "Four and Seven",
    48: "Four Dozen",
    49: "PC",
    50: "Half a Century",
    51: "Tweak of the Thumb",
    52: "Danny La Rue",
    53: "Stuck in the Tree",
    54: "Clean the Floor",
    55: "Snakes Alive",
    56: "Was She Worth It",
    57: "Heinz Varieties",
    58: "Make Them Wait",
    59: "Brighton Line",
    60: "Five Dozen",
    61: "Baker's Bun",
    62: "Tickety Boo",
    63: "Tickle Me",
    64: "Red Raw",
    65: "Old Age Pension",
    66: "Clickety Click",
    67: "Made in Heaven",
    68: "Saving Grace",
    69: "Either Way Up",
    70: "Three Score and Ten",
    71: "Bang on the Drum",
    72: "Six Dozen",
    73: "Queen Bee",
    74: "Candy Store",
    75: "Strive and Strive",
    76: "Trombones",
    77: "Sunset Strip",
    78: "Heaven's Gate",
    79: "One More Time",
    80: "Eight and Blank",
    81: "Stop and Run",
    82: "Straight on Through",
    83: "Time for Tea",
    84: "Seven Dozen",
    85: "Staying Alive",
    86: "Between the Sticks",
    87: "Torquay in Devon",
    88: "Two Fat Ladies",
    89: "Nearly There",
    90: "Top of the Shop",
}


def number_call_text(number: int) -> str:
    """Spoken text for a called number.

    >>> number_call_text(7)
    'Lucky Seven, number 7'
    """
    phrase: str | None = TRADITIONAL_CALLS.get(number)
    if phrase is None:
        return f"Number {number}"
    return f"{phrase}, number {number}"
