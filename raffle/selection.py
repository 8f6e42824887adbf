from __future__ import annotations

from typing import Sequence


def select_winner(random_word: int, players: Sequence[str]) -> int:
    """Map a random word onto a player index.

    Plain ``random_word % len(players)``; the small modulo bias is kept so
    outcomes match any other implementation fed the same word.
    """
    if not players:
        raise ValueError("Cannot select a winner from an empty player list")
    if random_word < 0:
        raise ValueError("Random word must be a non-negative integer")
    return int(random_word) % len(players)
