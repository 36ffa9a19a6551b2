"""Rock/paper/scissors winner rule."""

from .wire_constants import (
    MOVE_PAPER,
    MOVE_ROCK,
    MOVE_SCISSORS,
    RESULT_DRAW,
    RESULT_LOSE,
    RESULT_WIN,
)

# move -> the move it beats
BEATS = {
    MOVE_ROCK: MOVE_SCISSORS,
    MOVE_SCISSORS: MOVE_PAPER,
    MOVE_PAPER: MOVE_ROCK,
}


class InvalidMoveError(ValueError):
    """Raised when two moves cannot be compared."""


def find_winner(name1: str, move1: str, name2: str, move2: str) -> str | None:
    """Return the winning player's name, or None for a draw.

    Identical moves are always a draw, even for tokens outside the three
    known moves.
    """
    if BEATS.get(move1) == move2:
        return name1
    if BEATS.get(move2) == move1:
        return name2
    if move1 == move2:
        return None
    raise InvalidMoveError(f"Invalid input: {move1!r} vs {move2!r}")


def result_text(player_name: str, winner: str | None) -> str:
    if winner is None:
        return RESULT_DRAW
    if winner == player_name:
        return RESULT_WIN
    return RESULT_LOSE
