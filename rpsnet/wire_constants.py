"""Wire protocol constants: framing, buffer sizes and server limits.

Pure data module -- no imports, no logic. Safe to import from any rpsnet
module without risk of circular dependencies.
"""

# ── Framing ───────────────────────────────────────────────────────────

# Appended to every encoded message. Not escaped: a payload that contains
# this sequence corrupts the frame.
MESSAGE_DELIMITER = "<|EOM|>"
MESSAGE_ENCODING = "utf-8"
RECEIVE_BUFFER_SIZE = 1024

# ── Server ────────────────────────────────────────────────────────────

LISTEN_BACKLOG = 100
MAX_PLAYERS = 2
SERVER_PLAYER_NAME = "Server"

# ── Moves ─────────────────────────────────────────────────────────────

MOVE_ROCK = "Stein"
MOVE_SCISSORS = "Schere"
MOVE_PAPER = "Papier"

# ── Round outcome texts (sent in SOL messages) ────────────────────────

RESULT_WIN = "You Win!"
RESULT_LOSE = "You Lose!"
RESULT_DRAW = "That's a draw!"
