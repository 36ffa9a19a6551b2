"""Server-side player registry: one round entry per connected player.

The inbound loop of a player writes its move, the outbound loop of the same
player reads the table and advances the round, and the opponent's outbound
loop only reads. All access goes through ``RoundTable`` methods, which hold
the table lock for the whole read-modify-write.
"""

import asyncio
import logging
from dataclasses import dataclass, replace

from .connection import Peer
from .wire_constants import MAX_PLAYERS

logger = logging.getLogger(__name__)


@dataclass
class RoundEntry:
    peer: Peer
    move: str = ""
    solution_delivered: bool = False
    # Move received after this round's result was delivered; becomes ``move``
    # once the round is cleared.
    queued_move: str = ""
    # Number of rounds this player has cleared with the current opponent
    round_no: int = 0

    def clear_round(self):
        self.move = self.queued_move
        self.queued_move = ""
        self.solution_delivered = False
        self.round_no += 1


@dataclass
class RoundView:
    """Copy of a player's entry and its opponent's, taken under the lock."""

    own: RoundEntry | None
    opponent_name: str | None = None
    opponent: RoundEntry | None = None


class RoundTable:
    def __init__(self, capacity: int = MAX_PLAYERS):
        self.capacity = capacity
        self._entries: dict[str, RoundEntry] = {}
        self._pending_acks: set[str] = set()
        self._lock = asyncio.Lock()

    async def try_register(self, player_name: str, peer: Peer) -> bool:
        """Add a fresh entry unless the table is full or the name is taken."""
        async with self._lock:
            if len(self._entries) >= self.capacity or player_name in self._entries:
                return False
            # Join the round counter of whoever is already seated
            round_no = max((e.round_no for e in self._entries.values()), default=0)
            self._entries[player_name] = RoundEntry(peer=peer, round_no=round_no)
            return True

    async def remove(self, player_name: str, peer: Peer | None = None) -> bool:
        """Drop a player's entry.

        With *peer* given, the entry is only dropped while it still belongs to
        that connection; a later session under the same name is left alone.
        """
        async with self._lock:
            entry = self._entries.get(player_name)
            if entry is None or (peer is not None and entry.peer is not peer):
                return False
            del self._entries[player_name]
            self._pending_acks.discard(player_name)
            # A delivered result is meaningless without its opponent
            for other in self._entries.values():
                if other.solution_delivered:
                    other.move = other.queued_move
                    other.queued_move = ""
                    other.solution_delivered = False
            return True

    async def record_move(self, player_name: str, move: str) -> bool:
        """Store a move and mark the player as owed an ACK."""
        async with self._lock:
            entry = self._entries.get(player_name)
            if entry is None:
                return False
            if entry.solution_delivered:
                entry.queued_move = move
            else:
                entry.move = move
            self._pending_acks.add(player_name)
            return True

    async def take_pending_ack(self, player_name: str) -> bool:
        async with self._lock:
            if player_name in self._pending_acks:
                self._pending_acks.remove(player_name)
                return True
            return False

    async def mark_solution_delivered(self, player_name: str):
        async with self._lock:
            entry = self._entries.get(player_name)
            if entry is not None:
                entry.solution_delivered = True

    async def clear_round(self, player_name: str):
        async with self._lock:
            entry = self._entries.get(player_name)
            if entry is not None:
                entry.clear_round()

    async def view(self, player_name: str) -> RoundView:
        async with self._lock:
            own = self._entries.get(player_name)
            if own is None:
                return RoundView(own=None)
            for name, entry in self._entries.items():
                if name != player_name:
                    return RoundView(own=replace(own), opponent_name=name, opponent=replace(entry))
            return RoundView(own=replace(own))

    async def player_count(self) -> int:
        async with self._lock:
            return len(self._entries)

    async def player_names(self) -> list[str]:
        async with self._lock:
            return list(self._entries)

    async def get(self, player_name: str) -> RoundEntry | None:
        async with self._lock:
            entry = self._entries.get(player_name)
            return replace(entry) if entry is not None else None
