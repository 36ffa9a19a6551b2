"""Two-player round server.

The accept loop admits at most two players. Every admitted player gets two
loops under the server-wide player supervisor:

- the inbound loop stores the player's moves in the round table and marks
  them for acknowledgment,
- the outbound loop polls the round table and walks each round through
  "both moves in" -> "solution sent to both" -> "board cleared".

Neither loop waits on the other player's loops directly; the round table is
the only shared state.
"""

import asyncio
import errno
import logging
import socket

from .config import POLL_INTERVAL, RPSNET_HOST, RPSNET_PORT
from .connection import Connection, Peer
from .protocol import Message, ProtocolError, ResponseCode
from .round_table import RoundTable
from .rules import find_winner, result_text
from .task_supervisor import TaskSupervisor
from .wire_constants import LISTEN_BACKLOG, SERVER_PLAYER_NAME

logger = logging.getLogger(__name__)


class GameServer:
    def __init__(
        self,
        host: str = RPSNET_HOST,
        port: int = RPSNET_PORT,
        *,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.poll_interval = poll_interval
        self.table = RoundTable()
        self.listening = False
        self._players = TaskSupervisor(name="server-players")
        self.connection = Connection("[Server]", host, port, on_dispose=self._players.dispose)

    @property
    def address(self) -> tuple[str, int] | None:
        """Bound address; differs from the configured one when port 0 was used."""
        if not self.listening:
            return None
        return self.connection.sock.getsockname()[:2]

    def start(self):
        self.connection.activate(self._initialize, self._run)

    def dispose(self):
        self.connection.dispose()

    async def player_names(self) -> list[str]:
        return await self.table.player_names()

    # ------------------------------------------------------------------
    # Listening socket
    # ------------------------------------------------------------------

    def _initialize(self, sock: socket.socket):
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            sock.bind(self.connection.address)
            sock.listen(LISTEN_BACKLOG)
            self.listening = True
            logger.info("[Server] Server started successfully on %s:%s", *self.address)
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                logger.warning(
                    "[Server] The endpoint %s:%s is already in use. A server might already be running.",
                    *self.connection.address,
                )
            else:
                logger.error("[Server] An error occurred while starting: %s", e)

    async def _run(self, cancel_signal: asyncio.Event):
        if not self.listening:
            logger.warning("[Server] Not listening, accept loop not started")
            return

        loop = asyncio.get_running_loop()
        while not cancel_signal.is_set():
            client_sock, addr = await loop.sock_accept(self.connection.sock)
            logger.info("[Server] A new client wants to connect from %s", addr)
            await self._handshake(await Peer.wrap(client_sock))

    async def _handshake(self, peer: Peer):
        try:
            opening = await self.connection.receive_message(peer)
        except ProtocolError:
            logger.warning("[Server] Unreadable opening message from %s", peer.peername())
            opening = None

        player_name = opening.player_name if opening is not None else None
        accepted = (
            opening is not None
            and opening.code == ResponseCode.CON
            and bool(player_name)
            and await self.table.try_register(player_name, peer)
        )

        reply = Message(
            player_name=SERVER_PLAYER_NAME,
            code=ResponseCode.ACK if accepted else ResponseCode.REF,
        )
        try:
            await self.connection.send_message(reply, peer)
        except (ConnectionError, OSError):
            logger.info("[Server] %s left during the handshake", player_name)
            if accepted:
                await self.table.remove(player_name, peer)
            peer.close()
            return

        if not accepted:
            peer.close()
            logger.info("[Server] Rejected the connection of %s", player_name)
            return

        logger.info("[Server] Accepted %s", player_name)
        self._players.start(lambda signal: self._receive_from_player(peer, player_name, signal))
        self._players.start(lambda signal: self._send_to_player(peer, player_name, signal))

    # ------------------------------------------------------------------
    # Per-player loops
    # ------------------------------------------------------------------

    async def _receive_from_player(self, peer: Peer, player_name: str, cancel_signal: asyncio.Event):
        logger.info("[Server] Started handling receive messages for %s.", player_name)
        try:
            while not cancel_signal.is_set():
                message = await self.connection.receive_message(peer)
                if message is None:
                    # Peer lost the connection
                    return

                logger.info("[Server] Received message from %s: (%r, %s)", player_name, message.text, message.code.value)

                if message.code == ResponseCode.MES:
                    if not await self.table.record_move(player_name, message.text or ""):
                        logger.warning("[Server] %s is not registered, dropping its move", player_name)
                elif message.code == ResponseCode.END:
                    if await self.table.remove(player_name, peer):
                        logger.info("[Server] Client %s disconnected.", player_name)
                    else:
                        logger.error("[Server] Tried to remove %r but it was not registered", player_name)
                    return
                else:
                    logger.info("[Server] Unhandled message code %s received from %s", message.code.value, player_name)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("[Server] %s message handler failed: %s", player_name, e)
        finally:
            await self._drop_player(peer, player_name)

    async def _send_to_player(self, peer: Peer, player_name: str, cancel_signal: asyncio.Event):
        logger.info("[Server] Started handling sending messages to %s.", player_name)
        try:
            while not cancel_signal.is_set():
                if not await self._advance_round(peer, player_name):
                    return
                await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("[Server] Error handling messages for %s: %s", player_name, e)
        finally:
            await self._drop_player(peer, player_name)

    async def _advance_round(self, peer: Peer, player_name: str) -> bool:
        """Run one poll of the round state machine. False once the player is gone."""
        view = await self.table.view(player_name)
        own, opponent = view.own, view.opponent
        # A rejoin under the same name owns the entry now
        if own is None or own.peer is not peer or peer.closed:
            logger.info("[Server] %s is no longer registered", player_name)
            return False

        if await self.table.take_pending_ack(player_name):
            logger.info("[Server] Sending Ack to %s", player_name)
            await self.connection.send_message(
                Message(player_name=SERVER_PLAYER_NAME, code=ResponseCode.ACK), peer
            )
            return True

        if opponent is None:
            logger.debug("[Server] %s is waiting for other player...", player_name)
            return True

        opponent_cleared = opponent.round_no > own.round_no

        if not own.move or not opponent.move:
            if own.solution_delivered and opponent_cleared:
                await self.table.clear_round(player_name)
            logger.debug("[Server] %s is waiting for both inputs...", player_name)
            return True

        if own.solution_delivered and not opponent.solution_delivered:
            if opponent_cleared:
                await self.table.clear_round(player_name)
            logger.debug("[Server] %s is waiting for other to receive solution...", player_name)
            return True

        if own.solution_delivered and opponent.solution_delivered:
            await self.table.clear_round(player_name)
            logger.info("[Server] %s: both received the solution, starting a new round", player_name)
            return True

        if own.round_no != opponent.round_no:
            logger.debug("[Server] %s is waiting for %s to clear the last round", player_name, view.opponent_name)
            return True

        winner = find_winner(player_name, own.move, view.opponent_name, opponent.move)
        text = result_text(player_name, winner)
        logger.info(
            "[Server] %s chose %s, %s chose %s, so the solution is: %s",
            player_name, own.move, view.opponent_name, opponent.move, text,
        )
        await self.connection.send_message(
            Message(player_name=SERVER_PLAYER_NAME, text=text, code=ResponseCode.SOL), peer
        )
        await self.table.mark_solution_delivered(player_name)
        return True

    async def _drop_player(self, peer: Peer, player_name: str):
        await self.table.remove(player_name, peer)
        if not peer.closed:
            peer.close()
            logger.info("[Server] Closed connection for %s.", player_name)
