"""Player-side endpoint: handshake, then one send loop and one receive loop."""

import asyncio
import logging
import socket
from typing import Callable

from .config import RPSNET_HOST, RPSNET_PORT
from .connection import Connection
from .protocol import Message, ProtocolError, ResponseCode
from .task_supervisor import TaskSupervisor

logger = logging.getLogger(__name__)


class MoveGate:
    """The buffered move and the "last send was acknowledged" flag.

    Both live behind one condition so the send loop can sleep until a move is
    buffered and the previous one was acknowledged.
    """

    def __init__(self):
        self._condition = asyncio.Condition()
        self._move: str | None = None
        self._acknowledged = True

    @property
    def pending_move(self) -> str | None:
        return self._move

    @property
    def acknowledged(self) -> bool:
        return self._acknowledged

    def _ready(self) -> bool:
        return bool(self._move) and self._acknowledged

    async def put(self, move: str):
        async with self._condition:
            self._move = move
            self._condition.notify_all()

    async def take_when_ready(self) -> str:
        """Wait for a sendable move, take it and close the gate until the next ACK."""
        async with self._condition:
            await self._condition.wait_for(self._ready)
            move, self._move = self._move, None
            self._acknowledged = False
            return move

    async def acknowledge(self):
        async with self._condition:
            self._acknowledged = True
            self._condition.notify_all()


class GameClient:
    def __init__(
        self,
        player_name: str,
        host: str = RPSNET_HOST,
        port: int = RPSNET_PORT,
        *,
        on_solution: Callable[[str], None] | None = None,
    ):
        self.player_name = player_name
        self.on_solution = on_solution
        self.gate = MoveGate()
        self.connected = False
        self.solutions: list[str] = []
        self._listeners = TaskSupervisor(name=f"{player_name}-listeners")
        self._handshake: asyncio.Future | None = None
        self.connection = Connection(player_name, host, port, on_dispose=self._on_disposed)

    def start(self):
        self._handshake = asyncio.get_running_loop().create_future()
        self.connection.activate(self._initialize, self._run)

    async def wait_connected(self) -> bool:
        """Outcome of the handshake: True once the server acknowledged us."""
        if self._handshake is None:
            raise RuntimeError(f"Client {self.player_name!r} was not started")
        return await asyncio.shield(self._handshake)

    async def send_local_move(self, move: str):
        await self.gate.put(move)

    async def leave(self, text: str | None = None):
        """Tell the server we are leaving, then tear down."""
        if self.connected and self.connection.peer is not None:
            try:
                await self.connection.send_message(
                    Message(player_name=self.player_name, text=text, code=ResponseCode.END),
                    self.connection.peer,
                )
            except (ConnectionError, OSError):
                logger.info("%s could not say goodbye, server already gone", self.player_name)
        self.dispose()

    def dispose(self):
        self.connection.dispose()

    def _on_disposed(self):
        self.connected = False
        self._listeners.dispose()
        if self._handshake is not None and not self._handshake.done():
            self._handshake.set_result(False)

    def _initialize(self, sock: socket.socket):
        # Nothing to set up before connecting
        pass

    async def _run(self, cancel_signal: asyncio.Event):
        connected = await self._connect_to_server()
        self.connected = connected
        if not self._handshake.done():
            self._handshake.set_result(connected)

        if not connected:
            self.dispose()
            return

        self._listeners.start(self._handle_server_messages)
        self._listeners.start(self._handle_send_messages)

    async def _connect_to_server(self) -> bool:
        try:
            peer = await self.connection.connect()
        except OSError as e:
            logger.warning("%s could not connect to %s:%s: %s", self.player_name, *self.connection.address, e)
            return False

        logger.info("%s connected to server", self.player_name)
        await self.connection.send_message(
            Message(player_name=self.player_name, code=ResponseCode.CON), peer
        )
        try:
            response = await self.connection.receive_message(peer)
        except ProtocolError as e:
            logger.warning("%s got an unreadable handshake reply: %s", self.player_name, e)
            return False

        if not self.connection.process_response(response):
            return False
        return response.code == ResponseCode.ACK

    async def _handle_send_messages(self, cancel_signal: asyncio.Event):
        while self.connected and not cancel_signal.is_set():
            move = await self.gate.take_when_ready()
            await self.connection.send_message(
                Message(player_name=self.player_name, text=move, code=ResponseCode.MES),
                self.connection.peer,
            )

    async def _handle_server_messages(self, cancel_signal: asyncio.Event):
        logger.info("%s starts listening to server messages...", self.player_name)

        while self.connected and not cancel_signal.is_set():
            try:
                response = await self.connection.receive_message(self.connection.peer)
            except ProtocolError as e:
                logger.warning("%s dropped an unreadable message: %s", self.player_name, e)
                self.dispose()
                return

            self.connected = self.connection.process_response(response)
            if response is None:
                break

            if response.code == ResponseCode.ACK:
                await self.gate.acknowledge()
                logger.debug("%s: move was transmitted, gate reopened", self.player_name)
            elif response.code == ResponseCode.SOL:
                self.solutions.append(response.text or "")
                if self.on_solution is not None:
                    self.on_solution(response.text or "")

        # Connection lost without a terminal code: tear down the send loop too
        self.dispose()
