"""Connection endpoint shared by the client and server roles.

A :class:`Connection` owns exactly one TCP socket and one
:class:`TaskSupervisor` that runs the owning role's top-level loop. Roles
compose a Connection and hand it their ``initialize`` and ``run`` hooks;
there is no role base class.
"""

import asyncio
import atexit
import contextlib
import logging
import socket
from dataclasses import dataclass
from typing import Callable

from .protocol import Message, ResponseCode, decode_message, encode_message
from .task_supervisor import Operation, TaskSupervisor
from .wire_constants import RECEIVE_BUFFER_SIZE

logger = logging.getLogger(__name__)


@dataclass
class Peer:
    """Stream pair wrapped around one connected socket."""

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    @classmethod
    async def wrap(cls, sock: socket.socket) -> "Peer":
        reader, writer = await asyncio.open_connection(sock=sock)
        return cls(reader=reader, writer=writer)

    @property
    def closed(self) -> bool:
        return self.writer.is_closing()

    def peername(self):
        return self.writer.get_extra_info("peername")

    def close(self):
        """Shut the socket down in both directions and close it. Idempotent."""
        if self.writer.is_closing():
            return
        sock = self.writer.get_extra_info("socket")
        if sock is not None:
            with contextlib.suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
        self.writer.close()


class Connection:
    def __init__(
        self,
        name: str,
        host: str,
        port: int,
        *,
        on_dispose: Callable[[], None] | None = None,
    ):
        self.name = name
        self.address = (host, port)
        self.sock: socket.socket | None = None
        self.peer: Peer | None = None
        self._supervisor = TaskSupervisor(name=f"{name}-connection")
        self._on_dispose = on_dispose
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def activate(self, initialize: Callable[[socket.socket], None], run: Operation):
        """Create the socket, run the role's setup hook, then start its loop."""
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setblocking(False)
        initialize(self.sock)
        atexit.register(self._close_at_exit)
        self._supervisor.start(run)

    async def connect(self) -> Peer:
        """Connect the owned socket to ``self.address`` (client side)."""
        loop = asyncio.get_running_loop()
        await loop.sock_connect(self.sock, self.address)
        self.peer = await Peer.wrap(self.sock)
        return self.peer

    async def send_message(self, message: Message, peer: Peer):
        peer.writer.write(encode_message(message))
        await peer.writer.drain()
        logger.info("%s sent message: %s", self.name, message)

    async def receive_message(self, peer: Peer) -> Message | None:
        """Read one chunk and decode it.

        Returns None when the peer is gone. Cancellation propagates.
        Raises ProtocolError for a frame that cannot be parsed.
        """
        try:
            data = await peer.reader.read(RECEIVE_BUFFER_SIZE)
        except (ConnectionError, OSError):
            return None
        return decode_message(data)

    def process_response(self, response: Message | None) -> bool:
        """Interpret a received message; False means the connection is over."""
        if response is None:
            logger.info("%s lost the connection", self.name)
            return False

        code = response.code
        if code == ResponseCode.MES:
            logger.info("%s received a message: %r", self.name, response.text)
            return True
        if code == ResponseCode.SOL:
            logger.info("%s received the round solution: %r", self.name, response.text)
            return True
        if code == ResponseCode.ACK:
            logger.info("%s received acknowledgment: %r", self.name, response.text)
            return True
        if code == ResponseCode.CON:
            logger.info("%s received a connection request from %r", self.name, response.player_name)
            return True
        if code == ResponseCode.END:
            logger.info("%s communication ended: %r", self.name, response.text)
            self.dispose()
            return False
        if code == ResponseCode.REF:
            logger.warning("%s was refused: %r", self.name, response.text)
            self.dispose()
            return False

        logger.warning("%s received unknown code: %r", self.name, code)
        self.dispose()
        return False

    def dispose(self):
        if self._disposed:
            return
        self._disposed = True
        self._supervisor.dispose()

        if self.peer is not None:
            self.peer.close()
        else:
            self._close_socket()
        atexit.unregister(self._close_at_exit)
        logger.debug("%s disposed", self.name)

        if self._on_dispose is not None:
            self._on_dispose()

    def _close_socket(self):
        if self.sock is None:
            return
        with contextlib.suppress(OSError):
            self.sock.shutdown(socket.SHUT_RDWR)
        self.sock.close()

    def _close_at_exit(self):
        # The event loop is gone by now, so only the raw socket can be released
        if self._disposed:
            return
        self._disposed = True
        self._close_socket()
