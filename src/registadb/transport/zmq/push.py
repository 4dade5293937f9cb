"""ZeroMQ fast lane: fire-and-forget PUSH client, PULL server.

The client never blocks and never raises for transport conditions. If the
outgoing queue is full, or the socket cannot take the message for any other
reason, the message is dropped and the drop is logged at DEBUG level; loss
on this lane is silent as far as the caller is concerned.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Sequence, Tuple

import zmq

from ..base import Transport
from . import bind, zmq_context


logger = logging.getLogger(__name__)


class Client(Transport):
    """Push multipart messages to a ZeroMQ PULL socket at *address*:*port*.

    *linger* is the number of seconds queued messages are given to drain
    when the client is closed.
    """

    linger = 1.0

    def __init__(self, address: str, port: int, linger: Optional[float] = None):
        self.address = address
        self.port = int(port)

        if linger is not None:
            self.linger = float(linger)

        self.socket: Optional[zmq.Socket] = None
        self.socket_lock = threading.Lock()
        self.open()

    @property
    def is_open(self) -> bool:
        return self.socket is not None

    def open(self) -> None:
        if self.socket is not None:
            return

        socket = zmq_context.socket(zmq.PUSH)
        socket.setsockopt(zmq.LINGER, int(self.linger * 1000))
        socket.connect(f"tcp://{self.address}:{self.port}")
        self.socket = socket

    def close(self) -> None:
        with self.socket_lock:
            if self.socket is not None:
                self.socket.close()
                self.socket = None

    def send(self, frames: Sequence[bytes]) -> bool:
        """Queue *frames* for delivery. Returns True if the message was
        handed to ZeroMQ, False if it was dropped locally. Neither outcome
        says anything about whether the server received it.
        """

        # The lock around the ZeroMQ socket is necessary in a multithreaded
        # application; otherwise, if two different threads both invoke
        # send_multipart(), the message parts can and will get mixed together.

        with self.socket_lock:
            if self.socket is None:
                logger.debug("fast lane %s:%d closed, message dropped", self.address, self.port)
                return False

            try:
                self.socket.send_multipart(frames, flags=zmq.NOBLOCK)
            except zmq.Again:
                logger.debug("fast lane %s:%d queue full, message dropped", self.address, self.port)
                return False
            except zmq.ZMQError as exc:
                logger.debug("fast lane %s:%d send failed, message dropped: %s", self.address, self.port, exc)
                return False

        return True


class Server:
    """Receive pushed multipart messages via a ZeroMQ PULL socket.

    The socket is not thread-safe; it is expected to be serviced from a
    single thread, typically via a poller on :attr:`socket`.
    """

    def __init__(self, address: str = "*", port: Optional[int] = None, avoid: Optional[set] = None):
        self.socket = zmq_context.socket(zmq.PULL)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.port = bind(self.socket, address, port, avoid)

    def recv(self) -> Tuple[bytes, ...]:
        return tuple(self.socket.recv_multipart())

    def close(self) -> None:
        self.socket.close()
