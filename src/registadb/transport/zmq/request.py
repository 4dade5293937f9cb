"""ZeroMQ verified lane: REQ client, REP server.

The client is strictly synchronous: :func:`Client.send` puts one request on
the wire and blocks until exactly one reply arrives, or the timeout expires.
The REQ socket is configured with ``REQ_RELAXED`` and ``REQ_CORRELATE`` so
that an abandoned request does not wedge the connection, and a late reply
to an abandoned request is discarded rather than handed to the next caller.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Sequence, Tuple

import zmq

from ..base import Transport, TransportConnectionError, TransportTimeout
from . import bind, zmq_context


logger = logging.getLogger(__name__)


class Client(Transport):
    """Issue requests via a ZeroMQ REQ socket and receive responses.
    Maintains a persistent connection to a single server; the *address*
    and *port* number must be specified. *timeout* is the number of seconds
    to wait for a reply.
    """

    timeout = 5.0

    def __init__(self, address: str, port: int, timeout: Optional[float] = None):
        self.address = address
        self.port = int(port)

        if timeout is not None:
            self.timeout = float(timeout)

        self.socket: Optional[zmq.Socket] = None
        self.socket_lock = threading.Lock()
        self.open()

    @property
    def is_open(self) -> bool:
        return self.socket is not None

    def open(self) -> None:
        if self.socket is not None:
            return

        socket = zmq_context.socket(zmq.REQ)
        socket.setsockopt(zmq.LINGER, 0)
        socket.setsockopt(zmq.REQ_RELAXED, 1)
        socket.setsockopt(zmq.REQ_CORRELATE, 1)
        socket.connect(f"tcp://{self.address}:{self.port}")
        self.socket = socket

    def close(self) -> None:
        """Abandon the connection. Any in-flight reply is discarded; whatever
        the server already did on behalf of the request is not undone.
        """

        with self.socket_lock:
            if self.socket is not None:
                self.socket.close()
                self.socket = None

    def send(self, frames: Sequence[bytes]) -> Tuple[bytes, ...]:
        """Send one request and return the frames of its reply. Raises
        :class:`TransportTimeout` if no reply arrives in time, and
        :class:`TransportConnectionError` if the socket is closed or fails.
        """

        # Holding the lock for the full round trip keeps exactly one request
        # in flight on this connection.

        with self.socket_lock:
            socket = self.socket

            if socket is None:
                raise TransportConnectionError(f"connection to {self.address}:{self.port} is closed")

            try:
                socket.send_multipart(frames)
                ready = socket.poll(int(self.timeout * 1000), zmq.POLLIN)
                if ready == 0:
                    raise TransportTimeout(
                        f"{self.address}:{self.port}: no reply in {self.timeout:.2f} sec"
                    )
                return tuple(socket.recv_multipart())
            except zmq.ZMQError as exc:
                raise TransportConnectionError(f"{self.address}:{self.port}: {exc}") from exc


class Server:
    """Receive requests via a ZeroMQ REP socket, and respond to them. Every
    call to :func:`recv` must be followed by exactly one call to
    :func:`send`. The socket is not thread-safe; it is expected to be
    serviced from a single thread, typically via a poller on :attr:`socket`.
    """

    def __init__(self, address: str = "*", port: Optional[int] = None, avoid: Optional[set] = None):
        self.socket = zmq_context.socket(zmq.REP)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.port = bind(self.socket, address, port, avoid)

    def recv(self) -> Tuple[bytes, ...]:
        return tuple(self.socket.recv_multipart())

    def send(self, frames: Sequence[bytes]) -> None:
        self.socket.send_multipart(frames)

    def close(self) -> None:
        self.socket.close()
