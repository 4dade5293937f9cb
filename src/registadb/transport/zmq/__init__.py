"""ZeroMQ sockets for the two RegistaDB lanes.

Fast lane (PUSH/PULL)
    one-way; the client never waits on, or hears back from, the server

Verified lane (REQ/REP)
    strictly one reply per request, one request in flight per connection
"""

from __future__ import annotations

import atexit

import zmq

from ..base import TransportPortError


# Port range used when a server is not given an explicit port number.

minimum_port = 10079
maximum_port = 13679

zmq_context = zmq.Context()


def bind(socket: zmq.Socket, address: str = "*", port=None, avoid=None) -> int:
    """Bind *socket* to *port*, or to the first available port in the
    default range if *port* is None. Returns the bound port number.
    """

    if port is not None:
        port = int(port)
        try:
            socket.bind(f"tcp://{address}:{port}")
        except zmq.ZMQError as exc:
            raise TransportPortError(f"port already in use: {port}") from exc
        return port

    avoid = set(avoid or ())

    for trial in range(minimum_port, maximum_port + 1):
        if trial in avoid:
            continue
        try:
            socket.bind(f"tcp://{address}:{trial}")
        except zmq.ZMQError:
            # Assume this port is in use.
            continue
        return trial

    raise TransportPortError(
        f"no ports available in range {minimum_port}:{maximum_port}"
    )


def _cleanup() -> None:
    # Sockets keep their own linger setting; queued fast-lane messages get
    # that long to drain before the context goes away.
    zmq_context.destroy()


atexit.register(_cleanup)
