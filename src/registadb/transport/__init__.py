"""Transport layer implementations."""

import os

from .base import (
    Transport,
    TransportError,
    TransportTimeout,
    TransportConnectionError,
    TransportPortError,
)

_BACKEND = os.environ.get("REGISTADB_TRANSPORT", "zmq")

if _BACKEND == "zmq":
    from .zmq import push
    from .zmq import request
else:
    raise ImportError(f"unknown REGISTADB_TRANSPORT backend: {_BACKEND!r}")
