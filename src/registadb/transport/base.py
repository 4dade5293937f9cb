"""Transport interface.

This is the (small) contract that transport implementations should follow.
It lives outside :mod:`registadb.protocol` so the protocol remains
transport-agnostic; transports move multipart byte frames and nothing else.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportTimeout(TransportError):
    """A request did not receive a timely response."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


class TransportPortError(TransportError):
    """No suitable port could be bound or connected."""


class Transport(ABC):
    """Minimal contract for a client-side lane."""

    @abstractmethod
    def open(self) -> None:
        """Establish the underlying connection/socket."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the underlying connection/socket."""

    @abstractmethod
    def send(self, frames: Sequence[bytes]):
        """Send one multipart message."""

    @property
    def is_open(self) -> bool:
        """Whether the transport is currently connected."""
        return False
