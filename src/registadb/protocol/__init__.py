"""
RegistaDB Protocol Layer
========================

This package defines the transport-agnostic protocol spoken between a
RegistaDB client and server. It provides the value codec, the entry
envelope, the request/response structures for the verified lane, the
legacy typed-object structures, and the multipart framing for all of them.

The protocol layer MUST NOT depend on any transport implementation.

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

Dual-Lane Client (registadb.client)
    create() / create_no_reply() / read() / update() / delete()

    │
    ▼
Request/Response (message.py)
    Operation, Status, Request, Response
    One response per request, correlated by transaction id

    │
    ▼
Envelope (entry.py)
    Entry, EntryBuilder
    Empty metadata is never put on the wire

    │
    ▼
Value Codec (value.py)
    Closed tagged union of value kinds
    encode() / decode() round trip

Legacy typed objects (legacy.py) sit beside the envelope, and the framing
(wire.py) maps all of the above to and from multipart byte frames.

---------------------------------------------------------------------
"""

from . import value
from . import entry
from . import message
from . import legacy
from . import wire

from .value import DecodeError
from .entry import Entry, EntryBuilder
from .message import Operation, Request, Response, Status
from .legacy import ObjectRequest, ObjectType, RegistaObject

PROTOCOL_VERSION = message.version


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
