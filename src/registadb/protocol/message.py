""" Request and response structures for the verified lane. Every request
    gets exactly one response; the two are tied together on the wire by a
    transaction id generated here (see :func:`wire.pack_request`).
"""

import enum
import itertools
import threading

from typing import Optional

import msgspec

from .entry import Entry, UInt64, check_id
from .value import decode


# This is the version of the current on-the-wire protocol. The legacy
# typed-object generation is identified separately, see legacy.version.

version = b'2'


class Operation(str, enum.Enum):
    CREATE = 'CREATE'
    READ = 'READ'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'


class Status(str, enum.Enum):
    """ The closed status taxonomy. Every client must handle all of these.
    """

    OK = 'OK'
    NOT_FOUND = 'NOT_FOUND'
    TYPE_MISMATCH = 'TYPE_MISMATCH'
    INTERNAL_ERROR = 'INTERNAL_ERROR'
    UNKNOWN_OPERATION = 'UNKNOWN_OPERATION'
    ALREADY_EXISTS = 'ALREADY_EXISTS'
    INVALID_ARGUMENT = 'INVALID_ARGUMENT'


class Request(msgspec.Struct, frozen=True, omit_defaults=True):
    """ A verified-lane request. *entry* is only present for CREATE and
        UPDATE, *id* only for READ, UPDATE and DELETE. The operation is
        kept as a plain string so that a peer speaking a newer dialect
        can still be answered with UNKNOWN_OPERATION rather than a decode
        failure.
    """

    op: str
    entry: Optional[Entry] = None
    id: UInt64 = 0

    def __post_init__(self):
        check_id(self.id)

    @property
    def operation(self):
        """ The :class:`Operation` for this request. Raises ValueError for an
            operation outside the known set.
        """
        return Operation(self.op)


class Response(msgspec.Struct, frozen=True, omit_defaults=True):
    """ *message* is a diagnostic string and may be empty; *entry* is only
        present in the response to a successful READ, CREATE, or UPDATE.
    """

    status: Status
    message: str = ''
    entry: Optional[Entry] = None

    @property
    def ok(self):
        return self.status == Status.OK

    @property
    def value(self):
        """ The Python-native value of the returned entry, or None.
        """

        if self.entry is None:
            return None

        return decode(self.entry.data)


def create(entry):
    return Request(op=Operation.CREATE.value, entry=entry)


def read(id):
    return Request(op=Operation.READ.value, id=id)


def update(id, entry):
    return Request(op=Operation.UPDATE.value, id=id, entry=entry)


def delete(id):
    return Request(op=Operation.DELETE.value, id=id)


def reply(status, message='', entry=None):
    return Response(status=Status(status), message=message, entry=entry)


def validate(request):
    """ Check that a :class:`Request` carries the fields its operation
        requires. Returns None if the request is acceptable, otherwise the
        :class:`Response` that should be sent back instead.
    """

    try:
        operation = request.operation
    except ValueError:
        return reply(Status.UNKNOWN_OPERATION, 'unknown operation: ' + repr(request.op))

    if operation == Operation.CREATE:
        if request.entry is None:
            return reply(Status.INVALID_ARGUMENT, 'CREATE requires an entry')

    elif operation == Operation.UPDATE:
        if request.entry is None:
            return reply(Status.INVALID_ARGUMENT, 'UPDATE requires an entry')
        if request.id == 0:
            return reply(Status.INVALID_ARGUMENT, 'UPDATE requires a non-zero id')

    return None


_id_mask = 0xFFFFFFFF
_id_lock = threading.Lock()
_id_ticker = itertools.count()


def _id_next():
    """ Return the next transaction id for a request, as eight hex digits.
        The id only needs to be locally unique; it wraps around after 2**32
        requests.
    """

    with _id_lock:
        id = next(_id_ticker) & _id_mask

    return b'%08x' % (id)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
