""" The typed-object protocol generation. A :class:`RegistaObject` declares
    its type with an explicit tag, and carries its payload in the one field
    selected by that tag:

        ========  ===========================================
        STRING    *blob*, a byte string
        JSON      *blob*, a byte string holding JSON text
        LIST      *items*, an ordered list of byte strings
        HASH      *fields*, a string-keyed map of byte strings
        VECTOR    *vector*, an ordered list of floats
        ========  ===========================================

    The client does not enforce coherence between the type and the payload;
    the server checks it at ingestion time, and a mismatch is answered with
    TYPE_MISMATCH rather than treated as a decode failure.

    Verified-lane replies in this generation are short ASCII status tokens,
    or the serialized object itself in response to a successful fetch.
"""

import enum

from typing import Dict, List, Optional

import msgspec

from .. import json
from .entry import UInt64, check_id
from .message import Status

try:
    import numpy
except ImportError:
    numpy = None


version = b'1'


class ObjectType(str, enum.Enum):
    STRING = 'STRING'
    LIST = 'LIST'
    HASH = 'HASH'
    JSON = 'JSON'
    VECTOR = 'VECTOR'


payload_fields = dict()
payload_fields[ObjectType.STRING] = 'blob'
payload_fields[ObjectType.JSON] = 'blob'
payload_fields[ObjectType.LIST] = 'items'
payload_fields[ObjectType.HASH] = 'fields'
payload_fields[ObjectType.VECTOR] = 'vector'


# Status tokens used as verified-lane replies.

OK = 'OK'
NOT_FOUND = 'NOT_FOUND'
TYPE_MISMATCH = 'TYPE_MISMATCH'
INTERNAL_ERROR = 'INTERNAL_ERROR'
UNKNOWN_CMD = 'UNKNOWN_CMD'
ALREADY_EXISTS = 'ALREADY_EXISTS'

tokens = frozenset((OK, NOT_FOUND, TYPE_MISMATCH, INTERNAL_ERROR, UNKNOWN_CMD, ALREADY_EXISTS))

_by_status = dict()
_by_status[Status.OK] = OK
_by_status[Status.NOT_FOUND] = NOT_FOUND
_by_status[Status.TYPE_MISMATCH] = TYPE_MISMATCH
_by_status[Status.INTERNAL_ERROR] = INTERNAL_ERROR
_by_status[Status.UNKNOWN_OPERATION] = UNKNOWN_CMD
_by_status[Status.INVALID_ARGUMENT] = UNKNOWN_CMD
_by_status[Status.ALREADY_EXISTS] = ALREADY_EXISTS


def token(status):
    """ Return the ASCII status token corresponding to a :class:`Status`.
    """

    return _by_status[Status(status)]



class RegistaObject(msgspec.Struct, frozen=True, omit_defaults=True):
    """ A typed object. *type* is kept as a plain string on the wire so that
        an unrecognized type reaches the server's coherence check instead of
        failing to decode. *timestamp* is assigned by the server.
    """

    type: str
    id: UInt64 = 0
    timestamp: Optional[float] = None
    blob: Optional[bytes] = None
    items: Optional[List[bytes]] = None
    fields: Optional[Dict[str, bytes]] = None
    vector: Optional[List[float]] = None


    def __post_init__(self):
        check_id(self.id)


    def populated(self):
        """ Return a tuple of the payload field names that are set.
        """

        populated = list()
        for name in ('blob', 'items', 'fields', 'vector'):
            if getattr(self, name) is not None:
                populated.append(name)

        return tuple(populated)


    def coherent(self):
        """ Return True if exactly one payload field is populated, and it is
            the field selected by the declared type.
        """

        try:
            expected = payload_fields[ObjectType(self.type)]
        except ValueError:
            return False

        return self.populated() == (expected,)


    @property
    def payload(self):
        """ The content of the populated payload field, or None.
        """

        for name in self.populated():
            return getattr(self, name)

        return None


    def as_json(self):
        """ Interpret the blob of a JSON object as a Python dictionary.
        """

        if self.type != ObjectType.JSON.value or self.blob is None:
            raise ValueError('not a JSON object')

        return json.loads(self.blob)


    def as_array(self, dtype='float64'):
        """ Return the vector of a VECTOR object as a one-dimensional numpy
            array.
        """

        if numpy is None:
            raise ImportError('numpy module not available')

        if self.vector is None:
            raise ValueError('not a VECTOR object')

        return numpy.array(self.vector, dtype=dtype)


# end of class RegistaObject



class ObjectRequest(msgspec.Struct, frozen=True, omit_defaults=True):
    """ A verified-lane request in the typed-object generation. Exactly one
        of the three fields is expected to be set.
    """

    store_request: Optional[RegistaObject] = None
    fetch_id: Optional[UInt64] = None
    delete_id: Optional[UInt64] = None


    def __post_init__(self):
        if self.fetch_id is not None:
            check_id(self.fetch_id, 'fetch_id')
        if self.delete_id is not None:
            check_id(self.delete_id, 'delete_id')


    def command(self):
        """ Return the name of the populated field, or None if the request
            does not have exactly one field set.
        """

        populated = list()
        for name in ('store_request', 'fetch_id', 'delete_id'):
            if getattr(self, name) is not None:
                populated.append(name)

        if len(populated) == 1:
            return populated[0]

        return None


# end of class ObjectRequest



def string_object(text, id=0):

    if isinstance(text, str):
        text = text.encode()

    return RegistaObject(type=ObjectType.STRING.value, id=id, blob=bytes(text))


def json_object(document, id=0):
    return RegistaObject(type=ObjectType.JSON.value, id=id, blob=json.dumps(document))


def list_object(items, id=0):
    items = [bytes(item) for item in items]
    return RegistaObject(type=ObjectType.LIST.value, id=id, items=items)


def hash_object(mapping, id=0):
    fields = dict((str(key), bytes(value)) for key, value in mapping.items())
    return RegistaObject(type=ObjectType.HASH.value, id=id, fields=fields)


def vector_object(values, id=0):
    vector = [float(value) for value in values]
    return RegistaObject(type=ObjectType.VECTOR.value, id=id, vector=vector)


def store(obj):
    return ObjectRequest(store_request=obj)


def fetch(id):
    return ObjectRequest(fetch_id=id)


def delete(id):
    return ObjectRequest(delete_id=id)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
