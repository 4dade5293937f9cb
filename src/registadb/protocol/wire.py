""" Multipart framing for both lanes and both protocol generations. This is
    the only module that turns protocol structures into bytes and back.

    Current generation (version ``b'2'``)::

        fast lane         version, entry_json
        verified request  version, transid, request_json
        verified reply    version, transid, response_json

    Legacy typed-object generation (version ``b'1'``)::

        fast lane         version, object_json
        verified request  version, object_request_json
        verified reply    token_or_object_json

    Every decoder raises :class:`DecodeError` for a malformed frame.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple, Union

import msgspec

from . import legacy
from . import message
from .entry import Entry
from .legacy import ObjectRequest, RegistaObject
from .message import Request, Response
from .value import DecodeError


_encoder = msgspec.json.Encoder()

_entry_decoder = msgspec.json.Decoder(Entry)
_object_decoder = msgspec.json.Decoder(RegistaObject)
_request_decoder = msgspec.json.Decoder(Request)
_response_decoder = msgspec.json.Decoder(Response)
_object_request_decoder = msgspec.json.Decoder(ObjectRequest)

versions = (message.version, legacy.version)


def encode(struct) -> bytes:
    """ Serialize any protocol structure to its JSON body.
    """
    return _encoder.encode(struct)


def _decode(decoder, raw):
    try:
        return decoder.decode(raw)
    except msgspec.DecodeError as e:
        raise DecodeError(str(e)) from e


def decode_entry(raw: bytes) -> Entry:
    return _decode(_entry_decoder, raw)


def decode_object(raw: bytes) -> RegistaObject:
    return _decode(_object_decoder, raw)


def generation(parts: Sequence[bytes]) -> bytes:
    """ Return the protocol version frame of a multipart message.
    """

    if not parts:
        raise DecodeError("empty message")

    their_version = parts[0]
    if their_version not in versions:
        raise DecodeError(f"unknown protocol version {their_version!r}, expected one of {versions!r}")

    return their_version


def _expect(parts: Sequence[bytes], expected_version: bytes, count: int) -> None:

    if not parts:
        raise DecodeError("empty message")

    if parts[0] != expected_version:
        raise DecodeError(f"message is protocol {parts[0]!r}, recipient expects {expected_version!r}")

    if len(parts) != count:
        raise DecodeError(f"expected {count} frames, received {len(parts)}")


# --- fast lane ---

def pack_entry(entry: Entry) -> Tuple[bytes, ...]:
    return (message.version, encode(entry))


def pack_object(obj: RegistaObject) -> Tuple[bytes, ...]:
    return (legacy.version, encode(obj))


def unpack_push(parts: Sequence[bytes]) -> Union[Entry, RegistaObject]:
    """ Decode a fast-lane message of either generation.
    """

    their_version = generation(parts)

    if their_version == message.version:
        _expect(parts, message.version, 2)
        return decode_entry(parts[1])

    _expect(parts, legacy.version, 2)
    return decode_object(parts[1])


# --- verified lane, current generation ---

def pack_request(request: Request, transid: Optional[bytes] = None) -> Tuple[bytes, ...]:

    if transid is None:
        transid = message._id_next()

    return (message.version, transid, encode(request))


def unpack_request(parts: Sequence[bytes]) -> Tuple[bytes, Request]:
    _expect(parts, message.version, 3)
    return parts[1], _decode(_request_decoder, parts[2])


def pack_response(response: Response, transid: bytes) -> Tuple[bytes, ...]:
    return (message.version, transid, encode(response))


def unpack_response(parts: Sequence[bytes], transid: Optional[bytes] = None) -> Response:
    """ Decode a reply. If *transid* is provided the reply must carry the same
        transaction id, otherwise it belongs to some other request.
    """

    _expect(parts, message.version, 3)

    if transid is not None and parts[1] != transid:
        raise DecodeError(f"reply {parts[1]!r} does not correspond to request {transid!r}")

    return _decode(_response_decoder, parts[2])


# --- verified lane, legacy generation ---

def pack_object_request(request: ObjectRequest) -> Tuple[bytes, ...]:
    return (legacy.version, encode(request))


def unpack_object_request(parts: Sequence[bytes]) -> ObjectRequest:
    _expect(parts, legacy.version, 2)
    return _decode(_object_request_decoder, parts[1])


def pack_token(token: str) -> Tuple[bytes, ...]:

    if token not in legacy.tokens:
        raise ValueError(f"not a status token: {token!r}")

    return (token.encode(),)


def pack_object_reply(obj: RegistaObject) -> Tuple[bytes, ...]:
    return (encode(obj),)


def unpack_object_reply(parts: Sequence[bytes]) -> Union[str, RegistaObject]:
    """ A legacy reply is a status token, or the serialized object in place
        of the token for a successful fetch.
    """

    if len(parts) != 1:
        raise DecodeError(f"expected 1 frame, received {len(parts)}")

    raw = parts[0]

    try:
        token = raw.decode('ascii').strip()
    except UnicodeDecodeError:
        token = None

    if token in legacy.tokens:
        return token

    return decode_object(raw)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
