""" The value codec. A RegistaDB value is a closed, tagged union: exactly
    one kind is active at a time, identified on the wire by its ``kind``
    tag. :func:`encode` maps a Python-native value onto the union, and
    :func:`decode` maps it back; ``decode(encode(v)) == v`` for every
    representable *v*.

    The absence of a value (no kind set) is represented by None, both as
    the encoded form and as the decoded result. It is not an error.
"""

import math

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

import msgspec


INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1

Int64 = Annotated[int, msgspec.Meta(ge=INT64_MIN, le=INT64_MAX)]

# JSON has no representation for infinity or NaN; a double carries them as
# one of these strings instead.

NonFinite = Literal['inf', '-inf', 'nan']
Double = Union[float, NonFinite]


class DecodeError(ValueError):
    """ A wire payload is structurally malformed: truncated, not valid JSON,
        carrying an unknown kind tag, or holding a field of the wrong type.
        This is always fatal to the single operation that encountered it.
    """


class Kind(msgspec.Struct, frozen=True, tag_field='kind'):
    """ Base class for every member of the value union. The *value*
        attribute of each subclass holds the Python-native payload.
    """


class StringValue(Kind, tag='string'):
    value: str

class DoubleValue(Kind, tag='double'):
    value: Double

class IntValue(Kind, tag='int64'):
    value: Int64

class BoolValue(Kind, tag='bool'):
    value: bool

class StringList(Kind, tag='string_list'):
    value: List[str] = []

class DoubleList(Kind, tag='double_list'):
    value: List[Double] = []

class IntList(Kind, tag='int64_list'):
    value: List[Int64] = []

class BoolList(Kind, tag='bool_list'):
    value: List[bool] = []

class StringMap(Kind, tag='string_map'):
    value: Dict[str, str] = {}

class JsonValue(Kind, tag='json'):
    value: Dict[str, Any] = {}

class BytesValue(Kind, tag='bytes'):
    value: bytes = b''


Value = Union[
    StringValue, DoubleValue, IntValue, BoolValue,
    StringList, DoubleList, IntList, BoolList,
    StringMap, JsonValue, BytesValue,
]

kinds = tuple(cls.__struct_config__.tag for cls in Value.__args__)

_encoder = msgspec.json.Encoder()
_decoder = msgspec.json.Decoder(Optional[Value])


def _check_int(number):
    if number < INT64_MIN or number > INT64_MAX:
        raise OverflowError('integer does not fit in 64 bits: ' + repr(number))
    return number


def _double(number):
    """ Return the wire form of a double: the float itself if it is finite,
        otherwise its :data:`NonFinite` spelling.
    """

    number = float(number)

    if math.isfinite(number):
        return number

    if math.isnan(number):
        return 'nan'

    if number > 0:
        return 'inf'

    return '-inf'


def _native_double(number):

    if isinstance(number, str):
        return float(number)

    return number


def _json_number(number):
    number = float(number)

    # A JSON document follows JSON's own number model, which has no
    # infinity or NaN.

    if math.isfinite(number):
        return number

    raise ValueError('non-finite numbers cannot appear in a JSON document: ' + repr(number))


def of_string(string):
    return StringValue(str(string))


def of_double(number):
    return DoubleValue(_double(number))


def of_int(number):
    return IntValue(_check_int(int(number)))


def of_bool(flag):
    return BoolValue(bool(flag))


def of_string_list(strings):
    return StringList([str(string) for string in strings])


def of_double_list(numbers):
    return DoubleList([_double(number) for number in numbers])


def of_int_list(numbers):
    return IntList([_check_int(int(number)) for number in numbers])


def of_bool_list(flags):
    return BoolList([bool(flag) for flag in flags])


def of_string_map(mapping):

    converted = dict()
    for key, value in mapping.items():
        if isinstance(key, str) and isinstance(value, str):
            converted[key] = value
        else:
            raise TypeError('string maps require string keys and values, not %s: %s' % (repr(key), repr(value)))

    return StringMap(converted)


def of_json(document):
    """ Encode a JSON-like *document*, which must be a dictionary at the top
        level. Every number in the document is widened to a float; object
        keys and array order are preserved.
    """

    if isinstance(document, dict):
        pass
    else:
        raise TypeError('a JSON document must be a dictionary, not ' + type(document).__name__)

    return JsonValue(_json_node(document))


def of_bytes(blob):
    return BytesValue(bytes(blob))


def _json_node(node):

    if node is None or isinstance(node, (bool, str)):
        return node

    if isinstance(node, (int, float)):
        return _json_number(node)

    if isinstance(node, dict):
        converted = dict()
        for key, value in node.items():
            if isinstance(key, str):
                pass
            else:
                raise TypeError('JSON object keys must be strings: ' + repr(key))
            converted[key] = _json_node(value)
        return converted

    if isinstance(node, (list, tuple)):
        return [_json_node(value) for value in node]

    raise TypeError('cannot represent %s in a JSON document' % (type(node).__name__))


def _encode_sequence(sequence):
    """ Choose the list kind for a homogeneous *sequence*. An empty sequence
        has no element type to go by and is encoded as a string list; it
        decodes to an empty list regardless.
    """

    if len(sequence) == 0:
        return StringList([])

    if all(isinstance(element, bool) for element in sequence):
        return of_bool_list(sequence)

    if all(isinstance(element, str) for element in sequence):
        return of_string_list(sequence)

    integers = all(isinstance(element, int) and not isinstance(element, bool) for element in sequence)
    if integers:
        return of_int_list(sequence)

    numbers = all(isinstance(element, (int, float)) and not isinstance(element, bool) for element in sequence)
    if numbers:
        return of_double_list(sequence)

    raise TypeError('lists must be homogeneous strings, floats, integers, or booleans')


def encode(native):
    """ Return the :data:`Value` for the Python-native value *native*. The
        kind is inferred from the Python type; use the ``of_*`` functions
        to force a specific kind. A :class:`Kind` instance is returned as-is,
        and None (no value) is returned as None.
    """

    if native is None:
        return None

    if isinstance(native, Kind):
        return native

    # bool is a subclass of int, check it first.

    if isinstance(native, bool):
        return of_bool(native)

    if isinstance(native, int):
        return of_int(native)

    if isinstance(native, float):
        return of_double(native)

    if isinstance(native, str):
        return of_string(native)

    if isinstance(native, (bytes, bytearray, memoryview)):
        return of_bytes(native)

    if isinstance(native, (list, tuple)):
        return _encode_sequence(native)

    if isinstance(native, dict):
        if all(isinstance(key, str) and isinstance(value, str) for key, value in native.items()):
            return of_string_map(native)
        return of_json(native)

    raise TypeError('no RegistaDB value kind for ' + type(native).__name__)


def decode(value):
    """ Return the Python-native representation of *value*. Lists and maps
        are returned as copies; a missing value decodes to None.
    """

    if value is None:
        return None

    if isinstance(value, Kind):
        pass
    else:
        raise TypeError('expected a RegistaDB value, not ' + type(value).__name__)

    native = value.value

    if isinstance(value, JsonValue):
        return native

    if isinstance(value, DoubleValue):
        return _native_double(native)

    if isinstance(value, DoubleList):
        return [_native_double(number) for number in native]

    if isinstance(native, list):
        return list(native)

    if isinstance(native, dict):
        return dict(native)

    return native


def kind(value):
    """ Return the kind tag of *value*, or None if no kind is set.
    """

    if value is None:
        return None

    return type(value).__struct_config__.tag


def pack(value):
    """ Serialize a single :data:`Value` (or None) to bytes.
    """

    return _encoder.encode(value)


def unpack(raw):
    """ Deserialize bytes produced by :func:`pack`. A malformed payload raises
        :class:`DecodeError`; a payload with no kind set returns None.
    """

    try:
        return _decoder.decode(raw)
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise DecodeError(str(e)) from e


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
