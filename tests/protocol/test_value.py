import math
import pytest

from registadb.protocol import value


def test_round_trip():

    originals = list()
    originals.append('')
    originals.append('some text')
    originals.append(0)
    originals.append(-1)
    originals.append(value.INT64_MAX)
    originals.append(value.INT64_MIN)
    originals.append(0.0)
    originals.append(-35.5)
    originals.append(True)
    originals.append(False)
    originals.append([])
    originals.append(['a', 'b', ''])
    originals.append([1.5, -2.25])
    originals.append([0, -7, 44])
    originals.append([True, False])
    originals.append({})
    originals.append({'one': '1', 'two': ''})
    originals.append({'nested': {'list': [1.0, 'x', None, False]}, 'number': -3.0})
    originals.append(b'')
    originals.append(b'\x00\xff binary')

    for original in originals:
        encoded = value.encode(original)
        assert value.decode(encoded) == original

        # The same has to hold once the value has been through the wire.

        unpacked = value.unpack(value.pack(encoded))
        assert unpacked == encoded
        assert value.decode(unpacked) == original


def test_kinds():

    assert value.kind(value.encode('a')) == 'string'
    assert value.kind(value.encode(1.0)) == 'double'
    assert value.kind(value.encode(1)) == 'int64'
    assert value.kind(value.encode(True)) == 'bool'
    assert value.kind(value.encode(['a'])) == 'string_list'
    assert value.kind(value.encode([1.0, 2])) == 'double_list'
    assert value.kind(value.encode([1, 2])) == 'int64_list'
    assert value.kind(value.encode([True])) == 'bool_list'
    assert value.kind(value.encode({'a': 'b'})) == 'string_map'
    assert value.kind(value.encode({'a': 1})) == 'json'
    assert value.kind(value.encode(b'a')) == 'bytes'
    assert value.kind(None) == None

    assert len(value.kinds) == 11


def test_absent():
    """ A missing value is not an error, in either direction.
    """

    assert value.encode(None) is None
    assert value.decode(None) is None
    assert value.unpack(b'null') is None
    assert value.pack(None) == b'null'


def test_explicit_kinds():

    assert value.of_double(3) == value.DoubleValue(3.0)
    assert isinstance(value.of_double(3).value, float)
    assert value.of_int('12') == value.IntValue(12)
    assert value.of_string(5) == value.StringValue('5')
    assert value.of_double_list([1, 2]).value == [1.0, 2.0]
    assert value.of_int_list([]).value == []
    assert value.of_bool_list([1, 0]).value == [True, False]

    # A Kind passed to encode() is used as-is.

    explicit = value.of_double_list([])
    assert value.encode(explicit) is explicit
    assert value.decode(explicit) == []


def test_non_finite():

    for number in (math.inf, -math.inf):
        encoded = value.encode(number)
        assert value.decode(encoded) == number
        assert value.decode(value.unpack(value.pack(encoded))) == number

    encoded = value.unpack(value.pack(value.encode(math.nan)))
    assert value.kind(encoded) == 'double'
    assert math.isnan(value.decode(encoded))

    numbers = [1.5, math.inf, -math.inf, 0.0]
    encoded = value.unpack(value.pack(value.encode(numbers)))
    assert value.kind(encoded) == 'double_list'
    assert value.decode(encoded) == numbers

    decoded = value.decode(value.of_double_list([math.nan]))
    assert math.isnan(decoded[0])

    # Only the three spellings of a non-finite number are valid strings.

    with pytest.raises(value.DecodeError):
        value.unpack(b'{"kind": "double", "value": "infinity"}')


def test_json_numbers():
    """ Every number inside a JSON document is a double.
    """

    document = {'count': 3, 'items': [1, 2.5], 'flag': True}
    decoded = value.decode(value.unpack(value.pack(value.encode(document))))

    assert decoded == {'count': 3.0, 'items': [1.0, 2.5], 'flag': True}
    assert isinstance(decoded['count'], float)
    assert decoded['flag'] is True


def test_bad_values():

    with pytest.raises(OverflowError):
        value.encode(value.INT64_MAX + 1)

    with pytest.raises(OverflowError):
        value.of_int_list([value.INT64_MIN - 1])

    with pytest.raises(ValueError):
        value.encode({'ratio': math.inf})

    with pytest.raises(TypeError):
        value.encode(['mixed', 1])

    with pytest.raises(TypeError):
        value.encode({1: 'one'})

    with pytest.raises(TypeError):
        value.of_string_map({'a': 1})

    with pytest.raises(TypeError):
        value.of_json(['not', 'a', 'dict'])

    with pytest.raises(TypeError):
        value.encode(object())

    with pytest.raises(TypeError):
        value.decode('not a value')


def test_decode_copies():

    original = ['a', 'b']
    encoded = value.encode(original)

    decoded = value.decode(encoded)
    decoded.append('c')

    assert value.decode(encoded) == original


def test_malformed():

    bad_payloads = list()
    bad_payloads.append(b'')
    bad_payloads.append(b'{"kind": "string", "value": "trunc')
    bad_payloads.append(b'{"kind": "complex", "value": 1}')
    bad_payloads.append(b'{"kind": "int64", "value": "one"}')
    bad_payloads.append(b'{"kind": "int64", "value": 9223372036854775808}')
    bad_payloads.append(b'{"value": "no kind"}')

    for payload in bad_payloads:
        with pytest.raises(value.DecodeError):
            value.unpack(payload)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
