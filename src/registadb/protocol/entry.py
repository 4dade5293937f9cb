""" The :class:`Entry` is the identified, optionally annotated record that
    travels on either lane. Entries are immutable once built; use
    :class:`EntryBuilder` or :func:`build` to construct them.
"""

from __future__ import annotations

from typing import Annotated, Dict, Mapping, Optional

import msgspec

from .value import Value, decode, encode


UINT64_MAX = 2 ** 64 - 1

# msgspec only checks bounds that fit in an int64; the upper bound is
# enforced by check_id() in each structure's __post_init__.

UInt64 = Annotated[int, msgspec.Meta(ge=0)]


def check_id(id, name='id'):
    if id > UINT64_MAX:
        raise ValueError(f"{name} does not fit in 64 bits: {id}")


class Entry(msgspec.Struct, frozen=True, omit_defaults=True):
    """ An *id* of zero means the server must allocate one. *metadata* is
        None rather than an empty dictionary when no metadata was supplied,
        so that the field is omitted from the wire entirely. *created_at*
        is assigned by the server.
    """

    id: UInt64 = 0
    metadata: Optional[Dict[str, str]] = None
    data: Optional[Value] = None
    created_at: Optional[float] = None

    def __post_init__(self):
        check_id(self.id)

    @property
    def value(self):
        """ The Python-native interpretation of :attr:`data`.
        """
        return decode(self.data)


class EntryBuilder:
    """ Fluent construction of :class:`Entry` instances. The builder has no
        side effects; :func:`build` can be called repeatedly.
    """

    def __init__(self):
        self._id: int = 0
        self._metadata: Dict[str, str] = {}
        self._data: Optional[Value] = None
        self._data_set = False

    def id(self, id: int) -> EntryBuilder:
        self._id = int(id)
        return self

    def metadata(self, metadata: Optional[Mapping[str, str]]) -> EntryBuilder:
        self._metadata = {}
        if metadata:
            for key, value in metadata.items():
                if not isinstance(key, str) or not isinstance(value, str):
                    raise TypeError(f"metadata must map strings to strings: {key!r}: {value!r}")
                self._metadata[key] = value
        return self

    def value(self, value) -> EntryBuilder:
        if value is None:
            raise ValueError("entry value cannot be None")
        self._data = encode(value)
        self._data_set = True
        return self

    def build(self) -> Entry:

        if not self._data_set:
            raise ValueError("entry value not specified")

        if self._id < 0 or self._id > UINT64_MAX:
            raise ValueError(f"entry id out of range: {self._id}")

        # An empty mapping is never put on the wire.
        metadata = dict(self._metadata) if self._metadata else None

        return Entry(id=self._id, metadata=metadata, data=self._data)


def build(value, id: int = 0, metadata: Optional[Mapping[str, str]] = None) -> Entry:
    """ Convenience wrapper around :class:`EntryBuilder`.
    """

    return (
        EntryBuilder()
        .id(id)
        .metadata(metadata)
        .value(value)
        .build()
    )


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
