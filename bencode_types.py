"""
The bencode value tree.

Bencode only knows four kinds of values, so the tree is made of four classes:
- Integer: a signed 64-bit whole number, encoded as i<number>e, for eg, i42e
- String: raw bytes (not necessarily text), encoded as <length>:<bytes>, for eg, 4:spam
- List: an ordered sequence of values, encoded as l<values>e, for eg, l4:spami42ee
- Dict: byte string keys mapped to values, encoded as d<key><value>...e,
  for eg, d3:bar4:spam3:fooi42ee

All four share the BencodeValue base class and each one knows how to encode
itself, so the encoder never has to guess what kind of object it was given.
Values are immutable once built, a decoded tree can be handed around freely.
"""
from collections.abc import Mapping, Sequence
import logging

from bencode_errors import UnsupportedValueKindError

# Bencode integers are signed 64-bit numbers, Python ints are unbounded.
INTEGER_MIN = -2**63
INTEGER_MAX = 2**63 - 1

INTEGER_PREFIX = b'i'
LIST_PREFIX = b'l'
DICT_PREFIX = b'd'
END = b'e'
LENGTH_SEPARATOR = b':'


class BencodeValue:
    """
    Base class of the four bencode value kinds.

    Subclasses implement:
    - write(out): append the canonical encoding to a bytearray
    - to_python(): convert to plain int / bytes / list / dict
    - _payload(): what two values of the same kind compare by
    """
    __slots__ = ()

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._payload() == other._payload()

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash((type(self).__name__, self._payload()))

    def __reduce__(self):
        # __setattr__ is blocked, so copy and pickle rebuild through __init__
        return (type(self), (self._payload(),))

    def _payload(self):
        raise NotImplementedError

    def write(self, out: bytearray):
        raise NotImplementedError

    def encode(self) -> bytes:
        """
        Returns the canonical bencoding of this value.
        """
        out = bytearray()
        self.write(out)
        return bytes(out)

    def to_python(self):
        raise NotImplementedError


class Integer(BencodeValue):
    __slots__ = ('value',)

    def __init__(self, value: int):
        # bool is a subclass of int, but bencode has no booleans
        if isinstance(value, bool) or not isinstance(value, int):
            raise UnsupportedValueKindError(
                f"Integer requires an int, got {type(value).__name__}")
        if not INTEGER_MIN <= value <= INTEGER_MAX:
            raise ValueError(f"Integer {value} does not fit in 64 bits")
        # int subclasses (IntEnum and the like) may render differently in str()
        object.__setattr__(self, 'value', int(value))

    def _payload(self):
        return self.value

    def write(self, out: bytearray):
        out += INTEGER_PREFIX
        out += str(self.value).encode('ascii')
        out += END

    def to_python(self) -> int:
        return self.value

    def __int__(self):
        return self.value

    def __repr__(self):
        return f"Integer({self.value})"


class String(BencodeValue):
    """
    A bencode byte string.

    The value is always stored as bytes. A str is accepted for convenience and
    stored UTF-8 encoded, use text() to get it back.
    """
    __slots__ = ('value',)

    def __init__(self, value):
        if isinstance(value, str):
            value = value.encode('utf-8')
        elif isinstance(value, (bytes, bytearray, memoryview)):
            value = bytes(value)
        else:
            raise UnsupportedValueKindError(
                f"String requires bytes, got {type(value).__name__}")
        object.__setattr__(self, 'value', value)

    def _payload(self):
        return self.value

    def write(self, out: bytearray):
        out += str(len(self.value)).encode('ascii')
        out += LENGTH_SEPARATOR
        out += self.value

    def to_python(self) -> bytes:
        return self.value

    def text(self, encoding: str = 'utf-8', errors: str = 'strict') -> str:
        return self.value.decode(encoding, errors)

    def __len__(self):
        return len(self.value)

    def __bytes__(self):
        return self.value

    def __repr__(self):
        return f"String({self.value!r})"


class List(BencodeValue, Sequence):
    __slots__ = ('_items',)

    def __init__(self, items=()):
        items = tuple(items)
        for item in items:
            _require_value(item)
        object.__setattr__(self, '_items', items)

    def _payload(self):
        return self._items

    def __getitem__(self, index):
        if isinstance(index, slice):
            return List(self._items[index])
        return self._items[index]

    def __len__(self):
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def write(self, out: bytearray):
        out += LIST_PREFIX
        for item in self._items:
            item.write(out)
        out += END

    def to_python(self) -> list:
        return [item.to_python() for item in self._items]

    def __repr__(self):
        return f"List({list(self._items)!r})"


class Dict(BencodeValue, Mapping):
    """
    A bencode dictionary.

    Keys are raw bytes. String and str keys are turned into bytes, so
    d[b'info'], d['info'] and d[String(b'info')] all find the same entry.

    The order keys were inserted in does not matter: bencode requires the keys
    to be sorted by their raw bytes when encoding, and write() always sorts.
    """
    __slots__ = ('_items',)

    def __init__(self, mapping=()):
        items = {}
        pairs = mapping.items() if isinstance(mapping, Mapping) else mapping
        for key, value in pairs:
            key = _key_bytes(key)
            _require_value(value)
            if key in items:
                logging.debug(f"Duplicate dict key {key!r}, keeping the last value")
            items[key] = value
        object.__setattr__(self, '_items', items)

    # dicts can hold unhashable values, so they are not hashable themselves
    __hash__ = None

    def _payload(self):
        return self._items

    def __getitem__(self, key):
        try:
            key = _key_bytes(key)
        except UnsupportedValueKindError:
            raise KeyError(key) from None
        return self._items[key]

    def __len__(self):
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def sorted_items(self):
        """
        Returns the (key, value) pairs ordered by the raw bytes of the keys.
        This is the order they appear in on the wire.
        """
        return sorted(self._items.items(), key=lambda item: item[0])

    def write(self, out: bytearray):
        out += DICT_PREFIX
        for key, value in self.sorted_items():
            out += str(len(key)).encode('ascii')
            out += LENGTH_SEPARATOR
            out += key
            value.write(out)
        out += END

    def to_python(self) -> dict:
        return {key: value.to_python() for key, value in self._items.items()}

    def __repr__(self):
        return f"Dict({self._items!r})"


def _require_value(value):
    if not isinstance(value, BencodeValue):
        raise UnsupportedValueKindError(
            f"Cannot bencode object of type {type(value).__name__}")


def _key_bytes(key) -> bytes:
    if isinstance(key, String):
        return key.value
    if isinstance(key, str):
        return key.encode('utf-8')
    if isinstance(key, (bytes, bytearray, memoryview)):
        return bytes(key)
    raise UnsupportedValueKindError(
        f"Dict keys must be byte strings, got {type(key).__name__}")


def from_python(obj) -> BencodeValue:
    """
    Builds a value tree out of plain Python objects.

    - int -> Integer
    - bytes, bytearray, memoryview, str -> String (str is UTF-8 encoded)
    - list, tuple -> List
    - dict -> Dict (keys must be bytes or str)

    Anything else, including bool, float and None, raises
    UnsupportedValueKindError. Objects that already are bencode values are
    returned unchanged.
    """
    if isinstance(obj, BencodeValue):
        return obj
    if isinstance(obj, bool):
        raise UnsupportedValueKindError("Cannot bencode object of type bool")
    if isinstance(obj, int):
        return Integer(obj)
    if isinstance(obj, (bytes, bytearray, memoryview, str)):
        return String(obj)
    if isinstance(obj, (list, tuple)):
        return List(from_python(item) for item in obj)
    if isinstance(obj, dict):
        return Dict((key, from_python(value)) for key, value in obj.items())
    raise UnsupportedValueKindError(
        f"Cannot bencode object of type {type(obj).__name__}")
