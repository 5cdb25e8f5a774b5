"""
This module provides classes for encoding and decoding bencoded data.

What is Bencoding?
Bencoding is the encoding used by BitTorrent for storing and transmitting data.

It supports four types of data:
1. Integers: Represented as 'i' followed by the integer value and 'e' to end.
    - i.e i<integer_value>e, for eg, i42e represents the integer 42.
2. Byte Strings: Represented as the length of the string followed by ':' and the string itself.
    - i.e <length>:<string>, for eg, 4:spam represents the string "spam".
3. Lists: Represented as 'l' followed by the bencoded elements and 'e' to end.
    - i.e l<element1><element2>e, for eg, l4:spam4:eggse represents the list ["spam", "eggs"].
4. Dictionaries: Represented as 'd' followed by the bencoded key-value pairs and 'e' to end.
    - i.e d<key1><value1><key2><value2>e, for eg, d3:bar4:spam3:cati42ee represents
    the dictionary {'bar': 'spam', 'cat': 42}. Keys are always sorted when encoding.

This module provides two classes: Decoder and Encoder.
- Decoder: Takes a bencoded byte string and decodes it into a tree of values
  (see bencode_types).
- Encoder: Takes values and appends their bencoding to an output buffer.

For one-off use there are also:
- encode_to_bytes(value): bencode a single value
- bdecode(data) / bencode(obj): the same thing with plain Python objects
  (int, bytes, list, dict) instead of value classes.

reference: https://wiki.theory.org/BitTorrentSpecification#Bencoding
"""
import logging

from bencode_errors import (
    BencodeError,
    DecodeError,
    DecoderExhaustedError,
    InvalidDigitError,
    LengthExceedsBufferError,
    MissingTerminatorError,
    NestingTooDeepError,
    NumericParseError,
    ParseError,
    TrailingDataError,
    UnexpectedEndOfBufferError,
    UnsupportedValueKindError,
    WrongPrefixError,
)
from bencode_types import (
    DICT_PREFIX,
    END,
    INTEGER_MAX,
    INTEGER_MIN,
    INTEGER_PREFIX,
    LENGTH_SEPARATOR,
    LIST_PREFIX,
    BencodeValue,
    Dict,
    Integer,
    List,
    String,
    from_python,
)

__all__ = [
    'Decoder', 'Encoder', 'encode_to_bytes', 'bdecode', 'bencode',
    'BencodeValue', 'Integer', 'String', 'List', 'Dict', 'from_python',
    'BencodeError', 'DecodeError', 'ParseError', 'WrongPrefixError',
    'InvalidDigitError', 'MissingTerminatorError', 'LengthExceedsBufferError',
    'UnexpectedEndOfBufferError', 'NumericParseError', 'DecoderExhaustedError',
    'TrailingDataError', 'NestingTooDeepError', 'UnsupportedValueKindError',
]

# Lists and dicts nested deeper than this are refused. The decoder is
# recursive and Python's call stack is limited.
MAX_NESTING_DEPTH = 256


class Decoder:
    """
    This class is used to decode bencoded data.

    The decoder walks over the input with a cursor. Every call to decode_one()
    reads exactly one value and leaves the cursor right after it, so several
    bencoded values written back to back can be read one by one:

        decoder = Decoder(b'i23e4:test')
        decoder.decode_one()  # Integer(23)
        decoder.decode_one()  # String(b'test')

    Once a value ends exactly at the end of the input the decoder is exhausted,
    and calling decode_one() again is an error.

    A decoder is not thread safe, the cursor is shared state.
    """
    def __init__(self, data: bytes):
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"Decoder expects bytes, got {type(data).__name__}")
        self.data = bytes(data)
        self.exhausted = False
        self.last = 0 # cursor position after the last value decoded successfully
        self._pos = 0
        self._depth = 0

    def position(self) -> int:
        """
        Returns the current cursor offset in the input.
        """
        return self._pos

    def decode_one(self) -> BencodeValue:
        """
        Decodes one value starting at the cursor and moves the cursor past it.

        If the value is malformed a DecodeError is raised and the cursor is
        left where it was before the call.
        """
        if self.exhausted:
            raise DecoderExhaustedError("This decoder's input is already consumed", self._pos)

        start = self._pos
        self._depth = 0
        try:
            value = self._next_value()
        except DecodeError as e:
            logging.debug(f"Failed to decode value starting at {start}: {e}")
            self._pos = start
            raise
        except RecursionError:
            logging.debug(f"Ran out of stack decoding value starting at {start}")
            self._pos = start
            raise NestingTooDeepError("Value is nested too deeply to decode", start) from None

        self.last = self._pos
        if self._pos == len(self.data):
            logging.debug(f"Decoder consumed all {len(self.data)} bytes")
            self.exhausted = True
        return value

    def decode_all(self) -> list:
        """
        Decodes values until the end of the input and returns them in order.

        When a value is malformed the error is raised right away. The values
        decoded before it are not lost, they are attached to the error as
        `results`.
        """
        results = []
        while self._pos < len(self.data):
            try:
                results.append(self.decode_one())
            except DecodeError as e:
                e.results = results
                raise
        return results

    def decode(self) -> BencodeValue:
        """
        Decodes the input as a single value, for eg, a whole .torrent file
        or a tracker response. Extra bytes after the value are an error.
        """
        start, last = self._pos, self.last
        value = self.decode_one()
        if self._pos != len(self.data):
            end = self._pos
            self._pos, self.last = start, last
            raise TrailingDataError(
                f"{len(self.data) - end} bytes of extra data after the value", end)
        return value

    def _peek(self) -> bytes:
        """
        Returns the byte at the cursor without consuming it.
        """
        if self._pos >= len(self.data):
            raise UnexpectedEndOfBufferError("Unexpected end of data", self._pos)
        return self.data[self._pos:self._pos + 1]

    def _enter_container(self):
        """
        Called when a list or dict starts, refuses to go past MAX_NESTING_DEPTH.
        """
        self._depth += 1
        if self._depth > MAX_NESTING_DEPTH:
            raise NestingTooDeepError(
                f"Lists and dicts nested more than {MAX_NESTING_DEPTH} levels deep", self._pos)

    def _next_value(self) -> BencodeValue:
        token = self._peek()
        if token == INTEGER_PREFIX:
            return self._next_integer()
        elif token.isdigit():
            return self._next_string()
        elif token == LIST_PREFIX:
            return self._next_list()
        elif token == DICT_PREFIX:
            return self._next_dict()
        raise WrongPrefixError(f"Unrecognized type prefix {token!r}", self._pos)

    def _next_integer(self) -> Integer:
        """
        i<digits>e, the digits may start with a single '-'.
        """
        start = self._pos + 1
        idx = start
        while True:
            if idx >= len(self.data):
                raise MissingTerminatorError("No ending 'e' found for integer", idx)
            token = self.data[idx:idx + 1]
            if token == END:
                break
            if not token.isdigit() and not (token == b'-' and idx == start):
                raise InvalidDigitError(f"Invalid byte {token!r} in integer", idx)
            idx += 1

        digits = self.data[start:idx]
        try:
            value = int(digits)
        except ValueError:
            raise NumericParseError(f"Invalid integer {digits!r}", start) from None

        if value == 0 and digits.startswith(b'-'):
            raise NumericParseError("Negative zero is not a valid integer", start)
        if not INTEGER_MIN <= value <= INTEGER_MAX:
            raise NumericParseError(f"Integer {digits.decode('ascii')} does not fit in 64 bits", start)

        self._pos = idx + 1
        return Integer(value)

    def _next_string(self) -> String:
        """
        <length>:<bytes>, exactly `length` raw bytes follow the ':'.
        """
        start = self._pos
        token = self._peek()
        if not token.isdigit():
            raise WrongPrefixError(f"Expected a string length, got {token!r}", start)

        idx = start
        while True:
            if idx >= len(self.data):
                raise MissingTerminatorError("No ':' found after string length", idx)
            token = self.data[idx:idx + 1]
            if token == LENGTH_SEPARATOR:
                break
            if not token.isdigit():
                raise InvalidDigitError(f"Invalid byte {token!r} in string length", idx)
            idx += 1

        try:
            length = int(self.data[start:idx])
        except ValueError:
            raise NumericParseError("Couldn't parse string length", start) from None

        begin = idx + 1
        available = len(self.data) - begin
        if length > available:
            raise LengthExceedsBufferError(
                f"Declared length {length} exceeds the {available} bytes available", start)

        self._pos = begin + length
        return String(self.data[begin:self._pos])

    def _next_list(self) -> List:
        self._enter_container()
        self._pos += 1 # skip 'l'

        items = []
        while self._peek() != END:
            items.append(self._next_value())
        self._pos += 1
        self._depth -= 1
        return List(items)

    def _next_dict(self) -> Dict:
        """
        Bencoded dicts should have their keys sorted, but the order is not
        checked here. If a key shows up twice the last value wins.
        """
        self._enter_container()
        self._pos += 1 # skip 'd'

        items = {}
        while self._peek() != END:
            key_pos = self._pos
            key = self._next_string().value
            value = self._next_value()
            if key in items:
                logging.debug(f"Duplicate dict key {key!r} at position {key_pos}, keeping the last value")
            items[key] = value
        self._pos += 1
        self._depth -= 1
        return Dict(items)


class Encoder:
    """
    This class is used to encode values into bencoded format.

    Each call to encode() appends to the same output buffer, so several
    values can be written one after another (no separator is needed, every
    bencoded value knows where it ends):

        encoder = Encoder()
        encoder.encode(Integer(23))
        encoder.encode(String(b'test'))
        encoder.data  # b'i23e4:test'

    Dict keys are always written in sorted order, so the same value always
    gives the same bytes. This matters for things like the info hash of a
    torrent, which is the SHA1 of the bencoded info dict.
    """
    def __init__(self):
        self._buffer = bytearray()

    def encode(self, value: BencodeValue):
        """
        Appends the bencoding of `value` to the output buffer.
        Only Integer, String, List and Dict can be encoded.
        """
        if not isinstance(value, BencodeValue):
            raise UnsupportedValueKindError(
                f"Cannot bencode object of type {type(value).__name__}")
        value.write(self._buffer)

    @property
    def data(self) -> bytes:
        """
        Everything encoded so far.
        """
        return bytes(self._buffer)

    def reset(self):
        self._buffer.clear()

    def __len__(self):
        return len(self._buffer)


def encode_to_bytes(value: BencodeValue) -> bytes:
    encoder = Encoder()
    encoder.encode(value)
    return encoder.data


def bdecode(data: bytes):
    """
    Decodes a single bencoded value into plain Python objects:
    int, bytes, list and dict (with bytes keys).
    """
    return Decoder(data).decode().to_python()


def bencode(obj) -> bytes:
    """
    Bencodes plain Python objects (int, bytes, str, list, tuple, dict).
    """
    return encode_to_bytes(from_python(obj))
