"""
Errors raised by the bencode decoder and encoder.

Decoding errors describe malformed input. Every one of them knows the byte
offset where the problem was found, so a caller reading several bencoded
values back to back can tell which one was broken.

The encoder only has one error: being handed something that is not one of
the four bencode value kinds. That is a bug in the calling code, not bad
input, so it is also a TypeError.
"""


class BencodeError(Exception):
    pass


class DecodeError(BencodeError, ValueError):
    """
    Base class for everything that can go wrong while decoding.

    - position: the offset in the input buffer where decoding failed
    - results: values that were decoded successfully before the failure
      (only filled in by Decoder.decode_all)
    """
    def __init__(self, message: str, position: int = None):
        self.message = message
        self.position = position
        self.results = []
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(message)


# Older name used by callers that only care that parsing failed.
ParseError = DecodeError


class WrongPrefixError(DecodeError):
    """The byte at the cursor does not start any bencode value kind."""


class InvalidDigitError(DecodeError):
    """A non-digit byte inside an integer or a string length."""


class MissingTerminatorError(DecodeError):
    """An integer without its 'e' or a string length without its ':'."""


class LengthExceedsBufferError(DecodeError):
    """A string declares more bytes than the buffer has left."""


class UnexpectedEndOfBufferError(DecodeError):
    """The buffer ended while a value was still being read."""


class NumericParseError(DecodeError):
    """The digits of an integer or length could not be turned into a number."""


class DecoderExhaustedError(DecodeError):
    """decode_one() was called again after the whole buffer was consumed."""


class TrailingDataError(DecodeError):
    """Decoder.decode() found bytes left over after the value."""


class NestingTooDeepError(DecodeError):
    """Lists and dicts are nested deeper than the decoder is willing to follow."""


class UnsupportedValueKindError(BencodeError, TypeError):
    """
    Raised when something other than an integer, byte string, list or dict
    is given to the encoder. Bencode has no floats, booleans or null.
    """
