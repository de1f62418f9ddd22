class Eip7702Error(Exception):
    """
    Base class for every failure raised while building, signing or broadcasting
    a set code transaction.

    Attributes:
        retryable (bool): True when repeating the same call may succeed. Encoding and
                          signing failures are caller bugs and never are.
    """
    retryable = False


class RangeError(Eip7702Error, ValueError):
    """A negative, non-integer or malformed quantity or address was supplied."""


class EncodingError(Eip7702Error):
    """An item that RLP cannot represent reached the encoder, or decoding failed."""


class SigningError(Eip7702Error):
    """The ECDSA signing primitive failed or returned an unusable signature."""


class TransportError(Eip7702Error):
    """
    The node could not be reached or rejected a request. Owned by the client, the
    caller decides whether to rebuild from fresh chain state and try again.
    """
    retryable = True
