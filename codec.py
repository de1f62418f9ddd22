from typing import Union

import rlp
from eth_hash.auto import keccak
from eth_utils import is_hex_address, to_canonical_address
from rlp.exceptions import DecodingError, DeserializationError, SerializationError
from rlp.exceptions import EncodingError as RLPEncodingError
from rlp.sedes import big_endian_int

from errors import EncodingError, RangeError

# --- Module-level Constants ---
ADDRESS_LENGTH = 20  # An Ethereum address is always 20 bytes, zero bytes included.
STORAGE_KEY_LENGTH = 32  # Access list storage keys are full 32-byte words.
UINT256_MAX = 2 ** 256 - 1  # Execution clients decode every quantity as a uint256.

RLPItem = Union[bytes, bytearray, list, tuple]


def encode_quantity(value: int) -> bytes:
    """
    Encodes a non-negative integer as a canonical RLP quantity: big-endian with
    every leading zero byte stripped. Zero encodes as the empty byte string, never b'\\x00'.

    Args:
        value (int): The integer to encode (chain id, nonce, fee, gas limit, value...).

    Returns:
        bytes: The minimal big-endian representation.

    Raises:
        RangeError: If `value` is negative, wider than 256 bits or not an integer.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise RangeError(f'quantity must be an integer, got {type(value).__name__}')
    if value > UINT256_MAX:
        raise RangeError(f'quantity exceeds 256 bits: {value:#x}')
    try:
        return big_endian_int.serialize(value)
    except SerializationError as exc:
        raise RangeError(f'not an encodable quantity: {value!r}') from exc


def decode_quantity(data: bytes) -> int:
    """
    Decodes a canonical quantity back to an integer. A leading zero byte is rejected
    because it would not survive a round trip.
    """
    try:
        return big_endian_int.deserialize(data)
    except DeserializationError as exc:
        raise RangeError(f'non-canonical quantity: 0x{bytes(data).hex()}') from exc


def to_address(addr: Union[bytes, str]) -> bytes:
    """
    Normalizes an address to its 20 raw bytes. Unlike quantities, addresses keep their
    leading zero bytes.

    Args:
        addr (Union[bytes, str]): 20 raw bytes or a hex string (with or without '0x', any checksum casing).

    Returns:
        bytes: The 20-byte address.

    Raises:
        RangeError: If the input is not exactly 20 bytes / 40 hex digits.
    """
    if isinstance(addr, (bytes, bytearray)):
        if len(addr) != ADDRESS_LENGTH:
            raise RangeError(f'address must be {ADDRESS_LENGTH} bytes, got {len(addr)}')
        return bytes(addr)
    if isinstance(addr, str) and is_hex_address(addr):
        return to_canonical_address(addr)
    raise RangeError(f'not a 20-byte address: {addr!r}')


def to_storage_key(key: bytes) -> bytes:
    if not isinstance(key, (bytes, bytearray)) or len(key) != STORAGE_KEY_LENGTH:
        raise RangeError(f'storage key must be {STORAGE_KEY_LENGTH} bytes: {key!r}')
    return bytes(key)


def _check_item(item, path: str = 'item'):
    # Scalars must go through encode_quantity first, rlp would silently infer a sedes for them.
    if isinstance(item, (bytes, bytearray)):
        return
    if isinstance(item, (list, tuple)):
        for i, sub in enumerate(item):
            _check_item(sub, f'{path}[{i}]')
        return
    raise EncodingError(f'{path} has type {type(item).__name__}, expected bytes or a list of items')


def rlp_encode(item: RLPItem) -> bytes:
    """
    RLP-encodes a byte string or an arbitrarily nested list of byte strings.

    Args:
        item (RLPItem): bytes, or a list/tuple whose leaves are all bytes.

    Returns:
        bytes: The RLP encoding.

    Raises:
        EncodingError: If any leaf is not a byte string (ints, str, None...).
    """
    _check_item(item)
    try:
        return rlp.encode(item)
    except RLPEncodingError as exc:
        raise EncodingError(str(exc)) from exc


def rlp_decode(data: bytes):
    """Decodes RLP bytes into nested lists of byte strings."""
    try:
        return rlp.decode(data)
    except DecodingError as exc:
        raise EncodingError(f'invalid RLP: {exc}') from exc


def keccak256(data: bytes) -> bytes:
    return keccak(data)
