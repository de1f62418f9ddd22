import json
from typing import Callable, Optional

from eth_account import Account
from eth_keys.exceptions import ValidationError
from web3 import Web3

from codec import to_address
from errors import SigningError
from model import Parity, Signature

DIGEST_LENGTH = 32  # Only raw keccak digests are signed, never arbitrary messages.


def sign_hash(hashed: bytes, priv_key) -> Signature:
    """
    Signs a 32-byte digest with a secp256k1 private key.

    Signing is deterministic (RFC 6979) and s is normalized to the lower half of the curve
    order, so the same digest and key always give the same signature.

    Args:
        hashed (bytes): The digest to sign.
        priv_key: The private key as 32 bytes or a '0x' hex string.

    Returns:
        Signature: The (y_parity, r, s) triple with the parity as a plain 0/1 bit.

    Raises:
        SigningError: If the digest is not 32 bytes or the key is unusable.
    """
    if not isinstance(hashed, (bytes, bytearray)) or len(hashed) != DIGEST_LENGTH:
        raise SigningError(f'digest must be {DIGEST_LENGTH} bytes')
    try:
        # unsafe_sign_hash signs the digest as given, without the EIP-191 message prefix.
        signed = Account.unsafe_sign_hash(bytes(hashed), priv_key)
    except (ValueError, TypeError, ValidationError) as exc:
        raise SigningError(f'could not sign digest: {exc}') from exc
    return Signature(Parity.from_v(signed.v), signed.r, signed.s)


class Keys:
    """
    Holds the one account that signs both the authorization and the transaction.
    The private key is only kept in memory and never logged.
    """

    def __init__(self, priv_key: str, addr: Optional[str] = None):
        """
        Initializes a Keys object.

        Args:
            priv_key (str): The hexadecimal private key string (e.g., '0x...').
            addr (str, optional): The expected address. Derived from the key when omitted;
                                  when given it must match the key.

        Raises:
            SigningError: If the key is invalid or does not belong to `addr`.
        """
        try:
            account = Account.from_key(priv_key)
        except (ValueError, TypeError, ValidationError) as exc:
            raise SigningError('invalid private key') from exc
        if addr is not None and to_address(addr) != to_address(account.address):
            raise SigningError(f'private key does not belong to {addr}')
        self.address = Web3.to_checksum_address(account.address)
        self.priv_key_bytes = bytes(account.key)

    @property
    def address_bytes(self) -> bytes:
        return to_address(self.address)

    def sign_hash(self, hashed: bytes) -> Signature:
        return sign_hash(hashed, self.priv_key_bytes)

    @staticmethod
    def from_geth_file(file_name: str, pswd: str = '') -> Callable[[Web3], 'Keys']:
        """
        Returns a supplier that, given a Web3 instance, decrypts a Geth-style keystore file.
        The supplier form defers decryption until the client exists.

        Args:
            file_name (str): The full path to the keystore file.
            pswd (str, optional): The keystore password. Defaults to an empty string.
        """
        return lambda w3: Keys.__get_keys_from_file(w3.eth.account.decrypt, file_name, pswd)

    @staticmethod
    def from_private_key(priv_key: str) -> Callable[[Web3], 'Keys']:
        return lambda _: Keys(priv_key)

    @staticmethod
    def __get_keys_from_file(decrypt, file_name: str, pswd: str = '') -> 'Keys':
        try:
            with open(file_name) as keyfile:
                encrypted_key = json.load(keyfile)
            private_key = decrypt(encrypted_key, pswd)
        except (OSError, ValueError) as exc:
            raise SigningError(f'could not decrypt keystore {file_name}') from exc
        # Keystore files record the address without the '0x' prefix.
        addr = encrypted_key.get('address')
        return Keys('0x' + bytes(private_key).hex(), '0x' + addr if addr else None)
