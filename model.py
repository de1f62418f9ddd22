from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Iterable, Sequence, Union

from eth_keys import keys as eth_keys
from eth_keys.exceptions import BadSignature, ValidationError

from codec import (encode_quantity, keccak256, rlp_encode, to_address,
                   to_storage_key)
from errors import EncodingError, SigningError

# --- Module-level Constants ---
SET_CODE_TX_TYPE = b'\x04'  # EIP-2718 type byte of the EIP-7702 set code transaction, prefixes the final serialization.
SET_CODE_AUTH_MAGIC = b'\x05'  # Domain separator of the authorization pre-image, never broadcast on its own.
V_OFFSET = 27  # Legacy offset some signers still add to the recovery bit.


class Parity(IntEnum):
    """
    The recovery bit of an ECDSA signature. RLP has no bit type, so the value is
    serialized like any other quantity: EVEN is the empty string, ODD is b'\\x01'.
    """
    EVEN = 0
    ODD = 1

    @classmethod
    def from_v(cls, v: int) -> 'Parity':
        """
        Maps a raw recovery id (0/1) or a legacy v (27/28) to a parity.

        Raises:
            SigningError: For any other value, e.g. an EIP-155 v that already embeds a chain id.
        """
        if v in (0, 1):
            return cls(v)
        if v in (V_OFFSET, V_OFFSET + 1):
            return cls(v - V_OFFSET)
        raise SigningError(f'unexpected signature v value: {v}')

    def encode(self) -> bytes:
        return encode_quantity(int(self))


@dataclass(frozen=True)
class Signature:
    """
    An ECDSA secp256k1 signature over one specific digest.

    r and s are kept as integers and serialized as quantities (no leading zero bytes),
    which is what execution clients decode them as.
    """
    y_parity: Parity
    r: int
    s: int

    @property
    def r_bytes(self) -> bytes:
        return self.r.to_bytes(32, 'big')

    @property
    def s_bytes(self) -> bytes:
        return self.s.to_bytes(32, 'big')

    def encode(self) -> list:
        """
        Encodes the signature into the three trailing RLP fields [y_parity, r, s].
        """
        return [self.y_parity.encode(), encode_quantity(self.r), encode_quantity(self.s)]

    def recover(self, msg_hash: bytes) -> bytes:
        """
        Recovers the 20-byte address whose key produced this signature over `msg_hash`.

        Raises:
            SigningError: If the signature components are out of range or do not recover.
        """
        try:
            sig = eth_keys.Signature(vrs=(int(self.y_parity), self.r, self.s))
            return sig.recover_public_key_from_msg_hash(msg_hash).to_canonical_address()
        except (BadSignature, ValidationError) as exc:
            raise SigningError(f'signature does not recover: {exc}') from exc


SigningFunction = Callable[[bytes], Signature]


class BaseTxParams:
    """
    Represents the base parameters for an Ethereum transaction, compatible with
    EIP-1559 (London upgrade) transaction types which include gas tip and fee caps.
    """

    def __init__(self, chain_id: int, nonce: int, gas: int, gas_tip_cap: int, gas_fee_cap: int,
                 to: Union[bytes, str] = bytes(20), value: int = 0, data: bytes = b''):
        """
        Initializes the base transaction parameters.

        Args:
            chain_id (int): The EIP-155 chain ID of the network (e.g., 7072151312 for pectra devnet 6).
            nonce (int): The transaction count of the sender, used to prevent replay attacks.
            gas (int): The maximum amount of gas the transaction is allowed to consume.
            gas_tip_cap (int): The maximum priority fee (tip) per gas unit paid to the validator.
            gas_fee_cap (int): The maximum total fee per gas unit the sender is willing to pay (base fee + tip).
            to (Union[bytes, str]): The recipient's address. A set code transaction cannot create
                                    contracts, so the activation passes the signer's own address.
            value (int): The amount of Ether (in Wei) sent with the transaction. Defaults to 0.
            data (bytes): The call data, e.g. a 4-byte selector. Defaults to empty bytes.
        """
        self.chain_id = chain_id
        self.nonce = nonce
        self.gas = gas
        self.gas_tip = gas_tip_cap  # maxPriorityFeePerGas
        self.gas_fee = gas_fee_cap  # maxFeePerGas
        self.to = to
        self.value = value
        self.data = data

    def encode(self) -> list:
        """
        Encodes the parameters into the first eight RLP fields of a typed EIP-1559 style payload.

        Raises:
            RangeError: If a numeric field is negative or the destination is not 20 bytes.
        """
        if not isinstance(self.data, (bytes, bytearray)):
            raise EncodingError(f'data must be bytes, got {type(self.data).__name__}')
        return [encode_quantity(self.chain_id), encode_quantity(self.nonce), encode_quantity(self.gas_tip),
                encode_quantity(self.gas_fee), encode_quantity(self.gas), to_address(self.to),
                encode_quantity(self.value), bytes(self.data)]


class AccessTuple:
    """
    Represents an access tuple as defined in EIP-2930. It names an address and the
    storage keys a transaction is expected to touch.
    """

    def __init__(self, addr: Union[bytes, str], storage_keys: Sequence[bytes] = ()):
        self.addr = addr
        self.storage_keys = list(storage_keys)

    def encode(self) -> list:
        return [to_address(self.addr), [to_storage_key(k) for k in self.storage_keys]]


@dataclass(frozen=True)
class SetCodeAuthorization:
    """
    An EIP-7702 authorization tuple: a signed statement from an externally-owned account
    that its code should be delegated to `addr`, valid on `chain_id` (0 means any chain)
    for exactly one account nonce.

    Instances are frozen: the fields must keep matching the signature.
    Use `build` to sign a new one.

    Attributes:
        chain_id (int): The chain ID the authorization is valid on.
        addr (Union[bytes, str]): The delegate contract whose code the account will execute,
                                  normalized to 20 bytes.
        nonce (int): The authority's account nonce at the moment the tuple is processed.
        signature (Signature): The authority's signature over `signing_hash`.
    """
    chain_id: int
    addr: bytes
    nonce: int
    signature: Signature

    def __post_init__(self):
        object.__setattr__(self, 'addr', to_address(self.addr))

    @staticmethod
    def signing_message(chain_id: int, addr: Union[bytes, str], nonce: int) -> bytes:
        """
        Builds the authorization pre-image: 0x05 || rlp([chain_id, address, nonce]).
        """
        encoded = rlp_encode([encode_quantity(chain_id), to_address(addr), encode_quantity(nonce)])
        return SET_CODE_AUTH_MAGIC + encoded

    @staticmethod
    def signing_hash(chain_id: int, addr: Union[bytes, str], nonce: int) -> bytes:
        return keccak256(SetCodeAuthorization.signing_message(chain_id, addr, nonce))

    @classmethod
    def build(cls, chain_id: int, addr: Union[bytes, str], nonce: int,
              signing_function: SigningFunction) -> 'SetCodeAuthorization':
        """
        Encodes, hashes and signs a new authorization.

        Args:
            chain_id (int): The chain ID for replay protection of the authorization.
            addr (Union[bytes, str]): The delegate contract address.
            nonce (int): The nonce the authority's account will have when the tuple is applied.
                         For a self-sponsored activation this is the current transaction count + 1,
                         because the enclosing transaction bumps the nonce first.
            signing_function (callable): Takes a 32-byte digest and returns a `Signature`
                                         (e.g. `keys.Keys.sign_hash`).

        Returns:
            SetCodeAuthorization: The signed tuple, parity kept as 0/1.

        Raises:
            RangeError: For a negative quantity or malformed address.
            SigningError: If the signing function fails. Nothing is retried.
        """
        hashed = cls.signing_hash(chain_id, addr, nonce)
        return cls(chain_id, addr, nonce, signing_function(hashed))

    def encode(self) -> list:
        """
        Encodes the authorization into the 6-item list [chain_id, address, nonce, y_parity, r, s].
        """
        return [encode_quantity(self.chain_id), self.addr, encode_quantity(self.nonce)] + self.signature.encode()

    def recover_authority(self) -> bytes:
        """Returns the address of the account that signed this authorization."""
        return self.signature.recover(self.signing_hash(self.chain_id, self.addr, self.nonce))


class SetCodeTx:
    """
    Represents an EIP-7702 set code transaction (type 4). It is an EIP-1559 style call
    that additionally carries a non-empty list of `SetCodeAuthorization` tuples.

    The unsigned payload is snapshotted on construction, so later changes to the
    parameter objects can not leak into a signature.
    """

    def __init__(self, tx_params: BaseTxParams, acc_list: Iterable[AccessTuple],
                 set_code_auth_list: Iterable[SetCodeAuthorization]):
        """
        Initializes a SetCodeTx object.

        Args:
            tx_params (BaseTxParams): The base transaction parameters.
            acc_list (Iterable[AccessTuple]): The EIP-2930 access list, usually empty.
            set_code_auth_list (Iterable[SetCodeAuthorization]): The signed authorizations to apply.

        Raises:
            EncodingError: If the authorization list is empty.
            RangeError: If any field can not be encoded.
        """
        self.tx_params = tx_params
        self.acc_list = tuple(acc_list)
        self.set_code_auth_list = tuple(set_code_auth_list)
        if not self.set_code_auth_list:
            raise EncodingError('a set code transaction needs at least one authorization')
        self._payload = (tx_params.encode() + [[a.encode() for a in self.acc_list]]
                         + [[a.encode() for a in self.set_code_auth_list]])

    def payload(self) -> list:
        """
        Returns the ten unsigned fields: [chain_id, nonce, gas_tip, gas_fee, gas, to, value,
        data, access_list, authorization_list].
        """
        return list(self._payload)

    def hash(self) -> bytes:
        """
        Calculates the signing hash: keccak(0x04 || rlp(payload)).
        """
        return keccak256(SET_CODE_TX_TYPE + rlp_encode(self._payload))

    def encode_with_sig(self, signature: Signature) -> bytes:
        """
        Encodes the transaction into its raw, signed form ready for eth_sendRawTransaction:
        0x04 || rlp(payload ++ [y_parity, r, s]).
        """
        return SET_CODE_TX_TYPE + rlp_encode(self._payload + signature.encode())

    def sign(self, signing_function: SigningFunction) -> 'SignedSetCodeTx':
        signature = signing_function(self.hash())
        return SignedSetCodeTx(self, signature, self.encode_with_sig(signature))


@dataclass(frozen=True)
class SignedSetCodeTx:
    tx: SetCodeTx
    signature: Signature
    raw: bytes

    @property
    def tx_hash(self) -> bytes:
        """The transaction identifier nodes report: keccak of the raw signed bytes."""
        return keccak256(self.raw)

    def hex(self) -> str:
        return '0x' + self.raw.hex()

    def sender(self) -> bytes:
        return self.signature.recover(self.tx.hash())


def build_activation_tx(chain_id: int, account_nonce: int, delegate: Union[bytes, str],
                        destination: Union[bytes, str], data: bytes, gas: int, gas_tip_cap: int,
                        gas_fee_cap: int, signing_function: SigningFunction, value: int = 0,
                        acc_list: Iterable[AccessTuple] = ()) -> SignedSetCodeTx:
    """
    Builds and signs a self-sponsored activation: one authorization delegating the signer's
    account to `delegate`, carried by a call sent from that same account.

    Both nonces derive from the single `account_nonce` observation: the transaction uses it
    as is, the authorization uses `account_nonce + 1` since the sender's nonce is incremented
    before the authorization list is processed.

    Args:
        chain_id (int): The chain ID of the target network.
        account_nonce (int): The signer's current transaction count.
        delegate (Union[bytes, str]): The deployed contract to delegate to.
        destination (Union[bytes, str]): The call target, normally the signer's own address.
        data (bytes): The call data, e.g. the selector of `initialize()`.
        gas (int): The gas limit.
        gas_tip_cap (int): maxPriorityFeePerGas.
        gas_fee_cap (int): maxFeePerGas.
        signing_function (callable): Signs a 32-byte digest with the account's key.
        value (int): Wei sent with the call. Defaults to 0.
        acc_list (Iterable[AccessTuple]): Optional access list. Defaults to empty.

    Returns:
        SignedSetCodeTx: The signed transaction and its raw bytes.
    """
    encode_quantity(account_nonce)  # rejects a negative nonce before anything is signed
    auth = SetCodeAuthorization.build(chain_id, delegate, account_nonce + 1, signing_function)
    tx_params = BaseTxParams(chain_id, nonce=account_nonce, gas=gas, gas_tip_cap=gas_tip_cap,
                             gas_fee_cap=gas_fee_cap, to=destination, value=value, data=data)
    return SetCodeTx(tx_params, acc_list, [auth]).sign(signing_function)
