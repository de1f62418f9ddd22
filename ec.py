from typing import Callable, NamedTuple, Optional, Union

import structlog
from eth_typing import HexStr
from requests.exceptions import RequestException
from web3 import Web3
from web3.exceptions import Web3Exception

from errors import TransportError
from keys import Keys
from model import Signature

logger = structlog.get_logger(__name__)


class FeeData(NamedTuple):
    base_fee: int
    max_priority_fee: int
    max_fee: int


class Client:
    """
    A client for one Ethereum node and one signing account. It is the I/O boundary of
    the activation: it reads the chain state the builders need and broadcasts the
    finished raw transaction. It never builds or encodes transactions itself.
    """

    def __init__(self, url: str, keys_supplier: Callable[[Web3], Keys], w3: Optional[Web3] = None):
        """
        Initializes the client.

        Args:
            url (str): The URL of the node (e.g., 'http://localhost:8545').
            keys_supplier: A callable that takes the Web3 instance and returns a `Keys` object,
                           see `Keys.from_geth_file` and `Keys.from_private_key`.
            w3 (Web3, optional): An already configured Web3 instance, used instead of `url`.
        """
        self.url = url
        self.w3 = w3 if w3 is not None else Web3(Web3.HTTPProvider(url))
        self.keys = keys_supplier(self.w3)

    def _call(self, what: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (Web3Exception, RequestException, ValueError, OSError) as exc:
            logger.error('rpc_failed', call=what, url=self.url, error=str(exc))
            raise TransportError(f'{what} failed: {exc}') from exc

    def get_chain_id(self) -> int:
        return self._call('eth_chainId', lambda: self.w3.eth.chain_id)

    def get_latest_nonce(self) -> int:
        """
        Retrieves the transaction count of the client's address. The 'pending' block
        identifier accounts for transactions already in the mempool.
        """
        return self._call('eth_getTransactionCount', self.w3.eth.get_transaction_count,
                          self.keys.address, block_identifier='pending')

    def get_address_bytes(self) -> bytes:
        return self.keys.address_bytes

    def get_base_fee(self) -> int:
        """Retrieves baseFeePerGas from the latest block."""
        return self._call('eth_getBlockByNumber', self.w3.eth.get_block, 'latest')['baseFeePerGas']

    def get_max_priority_fee(self) -> int:
        return self._call('eth_maxPriorityFeePerGas', lambda: self.w3.eth.max_priority_fee)

    def get_fee_data(self) -> FeeData:
        """
        Suggests EIP-1559 fees: the node's priority fee, and a fee cap of twice the current
        base fee plus the tip so the transaction survives a few rising blocks.
        """
        base_fee = self.get_base_fee()
        priority = self.get_max_priority_fee()
        return FeeData(base_fee, priority, 2 * base_fee + priority)

    def sign_hash(self, hashed: bytes) -> Signature:
        return self.keys.sign_hash(hashed)

    def send_signed_raw_transaction(self, raw_tx: Union[HexStr, bytes], wait: bool = False) -> str:
        """
        Sends a signed raw transaction.

        Args:
            raw_tx (Union[HexStr, bytes]): The typed, signed transaction.
            wait (bool): If True, blocks until the transaction is mined. Defaults to False.

        Returns:
            str: The '0x' prefixed transaction hash reported by the node.

        Raises:
            TransportError: If the node is unreachable or rejects the transaction.
        """
        tx_hash = Web3.to_hex(self._call('eth_sendRawTransaction', self.w3.eth.send_raw_transaction, raw_tx))
        logger.info('tx_sent', tx_hash=tx_hash)
        if wait:
            receipt = self._call('wait_for_transaction_receipt', self.w3.eth.wait_for_transaction_receipt, tx_hash)
            logger.info('tx_mined', tx_hash=tx_hash, block=receipt['blockNumber'], status=receipt['status'])
        return tx_hash
