from typing import Optional, Union

import structlog
from web3 import Web3

from codec import to_address
from ec import Client
from model import build_activation_tx

logger = structlog.get_logger(__name__)

DEFAULT_GAS = 1_000_000


def activate(client: Client, delegate: Union[bytes, str], data: bytes = b'', gas: int = DEFAULT_GAS,
             chain_id: Optional[int] = None, wait: bool = False) -> str:
    """
    Delegates the client's account to `delegate` and calls it in the same transaction.

    Chain state is read first (the nonce exactly once), then the transaction is built and
    signed offline, then broadcast. Failures propagate unchanged and nothing is retried:
    a new attempt must start over from fresh chain state.

    Args:
        client (Client): The node client holding the account keys.
        delegate (Union[bytes, str]): The deployed contract to delegate to.
        data (bytes): Call data executed against the freshly delegated account.
        gas (int): The gas limit. Defaults to 1,000,000.
        chain_id (int, optional): Skips reading the chain id from the node.
        wait (bool): Wait for the receipt after sending.

    Returns:
        str: The transaction hash.
    """
    if chain_id is None:
        chain_id = client.get_chain_id()
    nonce = client.get_latest_nonce()
    fees = client.get_fee_data()
    log = logger.bind(chain_id=chain_id, account=client.keys.address, nonce=nonce)
    log.info('activation_state_fetched', base_fee=fees.base_fee, max_fee=fees.max_fee,
             max_priority_fee=fees.max_priority_fee)

    signed = build_activation_tx(chain_id, nonce, delegate, destination=client.get_address_bytes(),
                                 data=data, gas=gas, gas_tip_cap=fees.max_priority_fee,
                                 gas_fee_cap=fees.max_fee, signing_function=client.sign_hash)
    log.info('activation_signed', delegate=Web3.to_checksum_address(to_address(delegate)),
             tx_hash='0x' + signed.tx_hash.hex())
    log.debug('activation_raw', raw=signed.hex())

    return client.send_signed_raw_transaction(signed.raw, wait=wait)
