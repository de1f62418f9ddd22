import sys

import structlog
from pydantic import ValidationError

import abi
import activation
import config
import ec
import keys
import log
from errors import Eip7702Error

logger = structlog.get_logger('set_code_and_initialize')


def main() -> int:
    # --- Configuration Section ---
    # EIP7702_PRIVATE_KEY (or EIP7702_KEYSTORE_FILE) and EIP7702_DELEGATE_ADDRESS must be set,
    # EIP7702_NETWORK picks the network (devnet6 by default).
    try:
        settings = config.Settings()
    except ValidationError as exc:
        log.setup_logging()
        logger.error('invalid_settings', error=str(exc))
        return 1
    log.setup_logging(settings.log_level, settings.log_json)

    if settings.delegate_address is None:
        logger.error('missing_setting', setting='EIP7702_DELEGATE_ADDRESS')
        return 1
    if settings.private_key:
        keys_supplier = keys.Keys.from_private_key(settings.private_key)
    elif settings.keystore_file:
        keys_supplier = keys.Keys.from_geth_file(settings.keystore_file, settings.keystore_password)
    else:
        logger.error('missing_setting', setting='EIP7702_PRIVATE_KEY')
        return 1

    try:
        client = ec.Client(settings.url, keys_supplier)
        logger.info('eoa_loaded', network=settings.network, address=client.keys.address,
                    delegate=settings.delegate_address)
        # The delegate's initialize() runs against the EOA's own storage once the code is set.
        tx_hash = activation.activate(client, settings.delegate_address,
                                      data=abi.get_function_selector('initialize()'),
                                      gas=settings.gas_limit, chain_id=settings.chain_id,
                                      wait=settings.wait_for_receipt)
    except Eip7702Error as exc:
        logger.error('activation_failed', error=str(exc), retryable=exc.retryable)
        return 1

    print(f'tx sent: {tx_hash}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
