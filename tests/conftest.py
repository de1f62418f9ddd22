"""
Pytest configuration and shared fixtures for the test suite.
"""

import pytest

from config import Settings
from keys import Keys

# Hardhat's first development account, public knowledge and never funded outside local nodes.
PRIV_KEY = '0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80'
ADDRESS = '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'

DEVNET6_CHAIN_ID = 7072151312
DELEGATE = bytes.fromhex('00000000000000000000000000000000000000aa')
INITIALIZE_SELECTOR = bytes.fromhex('8129fc1c')


@pytest.fixture
def signer() -> Keys:
    return Keys(PRIV_KEY)


@pytest.fixture
def activation_params(signer):
    """Parameters of a first-ever activation on devnet 6 (account nonce 0)."""
    return dict(
        chain_id=DEVNET6_CHAIN_ID,
        account_nonce=0,
        delegate=DELEGATE,
        destination=signer.address_bytes,
        data=INITIALIZE_SELECTOR,
        gas=1_000_000,
        gas_tip_cap=1_000_000_000,
        gas_fee_cap=2_000_000_014,
        signing_function=signer.sign_hash,
    )


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Removes every EIP7702_ setting from the environment and runs from an empty directory."""
    monkeypatch.chdir(tmp_path)  # no stray .env file
    for name in Settings.model_fields:
        monkeypatch.delenv(f'EIP7702_{name.upper()}', raising=False)
