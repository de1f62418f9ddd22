"""
Configuration for the EIP-7702 activation tools.

Settings come from environment variables with the EIP7702_ prefix, or a .env file.
"""

import logging
from typing import NamedTuple, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from codec import to_address


class Network(NamedTuple):
    url: str
    chain_id: int


NETWORKS = {
    'hardhat': Network('http://localhost:8545', 31337),
    'devnet6': Network('https://rpc.pectra-devnet-6.ethpandaops.io', 7072151312),
    'holesky': Network('https://1rpc.io/holesky', 17000),
    'bsc': Network('https://bsc-dataseed.binance.org/', 56),
    'sepolia': Network('https://ethereum-sepolia-rpc.publicnode.com', 11155111),
}


class Settings(BaseSettings):
    """
    Settings for one activation run.

    Either `private_key` or `keystore_file` must be given to sign anything.
    """

    model_config = SettingsConfigDict(
        env_prefix='EIP7702_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
    )

    network: str = Field(default='devnet6', description='Name of a network in NETWORKS')
    rpc_url: Optional[str] = Field(default=None, description="Overrides the network's RPC URL")
    chain_id: Optional[int] = Field(default=None, description='Overrides the chain id read from the node')

    private_key: Optional[str] = Field(default=None, description='Hex private key of the account to activate')
    keystore_file: Optional[str] = Field(default=None, description='Geth keystore file, used when no private key')
    keystore_password: str = Field(default='', description='Password of the keystore file')

    delegate_address: Optional[str] = Field(default=None, description='Deployed contract to delegate to')
    gas_limit: int = Field(default=1_000_000, gt=0, description='Gas limit of the activation transaction')
    wait_for_receipt: bool = Field(default=False, description='Block until the transaction is mined')

    log_level: str = Field(default='INFO', description='Logging level')
    log_json: bool = Field(default=False, description='Render logs as JSON')

    @field_validator('network')
    @classmethod
    def _known_network(cls, v: str) -> str:
        if v not in NETWORKS:
            raise ValueError(f"unknown network {v!r}, expected one of {', '.join(NETWORKS)}")
        return v

    @field_validator('delegate_address')
    @classmethod
    def _delegate_is_address(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            to_address(v)
        return v

    @field_validator('log_level')
    @classmethod
    def _known_log_level(cls, v: str) -> str:
        if not isinstance(logging.getLevelName(v.upper()), int):
            raise ValueError(f'unknown log level {v!r}')
        return v

    @property
    def url(self) -> str:
        return self.rpc_url or NETWORKS[self.network].url
