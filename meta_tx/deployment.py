"""Deployment registry of the meta-transaction contracts.

Addresses come from deterministic deployments keyed by the salt strings below.
They are constants, downstream systems rely on them.
"""

from enum import IntEnum

VERSION = "v0.1.0"

RELAY_HUB_SALT_STRING = "RELAY_HUB"
PROXY_ACCOUNT_DEPLOYER_SALT_STRING = "PROXY_ACCOUNT_DEPLOYER"
MULTI_SEND_SALT_STRING = "MULTI_SEND"
BASE_ACCOUNT_SALT_STRING = "BASE_ACCOUNT"

# IF YOU'RE CHANGING THESE THINK ABOUT DOWNSTREAM SYSTEMS
PROXY_ACCOUNT_DEPLOYER_ADDRESS = "0xfCF0c38A7028Bc0E0d51991b2aAC7687e5F4e5AB"
BASE_ACCOUNT_ADDRESS = "0xC26aBd28644feDF8f8caA8977f5Ac2741504Dc3f"
RELAY_HUB_ADDRESS = "0x4bB588aC1D5E46a6ab894488716F416ed6D472F2"
MULTI_SEND_ADDRESS = "0x6Baa5a3778e9a424Ba26fE72f66224d224846B1B"

# Replay protection schemes embedded in the relay hub and proxy accounts.
MULTI_NONCE_AUTHORITY_ADDRESS = "0x0000000000000000000000000000000000000000"
BIT_FLIP_AUTHORITY_ADDRESS = "0x0000000000000000000000000000000000000001"


class ChainID(IntEnum):
    """Supported chain identifiers."""

    MAINNET = 1
    ROPSTEN = 3
