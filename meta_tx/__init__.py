"""Sign meta-transactions with concurrent replay protection."""

__version__ = "0.1.0"

from meta_tx.adapters.chain import Web3ChainReader
from meta_tx.adapters.replay_protection import (
    BitFlipReplayProtection,
    MultiNonceReplayProtection,
)
from meta_tx.adapters.signer import LocalAccountSigner
from meta_tx.deployment import ChainID
from meta_tx.domain.models import (
    CallType,
    DeployCall,
    DirectCall,
    ForwardParams,
    MinimalTx,
)
from meta_tx.forwarders import (
    Forwarder,
    ProxyAccountForwarder,
    RelayHubForwarder,
    compute_proxy_account_address,
)
from meta_tx.ports import ChainReaderPort, ReplayProtectionAuthority, SignerPort
from meta_tx.settings import MetaTxSettings, configure_logging, load_settings

__all__ = [
    # Authorities
    "BitFlipReplayProtection",
    "MultiNonceReplayProtection",
    "ReplayProtectionAuthority",
    # Forwarders
    "Forwarder",
    "ProxyAccountForwarder",
    "RelayHubForwarder",
    "compute_proxy_account_address",
    # Models
    "CallType",
    "ChainID",
    "DeployCall",
    "DirectCall",
    "ForwardParams",
    "MinimalTx",
    # Ports & adapters
    "ChainReaderPort",
    "LocalAccountSigner",
    "SignerPort",
    "Web3ChainReader",
    # Settings
    "MetaTxSettings",
    "configure_logging",
    "load_settings",
]
