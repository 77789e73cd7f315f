"""Offer the meta-transaction forwarders."""

from meta_tx.forwarders.forwarder import Forwarder
from meta_tx.forwarders.proxy_account import (
    ProxyAccountBatchCallData,
    ProxyAccountCallData,
    ProxyAccountForwarder,
    compute_proxy_account_address,
)
from meta_tx.forwarders.relay_hub import (
    RelayHubBatchCallData,
    RelayHubCallData,
    RelayHubForwarder,
)

__all__ = [
    "Forwarder",
    "ProxyAccountBatchCallData",
    "ProxyAccountCallData",
    "ProxyAccountForwarder",
    "RelayHubBatchCallData",
    "RelayHubCallData",
    "RelayHubForwarder",
    "compute_proxy_account_address",
]
