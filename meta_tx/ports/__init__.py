"""Define the ports injected into the authorities and the forwarders."""

from meta_tx.ports.chain import ChainReaderPort
from meta_tx.ports.replay_protection import ReplayProtectionAuthority
from meta_tx.ports.signer import SignerPort

__all__ = [
    "ChainReaderPort",
    "ReplayProtectionAuthority",
    "SignerPort",
]
