"""Implement the replay protection authorities."""

from meta_tx.adapters.replay_protection.bit_flip import (
    BitFlipReplayProtection,
    flip_bit,
)
from meta_tx.adapters.replay_protection.multi_nonce import (
    MultiNonceReplayProtection,
)

__all__ = [
    "BitFlipReplayProtection",
    "MultiNonceReplayProtection",
    "flip_bit",
]
