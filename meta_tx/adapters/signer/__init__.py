"""Implement the signer port."""

from meta_tx.adapters.signer.local_account import LocalAccountSigner

__all__ = ["LocalAccountSigner"]
