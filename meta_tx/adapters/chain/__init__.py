"""Implement the chain reader port."""

from meta_tx.adapters.chain.web3_reader import Web3ChainReader

__all__ = ["Web3ChainReader"]
