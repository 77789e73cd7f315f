"""Implement the chain reader port with web3.py."""

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from aiohttp import ClientError
from meta_tx.errors import AuthorityUnavailableError, ChainReadError
from meta_tx.ports.chain import ChainReaderPort
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

if TYPE_CHECKING:
    from meta_tx.settings import MetaTxSettings

logger = getLogger(__name__)

# Only the fragment of the replay protection contract that is read.
NONCE_STORE_ABI = [
    {
        "inputs": [{"internalType": "bytes32", "name": "", "type": "bytes32"}],
        "name": "nonceStore",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    }
]

# AsyncHTTPProvider raises aiohttp errors on HTTP error statuses
_READ_ERRORS = (Web3Exception, ClientError, OSError, asyncio.TimeoutError)


class Web3ChainReader(ChainReaderPort):
    """Read contract state through an AsyncWeb3 instance."""

    def __init__(self, web3: AsyncWeb3) -> None:  # type: ignore[type-arg]
        """Initialize the reader."""
        self._web3 = web3

    @classmethod
    def from_rpc_url(cls, rpc_url: str) -> "Web3ChainReader":
        """Create a reader connected to a JSON-RPC HTTP endpoint."""
        return cls(AsyncWeb3(AsyncHTTPProvider(rpc_url)))

    @classmethod
    def from_settings(cls, settings: "MetaTxSettings") -> "Web3ChainReader":
        """Create a reader from the settings `rpc_url`.

        Raises:
            ValueError: If no rpc_url is configured.

        """
        if settings.rpc_url is None:
            raise ValueError("rpc_url must be set to read on-chain state")
        return cls.from_rpc_url(str(settings.rpc_url))

    async def read_nonce_store(self, contract_address: str, slot: bytes) -> int:
        """Read the `nonceStore(bytes32)` entry of a replay protection contract."""
        contract = self._web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=NONCE_STORE_ABI,
        )
        try:
            value = await contract.functions.nonceStore(slot).call()
        except _READ_ERRORS as e:
            message = (
                f"Unable to read nonceStore(0x{slot.hex()}) on {contract_address}: {e}"
            )
            logger.error(message)
            raise AuthorityUnavailableError(message) from e
        return int(value)

    async def get_code(self, address: str) -> bytes:
        """Get the runtime bytecode deployed at an address."""
        try:
            code = await self._web3.eth.get_code(AsyncWeb3.to_checksum_address(address))
        except _READ_ERRORS as e:
            message = f"Unable to read code at {address}: {e}"
            logger.error(message)
            raise ChainReadError(message) from e
        return bytes(code)
