"""Define the chain reader port.

It provides only the on-chain reads the authorities and the forwarders need.
"""

from abc import ABC, abstractmethod


class ChainReaderPort(ABC):
    """Read-only access to contract state."""

    @abstractmethod
    async def read_nonce_store(self, contract_address: str, slot: bytes) -> int:
        """Read the `nonceStore(bytes32)` entry of a replay protection contract.

        Raises:
            AuthorityUnavailableError: If the value could not be read.

        """

    @abstractmethod
    async def get_code(self, address: str) -> bytes:
        """Get the runtime bytecode deployed at an address."""
