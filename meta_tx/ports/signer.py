"""Define the signer port."""

from abc import ABC, abstractmethod


class SignerPort(ABC):
    """Signing identity of the meta-transactions."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Get the signer checksum address."""
        pass

    @abstractmethod
    async def sign_message(self, message: bytes) -> bytes:
        """Sign a message as an EIP-191 personal message.

        Args:
            message (bytes): The message, a 32 bytes hash for meta-transactions.

        Returns:
            bytes: The 65 bytes signature (r, s, v).

        Raises:
            SigningRejectedError: If the signer declined or failed.

        """
