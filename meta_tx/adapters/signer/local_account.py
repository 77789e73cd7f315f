"""Implement the signer port with an eth-account local key."""

from logging import getLogger

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from meta_tx.errors import SigningRejectedError
from meta_tx.ports.signer import SignerPort
from pydantic import SecretStr

logger = getLogger(__name__)


class LocalAccountSigner(SignerPort):
    """Sign with a private key held in memory."""

    def __init__(self, account: LocalAccount) -> None:
        """Initialize the signer."""
        self._account = account

    @classmethod
    def from_key(cls, private_key: SecretStr | str) -> "LocalAccountSigner":
        """Create a signer from a hex encoded private key."""
        if isinstance(private_key, SecretStr):
            private_key = private_key.get_secret_value()
        return cls(Account.from_key(private_key))

    @property
    def address(self) -> str:
        """Get the signer checksum address."""
        return str(self._account.address)

    async def sign_message(self, message: bytes) -> bytes:
        """Sign a message as an EIP-191 personal message."""
        try:
            signed = self._account.sign_message(encode_defunct(primitive=message))
        except (TypeError, ValueError) as e:
            logger.error(f"Signer {self.address} failed to sign: {e}")
            raise SigningRejectedError(f"Signer {self.address} failed: {e}") from e
        return bytes(signed.signature)
