# pragma: no cover # do not include tests modules in coverage metrics
"""Provide shared fixtures for the meta-transaction tests."""

from typing import Optional

import pytest
from eth_utils import to_checksum_address
from meta_tx.adapters.signer import LocalAccountSigner
from meta_tx.deployment import RELAY_HUB_ADDRESS
from meta_tx.errors import AuthorityUnavailableError, SigningRejectedError
from meta_tx.ports.chain import ChainReaderPort
from meta_tx.ports.signer import SignerPort

# Well known development key, never holds funds
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TARGET_ADDRESS = to_checksum_address("0x6b175474e89094c44da98b954eedeac495271d0f")
DELEGATE_DEPLOYER_ADDRESS = to_checksum_address(
    "0x00000000000000000000000000000000deadbeef"
)


class FakeChainReader(ChainReaderPort):
    """In-memory chain reader recording the slots it was asked for."""

    def __init__(self, stored: Optional[dict[bytes, int]] = None) -> None:
        """Initialize the reader with stored values keyed by slot."""
        self.stored = stored or {}
        self.code: dict[str, bytes] = {}
        self.reads: list[tuple[str, bytes]] = []
        self.fail_next = 0

    async def read_nonce_store(self, contract_address: str, slot: bytes) -> int:
        """Return the stored value, or fail if requested."""
        if self.fail_next:
            self.fail_next -= 1
            raise AuthorityUnavailableError("node is down")
        self.reads.append((contract_address, slot))
        return self.stored.get(slot, 0)

    async def get_code(self, address: str) -> bytes:
        """Return the stored code of an address."""
        return self.code.get(address, b"")


class CountingSigner(SignerPort):
    """Signer wrapper counting the signatures it produced."""

    def __init__(self, signer: SignerPort) -> None:
        """Initialize the wrapper."""
        self._signer = signer
        self.calls = 0
        self.messages: list[bytes] = []

    @property
    def address(self) -> str:
        """Get the wrapped signer address."""
        return self._signer.address

    async def sign_message(self, message: bytes) -> bytes:
        """Count, record and delegate."""
        self.calls += 1
        self.messages.append(message)
        return await self._signer.sign_message(message)


class RejectingSigner(SignerPort):
    """Signer that always refuses to sign."""

    def __init__(self, address: str) -> None:
        """Initialize the signer."""
        self._address = address

    @property
    def address(self) -> str:
        """Get the signer address."""
        return self._address

    async def sign_message(self, message: bytes) -> bytes:
        """Reject the request."""
        raise SigningRejectedError("user rejected the request")


@pytest.fixture
def local_signer() -> LocalAccountSigner:
    """Return a signer backed by the development key."""
    return LocalAccountSigner.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def counting_signer(local_signer) -> CountingSigner:
    """Return a signer counting its signatures."""
    return CountingSigner(local_signer)


@pytest.fixture
def chain_reader() -> FakeChainReader:
    """Return an empty in-memory chain reader."""
    return FakeChainReader()


@pytest.fixture
def relay_hub_address() -> str:
    """Return the relay hub address."""
    return RELAY_HUB_ADDRESS


@pytest.fixture
def target_address() -> str:
    """Return the address of a deployed contract to call."""
    return TARGET_ADDRESS


@pytest.fixture
def delegate_deployer_address() -> str:
    """Return the address of the delegate deployer."""
    return DELEGATE_DEPLOYER_ADDRESS


@pytest.fixture
def rejecting_signer(local_signer) -> RejectingSigner:
    """Return a signer refusing every request."""
    return RejectingSigner(local_signer.address)
