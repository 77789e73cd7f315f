"""Offer common tools for the replay protection authorities."""

import asyncio
from abc import ABC, abstractmethod
from logging import getLogger
from typing import TYPE_CHECKING, Optional

from meta_tx.domain.abi import replay_protection_slot
from meta_tx.domain.models import parse_address
from meta_tx.ports.replay_protection import ReplayProtectionAuthority

if TYPE_CHECKING:
    from meta_tx.ports.chain import ChainReaderPort

logger = getLogger(__name__)


class BaseReplayProtection(ReplayProtectionAuthority, ABC):
    """Base class for authorities backed by the `nonceStore` of a contract.

    Issuance is serialized by a per-instance lock: reading the cursor, computing
    the token and advancing the cursor happen as one critical section, so
    concurrent callers sharing the instance never receive the same token.

    Local state is read from chain lazily, once per queue or word, and cached
    for the lifetime of the instance. It is never re-read: a fresh instance is
    needed to resynchronize with the chain.
    """

    def __init__(
        self,
        signer_address: str,
        replay_protection_address: str,
        authority_address: str,
        chain_reader: Optional["ChainReaderPort"] = None,
    ) -> None:
        """Initialize the authority.

        Args:
            signer_address (str): Address of the meta-transaction signer.
            replay_protection_address (str): Contract storing the consumed tokens
                (the relay hub or the signer proxy account).
            authority_address (str): Address of the verifier checking the tokens.
            chain_reader (ChainReaderPort | None): Reader of the on-chain state.
                Without reader, the signer is assumed to have no consumed token.

        """
        self.signer_address = parse_address(signer_address)
        self.replay_protection_address = parse_address(replay_protection_address)
        self._authority_address = parse_address(authority_address)
        self._chain_reader = chain_reader
        self._lock = asyncio.Lock()

    @property
    def address(self) -> str:
        """Get the address of the verifier checking the tokens."""
        return self._authority_address

    async def _read_stored_value(self, index: int) -> int:
        """Read the stored counter or bitmap for a queue or word index."""
        if self._chain_reader is None:
            return 0
        slot = replay_protection_slot(self.signer_address, index)
        value = await self._chain_reader.read_nonce_store(
            self.replay_protection_address, slot
        )
        logger.info(
            f"Read stored replay protection value for signer {self.signer_address} "
            f"index {index} on {self.replay_protection_address}"
        )
        return value

    async def get_encoded_replay_protection(self) -> bytes:
        """Issue a new replay protection token."""
        async with self._lock:
            return await self._issue()

    @abstractmethod
    async def _issue(self) -> bytes:
        """Compute the next token and advance the local state.

        Called with the instance lock held. Must not mutate state before every
        awaited read has succeeded.
        """
