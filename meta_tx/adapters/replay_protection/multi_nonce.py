"""Implement the multi-nonce replay protection.

Tokens are spread over N independent strictly increasing counters (queues), so
an unconfirmed meta-transaction only blocks the ones issued after it on the
same queue.

Verifier rule: a token `(queue, counter)` is valid only if `counter` equals the
stored counter of `queue`. Consuming it increments the stored counter.
"""

from logging import getLogger
from typing import TYPE_CHECKING, Optional

from meta_tx.adapters.replay_protection.common import BaseReplayProtection
from meta_tx.deployment import MULTI_NONCE_AUTHORITY_ADDRESS
from meta_tx.domain.abi import encode_replay_protection

if TYPE_CHECKING:
    from meta_tx.ports.chain import ChainReaderPort

logger = getLogger(__name__)

DEFAULT_QUEUE_COUNT = 30


class MultiNonceReplayProtection(BaseReplayProtection):
    """Queue based replay protection authority.

    Examples:
        >>> authority = MultiNonceReplayProtection(30, signer, relay_hub_address)
        >>> token = await authority.get_encoded_replay_protection()
        >>> decode_replay_protection(token)
        (0, 0)

    """

    def __init__(
        self,
        queue_count: int,
        signer_address: str,
        replay_protection_address: str,
        chain_reader: Optional["ChainReaderPort"] = None,
        authority_address: str = MULTI_NONCE_AUTHORITY_ADDRESS,
    ) -> None:
        """Initialize the authority.

        Args:
            queue_count (int): Number of independent queues, 1 means a single sequential nonce.
            signer_address (str): Address of the meta-transaction signer.
            replay_protection_address (str): Contract storing the queue counters.
            chain_reader (ChainReaderPort | None): Reader of the stored counters.
            authority_address (str): Address of the verifier, the built-in multi-nonce by default.

        Raises:
            ValueError: If queue_count is lower than 1.

        """
        if queue_count < 1:
            raise ValueError(f"queue_count must be at least 1, got {queue_count}")
        super().__init__(
            signer_address=signer_address,
            replay_protection_address=replay_protection_address,
            authority_address=authority_address,
            chain_reader=chain_reader,
        )
        self.queue_count = queue_count
        # next counter to hand out, per queue index
        self._counters: dict[int, int] = {}
        self._next_queue = 0

    async def _issue(self) -> bytes:
        queue = self._next_queue
        if queue not in self._counters:
            self._counters[queue] = await self._read_stored_value(queue)

        counter = self._counters[queue]
        self._counters[queue] = counter + 1
        # round-robin, the next queue is the one advanced least recently
        self._next_queue = (queue + 1) % self.queue_count

        logger.debug(f"Issued multi-nonce token: queue {queue}, counter {counter}")
        return encode_replay_protection(queue, counter)
