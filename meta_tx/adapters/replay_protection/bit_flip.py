"""Implement the bit-flip replay protection.

Each token flips one bit of a numbered 256 bits word. Bits of a word can be
consumed in any order, none of them blocks another.

Verifier rule: a token `(word, mask)` is valid only if the single bit of `mask`
is unset in the stored word. Consuming it sets the bit forever.
"""

from logging import getLogger
from typing import TYPE_CHECKING, Optional

from meta_tx.adapters.replay_protection.common import BaseReplayProtection
from meta_tx.deployment import BIT_FLIP_AUTHORITY_ADDRESS
from meta_tx.domain.abi import encode_replay_protection

if TYPE_CHECKING:
    from meta_tx.ports.chain import ChainReaderPort

logger = getLogger(__name__)

WORD_SIZE = 256


def flip_bit(bitmap: int, bit: int) -> int:
    """Set a bit of a 256 bits word.

    Examples:
        >>> flip_bit(0, 0)
        1
        >>> flip_bit(1, 3)
        9

    """
    if not 0 <= bit < WORD_SIZE:
        raise ValueError(f"bit must be in [0, {WORD_SIZE}), got {bit}")
    return bitmap | (1 << bit)


class BitFlipReplayProtection(BaseReplayProtection):
    """Bitmap based replay protection authority.

    Notes:
        The word index has no upper bound, it keeps growing over the lifetime
        of the instance.

    """

    def __init__(
        self,
        signer_address: str,
        replay_protection_address: str,
        chain_reader: Optional["ChainReaderPort"] = None,
        start_index: int = 0,
        authority_address: str = BIT_FLIP_AUTHORITY_ADDRESS,
    ) -> None:
        """Initialize the authority.

        Args:
            signer_address (str): Address of the meta-transaction signer.
            replay_protection_address (str): Contract storing the bitmaps.
            chain_reader (ChainReaderPort | None): Reader of the stored bitmaps.
            start_index (int): First word index to use.
            authority_address (str): Address of the verifier, the built-in bit-flip by default.

        """
        if start_index < 0:
            raise ValueError(f"start_index must be positive, got {start_index}")
        super().__init__(
            signer_address=signer_address,
            replay_protection_address=replay_protection_address,
            authority_address=authority_address,
            chain_reader=chain_reader,
        )
        self.index = start_index
        self.cursor = 0
        # bits known as consumed in the current word, on-chain or issued locally
        self._bitmap: Optional[int] = None

    @staticmethod
    def _next_free_bit(bitmap: int, cursor: int) -> Optional[int]:
        for bit in range(cursor, WORD_SIZE):
            if not bitmap & (1 << bit):
                return bit
        return None

    async def _issue(self) -> bytes:
        index, cursor, bitmap = self.index, self.cursor, self._bitmap
        while True:
            if bitmap is None:
                bitmap = await self._read_stored_value(index)
            bit = self._next_free_bit(bitmap, cursor)
            if bit is not None:
                break
            logger.info(f"Bit-flip word {index} is exhausted, moving to next word")
            index, cursor, bitmap = index + 1, 0, None

        # every read succeeded, commit the local state
        bitmap = flip_bit(bitmap, bit)
        cursor = bit + 1
        if cursor == WORD_SIZE:
            self.index, self.cursor, self._bitmap = index + 1, 0, None
        else:
            self.index, self.cursor, self._bitmap = index, cursor, bitmap

        logger.debug(f"Issued bit-flip token: word {index}, bit {bit}")
        return encode_replay_protection(index, 1 << bit)
