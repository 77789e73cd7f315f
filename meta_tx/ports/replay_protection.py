"""Define the replay protection authority port.

An authority hands out single-use tokens and names the on-chain verifier that
checks them before the target executes a forwarded call.
"""

from abc import ABC, abstractmethod


class ReplayProtectionAuthority(ABC):
    """Replay protection authority interface.

    Notes:
        Called N times in sequence on one instance, `get_encoded_replay_protection`
        returns N pairwise distinct tokens, each of them still unconsumed on-chain
        to the best of the locally cached knowledge.

    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Get the address of the verifier checking the tokens."""
        pass

    @abstractmethod
    async def get_encoded_replay_protection(self) -> bytes:
        """Issue a new replay protection token.

        Raises:
            AuthorityUnavailableError: If the on-chain state could not be read.

        """
