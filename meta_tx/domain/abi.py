"""ABI encoding helpers shared by the authorities and the forwarders."""

from collections.abc import Sequence
from logging import getLogger
from typing import Any

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import (
    function_signature_to_4byte_selector,
    keccak,
    to_canonical_address,
    to_checksum_address,
)
from meta_tx.errors import DecodeMismatchError

logger = getLogger(__name__)

REPLAY_PROTECTION_TYPES = ("uint256", "uint256")
SIGNED_PARAMS_TYPES = ("bytes", "bytes", "address", "address", "uint256")


def encode_replay_protection(index: int, value: int) -> bytes:
    """Encode a replay protection token.

    Args:
        index (int): Queue index (multi-nonce) or word index (bit-flip).
        value (int): Queue counter (multi-nonce) or single bit mask (bit-flip).

    Returns:
        bytes: The ABI encoded `(uint256, uint256)` tuple.

    """
    return bytes(encode(REPLAY_PROTECTION_TYPES, (index, value)))


def decode_replay_protection(token: bytes) -> tuple[int, int]:
    """Decode a replay protection token into its two numbers."""
    try:
        index, value = decode(REPLAY_PROTECTION_TYPES, token)
    except DecodingError as e:
        raise DecodeMismatchError(f"Invalid replay protection token: {e}") from e
    return int(index), int(value)


def replay_protection_slot(signer: str, index: int) -> bytes:
    """Key of the on-chain `nonceStore` entry for a signer queue or word."""
    return bytes(keccak(encode(("address", "uint256"), (signer, index))))


def encode_signed_params(
    call_data: bytes,
    replay_protection: bytes,
    replay_protection_authority: str,
    forwarder_address: str,
    chain_id: int,
) -> bytes:
    """Encode the tuple whose hash is signed by the signer."""
    return bytes(
        encode(
            SIGNED_PARAMS_TYPES,
            (
                call_data,
                replay_protection,
                replay_protection_authority,
                forwarder_address,
                chain_id,
            ),
        )
    )


def canonical_hash(
    call_data: bytes,
    replay_protection: bytes,
    replay_protection_authority: str,
    forwarder_address: str,
    chain_id: int,
) -> bytes:
    """Hash binding call data, token, authority, forwarder and chain together."""
    return bytes(
        keccak(
            encode_signed_params(
                call_data,
                replay_protection,
                replay_protection_authority,
                forwarder_address,
                chain_id,
            )
        )
    )


def create2_address(deployer: str, salt: bytes, init_code: bytes) -> str:
    """Compute the address of a contract created with CREATE2."""
    digest = keccak(
        b"\xff" + to_canonical_address(deployer) + salt + keccak(init_code)
    )
    return str(to_checksum_address(digest[12:]))


class ContractFunction:
    """Hand declared ABI fragment of a contract function.

    Examples:
        >>> deploy = ContractFunction("deploy", ["bytes", "uint256", "bytes32"])
        >>> deploy.signature
        'deploy(bytes,uint256,bytes32)'

    """

    def __init__(self, name: str, arg_types: Sequence[str]) -> None:
        """Initialize the fragment."""
        self.name = name
        self.arg_types = tuple(arg_types)
        self.signature = f"{name}({','.join(self.arg_types)})"
        self.selector = bytes(function_signature_to_4byte_selector(self.signature))

    def encode_call(self, *args: Any) -> bytes:
        """Encode a call, selector followed by the ABI encoded arguments."""
        return self.selector + bytes(encode(self.arg_types, args))

    def decode_call(self, data: bytes) -> tuple[Any, ...]:
        """Decode the arguments of a call produced by `encode_call`.

        Raises:
            DecodeMismatchError: If the selector differs or the arguments do not decode.

        """
        if data[:4] != self.selector:
            raise DecodeMismatchError(
                f"Payload is not a call to {self.signature}: selector 0x{data[:4].hex()}"
            )
        try:
            return tuple(decode(self.arg_types, data[4:]))
        except DecodingError as e:
            logger.debug(f"Undecodable arguments for {self.signature}: 0x{data.hex()}")
            raise DecodeMismatchError(
                f"Invalid arguments for {self.signature}: {e}"
            ) from e

    def __repr__(self) -> str:
        """Represent the fragment by its signature."""
        return f"ContractFunction({self.signature})"


def decode_parameters(types: Sequence[str], data: bytes) -> tuple[Any, ...]:
    """Decode an ABI encoded parameter tuple, raising DecodeMismatchError on failure."""
    try:
        return tuple(decode(tuple(types), data))
    except DecodingError as e:
        raise DecodeMismatchError(f"Invalid encoding for {list(types)}: {e}") from e
