"""Define the meta-transaction domain models.

Call descriptors form an explicit tagged union on the `kind` field:
    * DirectCall: a call to an existing contract.
    * DeployCall: a contract creation at a salt-derived deterministic address.

Raw mappings can still be classified structurally with `parse_call_descriptor`,
a non-empty `salt` marks a deployment.
"""

from collections.abc import Mapping
from enum import IntEnum
from typing import Annotated, Any, Generic, Literal, TypeVar, Union

from eth_utils import is_address, to_bytes, to_checksum_address
from meta_tx.errors import MalformedCallDescriptorError
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)

UINT256_MAX = 2**256 - 1


def parse_address(value: Any) -> str:
    """Coerce an address given as hex string or 20 raw bytes into its checksum form.

    Examples:
        >>> parse_address("0x4bb588ac1d5e46a6ab894488716f416ed6d472f2")
        '0x4bB588aC1D5E46a6ab894488716F416ed6D472F2'

    """
    if isinstance(value, (bytes, bytearray)) and len(value) == 20:
        return str(to_checksum_address(bytes(value)))
    if isinstance(value, str) and is_address(value):
        return str(to_checksum_address(value))
    raise ValueError(f"Invalid address: {value!r}")


def parse_hex_bytes(value: Any) -> bytes:
    """Coerce raw bytes or a 0x-prefixed hex string into bytes."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        if value in ("", "0x", "0X"):
            return b""
        if value[:2] in ("0x", "0X"):
            return bytes(to_bytes(hexstr=value))
        raise ValueError(f"Hex string must be 0x-prefixed: {value!r}")
    raise ValueError(f"Expected bytes or hex string, got {type(value).__name__}")


def parse_uint(value: Any) -> int:
    """Coerce an int, a decimal string or a 0x-prefixed hex string into an int.

    An empty hex string "0x" is read as zero.
    """
    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid unsigned integer")
    if isinstance(value, str):
        value = value.strip()
        if value[:2] in ("0x", "0X"):
            return int(value, 16) if len(value) > 2 else 0
        return int(value, 10)
    return value  # type: ignore[no-any-return] # validated as int by pydantic


def _serialize_hex(value: bytes) -> str:
    return "0x" + value.hex()


Address = Annotated[str, BeforeValidator(parse_address)]
HexBytes = Annotated[
    bytes,
    BeforeValidator(parse_hex_bytes),
    PlainSerializer(_serialize_hex, when_used="json"),
]
Uint256 = Annotated[int, BeforeValidator(parse_uint), Field(ge=0, le=UINT256_MAX)]


class CallType(IntEnum):
    """How the forwarder target executes the call."""

    CALL = 0
    DELEGATE = 1
    BATCH = 2


class FrozenModel(BaseModel):
    """Base model for immutable value objects."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class DirectCall(FrozenModel):
    """Call to an already deployed contract."""

    kind: Literal["direct"] = "direct"
    to: Address
    data: HexBytes = b""
    value: Uint256 = 0


class DeployCall(FrozenModel):
    """Contract deployment at an address derived from `salt`."""

    kind: Literal["deploy"] = "deploy"
    data: HexBytes = Field(description="Init code of the contract to deploy.")
    value: Uint256 = 0
    salt: HexBytes

    @field_validator("data", "salt")
    @classmethod
    def _check_not_empty(cls, value: bytes, info: ValidationInfo) -> bytes:
        if not value:
            raise ValueError(f"Deploy call requires a non-empty {info.field_name}")
        return value


CallDescriptor = Annotated[Union[DirectCall, DeployCall], Field(discriminator="kind")]

_call_descriptor_adapter: TypeAdapter[Union[DirectCall, DeployCall]] = TypeAdapter(
    CallDescriptor
)


def _has_salt(value: Any) -> bool:
    return value is not None and value not in ("", "0x", "0X", b"")


def parse_call_descriptor(value: Any) -> Union[DirectCall, DeployCall]:
    """Classify a call descriptor.

    Models are returned unchanged. Mappings carrying an explicit `kind` are
    validated against it, otherwise a non-empty `salt` makes a DeployCall.

    Raises:
        MalformedCallDescriptorError: If the descriptor cannot be classified or is invalid.

    """
    if isinstance(value, (DirectCall, DeployCall)):
        return value
    if not isinstance(value, Mapping):
        raise MalformedCallDescriptorError(
            f"Unsupported call descriptor type: {type(value).__name__}"
        )
    fields = dict(value)
    # an empty salt carries no deployment
    if not _has_salt(fields.get("salt")):
        fields.pop("salt", None)
    try:
        if "kind" in fields:
            return _call_descriptor_adapter.validate_python(fields)
        if "salt" in fields:
            return DeployCall.model_validate(fields)
        return DirectCall.model_validate(fields)
    except ValidationError as e:
        raise MalformedCallDescriptorError(f"Malformed call descriptor: {e}") from e


class MinimalTx(FrozenModel):
    """Destination and payload of a transaction ready to be broadcast."""

    to: Address
    data: HexBytes


class ForwardParams(FrozenModel):
    """Fully signed meta-transaction envelope."""

    to: Address = Field(description="Forwarder address.")
    signer: Address
    target: Address
    value: Uint256
    data: HexBytes
    call_type: CallType
    replay_protection: HexBytes
    replay_protection_authority: Address
    chain_id: int
    signature: HexBytes


CallDataT = TypeVar("CallDataT", bound=BaseModel)


class DecodedTx(FrozenModel, Generic[CallDataT]):
    """Decoded single meta-transaction payload."""

    meta_tx: CallDataT
    replay_protection: HexBytes
    replay_protection_authority: Address
    signature: HexBytes


class DecodedBatchTx(FrozenModel, Generic[CallDataT]):
    """Decoded batch meta-transaction payload."""

    meta_tx_list: list[CallDataT]
    replay_protection: HexBytes
    replay_protection_authority: Address
    signature: HexBytes
