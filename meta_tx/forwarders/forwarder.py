"""Provide the common functionality of the RelayHub and the ProxyAccount forwarders.

A forwarder turns a call description into a signed meta-transaction:
    1. classify the input (single call or batch, direct or deploy call)
    2. lower deploy calls into a call to the delegate deployer
    3. encode the call data in the target contract shape
    4. request a replay protection token from the authority
    5. hash the call data, token, authority, forwarder address and chain id
    6. sign the hash
    7. encode the final transaction payload

Steps 3 and 7 are specific to each forwarder target.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from logging import getLogger
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar, Union

from eth_utils import keccak
from meta_tx.domain.abi import ContractFunction, canonical_hash, encode_signed_params
from meta_tx.domain.models import (
    CallType,
    DecodedBatchTx,
    DecodedTx,
    DeployCall,
    DirectCall,
    ForwardParams,
    MinimalTx,
    parse_address,
    parse_call_descriptor,
)
from meta_tx.errors import MalformedCallDescriptorError, SigningRejectedError
from pydantic import BaseModel

if TYPE_CHECKING:
    from meta_tx.ports.replay_protection import ReplayProtectionAuthority
    from meta_tx.ports.signer import SignerPort

logger = getLogger(__name__)

CallDataT = TypeVar("CallDataT", bound=BaseModel)
BatchCallDataT = TypeVar("BatchCallDataT", bound=BaseModel)

CallInput = Union[DirectCall, DeployCall, Mapping[str, Any]]

DEPLOY_FUNCTION = ContractFunction("deploy", ["bytes", "uint256", "bytes32"])


def _is_batch(tx: Any) -> bool:
    return isinstance(tx, Sequence) and not isinstance(tx, (str, bytes, bytearray))


class Forwarder(ABC, Generic[CallDataT, BatchCallDataT]):
    """Base class of the meta-transaction forwarders.

    Notes:
        The replay protection token is requested before signing. If the signer
        fails, the token is lost: its queue counter value or bitmap bit will never
        be usable, and a retry gets a new token.

    """

    # how the target executes a lowered deploy call
    deploy_call_type: CallType = CallType.CALL

    def __init__(
        self,
        chain_id: int,
        signer: "SignerPort",
        address: str,
        replay_protection_authority: "ReplayProtectionAuthority",
        delegate_deployer_address: Optional[str] = None,
    ) -> None:
        """Initialize the forwarder.

        Args:
            chain_id (int): Chain the meta-transactions are valid on.
            signer (SignerPort): Signing identity.
            address (str): Address of this forwarder contract.
            replay_protection_authority (ReplayProtectionAuthority): Token issuer.
            delegate_deployer_address (str | None): Deployer used to lower deploy calls.

        """
        self.chain_id = int(chain_id)
        self.signer = signer
        self.address = parse_address(address)
        self.replay_protection_authority = replay_protection_authority
        self.delegate_deployer_address = (
            parse_address(delegate_deployer_address)
            if delegate_deployer_address is not None
            else None
        )

    @abstractmethod
    def encode_call_data(self, data: CallDataT) -> bytes:
        """Encode a single call in the shape signed for the target."""

    @abstractmethod
    def encode_batch_call_data(self, data_list: Sequence[BatchCallDataT]) -> bytes:
        """Encode a list of calls in the shape signed for the target."""

    @abstractmethod
    def encode_tx(
        self,
        data: CallDataT,
        replay_protection: bytes,
        replay_protection_authority: str,
        signature: bytes,
    ) -> bytes:
        """Encode the transaction payload of a signed single call."""

    @abstractmethod
    def encode_batch_tx(
        self,
        data_list: Sequence[BatchCallDataT],
        replay_protection: bytes,
        replay_protection_authority: str,
        signature: bytes,
    ) -> bytes:
        """Encode the transaction payload of a signed batch."""

    @abstractmethod
    def decode_tx(self, data: bytes) -> DecodedTx[CallDataT]:
        """Decode a payload produced by `encode_tx`."""

    @abstractmethod
    def decode_batch_tx(self, data: bytes) -> DecodedBatchTx[BatchCallDataT]:
        """Decode a payload produced by `encode_batch_tx`."""

    @abstractmethod
    def to_call_data(self, call: DirectCall, call_type: CallType) -> CallDataT:
        """Convert a direct call into the target single call shape."""

    @abstractmethod
    def to_batch_call_data(
        self, call: DirectCall, call_type: CallType, revert_on_fail: bool
    ) -> BatchCallDataT:
        """Convert a direct call into the target batch entry shape."""

    @abstractmethod
    def to_forward_params_fields(
        self, data: CallDataT
    ) -> tuple[str, int, bytes, CallType]:
        """Extract target, value, payload and call type of a single call."""

    def encode_for_deploy(self, call: DeployCall) -> DirectCall:
        """Lower a deploy call into a call to the delegate deployer.

        Raises:
            MalformedCallDescriptorError: If no delegate deployer is configured.

        """
        if self.delegate_deployer_address is None:
            raise MalformedCallDescriptorError(
                "Deploy calls require a delegate deployer address"
            )
        payload = DEPLOY_FUNCTION.encode_call(
            call.data, call.value, keccak(call.salt)
        )
        return DirectCall(to=self.delegate_deployer_address, data=payload)

    def _lower(self, call: Union[DirectCall, DeployCall]) -> CallDataT:
        if isinstance(call, DeployCall):
            return self.to_call_data(self.encode_for_deploy(call), self.deploy_call_type)
        return self.to_call_data(call, CallType.CALL)

    def _lower_batch_entry(
        self, call: Union[DirectCall, DeployCall], revert_on_fail: bool
    ) -> BatchCallDataT:
        if isinstance(call, DeployCall):
            return self.to_batch_call_data(
                self.encode_for_deploy(call), self.deploy_call_type, revert_on_fail
            )
        return self.to_batch_call_data(call, CallType.CALL, revert_on_fail)

    async def sign_meta_transaction(
        self,
        tx: Union[CallInput, Sequence[CallInput]],
        revert_on_fail: bool = True,
    ) -> MinimalTx:
        """Sign a call, or a batch of calls, and encode it for the forwarder.

        Args:
            tx: A call descriptor, or an ordered sequence of them for a batch.
            revert_on_fail (bool): For batches, revert the whole batch if one call fails.

        Returns:
            MinimalTx: The destination and payload to broadcast.

        Raises:
            MalformedCallDescriptorError: Before any token is issued, on invalid input.
            AuthorityUnavailableError: If the token could not be issued.
            SigningRejectedError: If the signer failed, the token is lost.

        """
        if _is_batch(tx):
            data_list = [
                self._lower_batch_entry(parse_call_descriptor(t), revert_on_fail)
                for t in tx  # type: ignore[union-attr] # checked by _is_batch
            ]
            return await self.sign_and_encode_batch_meta_transaction(data_list)

        data = self._lower(parse_call_descriptor(tx))
        return await self.sign_and_encode_meta_transaction(data)

    async def encode_and_sign_params(
        self,
        call_data: bytes,
        replay_protection: bytes,
        replay_protection_authority: str,
    ) -> tuple[bytes, bytes]:
        """Encode the signed parameters and sign their hash.

        Returns:
            tuple[bytes, bytes]: The encoded parameters and the signature.

        """
        encoded_meta_tx = encode_signed_params(
            call_data,
            replay_protection,
            replay_protection_authority,
            self.address,
            self.chain_id,
        )
        try:
            signature = await self.signer.sign_message(
                canonical_hash(
                    call_data,
                    replay_protection,
                    replay_protection_authority,
                    self.address,
                    self.chain_id,
                )
            )
        except SigningRejectedError:
            logger.warning(
                f"Signing rejected, replay protection 0x{replay_protection.hex()} "
                f"of authority {replay_protection_authority} is now unusable"
            )
            raise
        return encoded_meta_tx, signature

    async def _sign_call_data(self, encoded_call_data: bytes) -> tuple[bytes, bytes]:
        authority = self.replay_protection_authority
        replay_protection = await authority.get_encoded_replay_protection()
        _, signature = await self.encode_and_sign_params(
            encoded_call_data, replay_protection, authority.address
        )
        return replay_protection, signature

    async def sign_and_encode_meta_transaction(self, data: CallDataT) -> MinimalTx:
        """Take care of replay protection and sign a single meta-transaction."""
        encoded_call_data = self.encode_call_data(data)
        replay_protection, signature = await self._sign_call_data(encoded_call_data)
        encoded_tx = self.encode_tx(
            data,
            replay_protection,
            self.replay_protection_authority.address,
            signature,
        )
        logger.debug(f"Signed meta-transaction for forwarder {self.address}")
        return MinimalTx(to=self.address, data=encoded_tx)

    async def sign_and_encode_batch_meta_transaction(
        self, data_list: Sequence[BatchCallDataT]
    ) -> MinimalTx:
        """Batch a list of calls into a single meta-transaction, one signature for all."""
        encoded_call_data = self.encode_batch_call_data(data_list)
        replay_protection, signature = await self._sign_call_data(encoded_call_data)
        encoded_batch = self.encode_batch_tx(
            data_list,
            replay_protection,
            self.replay_protection_authority.address,
            signature,
        )
        logger.debug(
            f"Signed batch of {len(data_list)} calls for forwarder {self.address}"
        )
        return MinimalTx(to=self.address, data=encoded_batch)

    async def sign_forward_params(self, tx: CallInput) -> ForwardParams:
        """Sign a single call and return the full envelope instead of the payload."""
        if _is_batch(tx):
            raise MalformedCallDescriptorError(
                "Forward params describe a single call, use sign_meta_transaction for batches"
            )
        data = self._lower(parse_call_descriptor(tx))
        replay_protection, signature = await self._sign_call_data(
            self.encode_call_data(data)
        )
        target, value, payload, call_type = self.to_forward_params_fields(data)
        return ForwardParams(
            to=self.address,
            signer=self.signer.address,
            target=target,
            value=value,
            data=payload,
            call_type=call_type,
            replay_protection=replay_protection,
            replay_protection_authority=self.replay_protection_authority.address,
            chain_id=self.chain_id,
            signature=signature,
        )

    def encode_signed_meta_transaction(self, params: ForwardParams) -> bytes:
        """Encode the transaction payload of a signed envelope.

        Raises:
            MalformedCallDescriptorError: If the envelope targets another forwarder or chain.

        """
        if params.to != self.address or params.chain_id != self.chain_id:
            raise MalformedCallDescriptorError(
                f"Forward params for {params.to} on chain {params.chain_id} "
                f"cannot be encoded by forwarder {self.address} on chain {self.chain_id}"
            )
        data = self.to_call_data(
            DirectCall(to=params.target, data=params.data, value=params.value),
            params.call_type,
        )
        return self.encode_tx(
            data,
            params.replay_protection,
            params.replay_protection_authority,
            params.signature,
        )
