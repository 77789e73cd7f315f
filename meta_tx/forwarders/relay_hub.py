"""Implement the RelayHub forwarder.

The relay hub is a single contract shared by every signer. It checks the replay
protection and the signature, then calls the target on behalf of the signer.
It cannot forward value, the value of a call is ignored.
"""

from collections.abc import Sequence
from logging import getLogger

from eth_abi import encode
from meta_tx.domain.abi import ContractFunction
from meta_tx.domain.models import (
    Address,
    CallType,
    DecodedBatchTx,
    DecodedTx,
    DirectCall,
    FrozenModel,
    HexBytes,
)
from meta_tx.forwarders.forwarder import Forwarder

logger = getLogger(__name__)

BATCH_ENTRY_TYPE = "(address,bytes,bool)"

FORWARD_FUNCTION = ContractFunction(
    "forward", ["address", "bytes", "bytes", "address", "address", "bytes"]
)
BATCH_FUNCTION = ContractFunction(
    "batch", [f"{BATCH_ENTRY_TYPE}[]", "bytes", "address", "address", "bytes"]
)


class RelayHubCallData(FrozenModel):
    """Call forwarded by the relay hub."""

    to: Address
    data: HexBytes = b""


class RelayHubBatchCallData(FrozenModel):
    """Entry of a batch forwarded by the relay hub."""

    to: Address
    data: HexBytes = b""
    revert_on_fail: bool = True


class RelayHubForwarder(Forwarder[RelayHubCallData, RelayHubBatchCallData]):
    """Sign meta-transactions for the relay hub.

    Examples:
        >>> forwarder = RelayHubForwarder(
        ...     ChainID.MAINNET,
        ...     signer,
        ...     RELAY_HUB_ADDRESS,
        ...     MultiNonceReplayProtection(30, signer.address, RELAY_HUB_ADDRESS),
        ... )
        >>> tx = await forwarder.sign_meta_transaction({"to": target, "data": call_data})

    """

    deploy_call_type = CallType.CALL

    def to_call_data(self, call: DirectCall, call_type: CallType) -> RelayHubCallData:
        """Convert a direct call into a relay hub call, dropping its value."""
        if call.value:
            logger.debug(f"Relay hub ignores the value {call.value} sent to {call.to}")
        return RelayHubCallData(to=call.to, data=call.data)

    def to_batch_call_data(
        self, call: DirectCall, call_type: CallType, revert_on_fail: bool
    ) -> RelayHubBatchCallData:
        """Convert a direct call into a relay hub batch entry, dropping its value."""
        return RelayHubBatchCallData(
            to=call.to, data=call.data, revert_on_fail=revert_on_fail
        )

    def to_forward_params_fields(
        self, data: RelayHubCallData
    ) -> tuple[str, int, bytes, CallType]:
        """Extract target, value, payload and call type of a relay hub call."""
        return data.to, 0, data.data, CallType.CALL

    def encode_call_data(self, data: RelayHubCallData) -> bytes:
        """Encode `(uint256 callType, address target, bytes data)`."""
        return bytes(
            encode(
                ("uint256", "address", "bytes"),
                (int(CallType.CALL), data.to, data.data),
            )
        )

    def encode_batch_call_data(
        self, data_list: Sequence[RelayHubBatchCallData]
    ) -> bytes:
        """Encode `(uint256 callType, (address,bytes,bool)[] calls)`."""
        return bytes(
            encode(
                ("uint256", f"{BATCH_ENTRY_TYPE}[]"),
                (int(CallType.BATCH), self._batch_entries(data_list)),
            )
        )

    @staticmethod
    def _batch_entries(
        data_list: Sequence[RelayHubBatchCallData],
    ) -> list[tuple[str, bytes, bool]]:
        return [(d.to, d.data, d.revert_on_fail) for d in data_list]

    def encode_tx(
        self,
        data: RelayHubCallData,
        replay_protection: bytes,
        replay_protection_authority: str,
        signature: bytes,
    ) -> bytes:
        """Encode a call to `RelayHub.forward`."""
        return FORWARD_FUNCTION.encode_call(
            data.to,
            data.data,
            replay_protection,
            replay_protection_authority,
            self.signer.address,
            signature,
        )

    def encode_batch_tx(
        self,
        data_list: Sequence[RelayHubBatchCallData],
        replay_protection: bytes,
        replay_protection_authority: str,
        signature: bytes,
    ) -> bytes:
        """Encode a call to `RelayHub.batch`."""
        return BATCH_FUNCTION.encode_call(
            self._batch_entries(data_list),
            replay_protection,
            replay_protection_authority,
            self.signer.address,
            signature,
        )

    def decode_tx(self, data: bytes) -> DecodedTx[RelayHubCallData]:
        """Decode a call to `RelayHub.forward`."""
        target, call_data, replay_protection, authority, _signer, signature = (
            FORWARD_FUNCTION.decode_call(data)
        )
        return DecodedTx[RelayHubCallData](
            meta_tx=RelayHubCallData(to=target, data=call_data),
            replay_protection=replay_protection,
            replay_protection_authority=authority,
            signature=signature,
        )

    def decode_batch_tx(self, data: bytes) -> DecodedBatchTx[RelayHubBatchCallData]:
        """Decode a call to `RelayHub.batch`."""
        entries, replay_protection, authority, _signer, signature = (
            BATCH_FUNCTION.decode_call(data)
        )
        return DecodedBatchTx[RelayHubBatchCallData](
            meta_tx_list=[
                RelayHubBatchCallData(to=to, data=call_data, revert_on_fail=revert)
                for to, call_data, revert in entries
            ],
            replay_protection=replay_protection,
            replay_protection_authority=authority,
            signature=signature,
        )
