"""Implement the ProxyAccount forwarder.

Each signer owns a proxy account, a minimal proxy of the base account deployed
by the proxy account deployer at a CREATE2 address derived from the signer.
The proxy account checks the replay protection and the signature itself, it can
forward value and delegate calls, deploy calls are run as a delegate call to
the delegate deployer so the proxy account is the creator.
"""

from collections.abc import Sequence
from logging import getLogger
from typing import TYPE_CHECKING, Optional

from eth_abi import encode
from eth_utils import keccak, to_canonical_address
from meta_tx.deployment import BASE_ACCOUNT_ADDRESS, PROXY_ACCOUNT_DEPLOYER_ADDRESS
from meta_tx.domain.abi import ContractFunction, create2_address
from meta_tx.domain.models import (
    Address,
    CallType,
    DecodedBatchTx,
    DecodedTx,
    DirectCall,
    FrozenModel,
    HexBytes,
    MinimalTx,
    Uint256,
    parse_address,
)
from meta_tx.errors import MalformedCallDescriptorError
from meta_tx.forwarders.forwarder import Forwarder

if TYPE_CHECKING:
    from meta_tx.ports.chain import ChainReaderPort
    from meta_tx.ports.replay_protection import ReplayProtectionAuthority
    from meta_tx.ports.signer import SignerPort

logger = getLogger(__name__)

CALL_TYPES = ("address", "uint256", "bytes", "uint8")
BATCH_ENTRY_TYPE = "(address,uint256,bytes,uint8,bool)"

FORWARD_FUNCTION = ContractFunction(
    "forward",
    ["address", "uint256", "bytes", "uint8", "bytes", "address", "bytes"],
)
BATCH_FUNCTION = ContractFunction(
    "batch", [f"{BATCH_ENTRY_TYPE}[]", "bytes", "address", "bytes"]
)
CREATE_PROXY_ACCOUNT_FUNCTION = ContractFunction("createProxyAccount", ["address"])

# EIP-1167 minimal proxy creation code, around the implementation address
_MINIMAL_PROXY_PREFIX = bytes.fromhex("3d602d80600a3d3981f3363d3d373d3d3d363d73")
_MINIMAL_PROXY_SUFFIX = bytes.fromhex("5af43d82803e903d91602b57fd5bf3")


def minimal_proxy_init_code(implementation: str) -> bytes:
    """Creation code of a minimal proxy delegating to `implementation`."""
    return (
        _MINIMAL_PROXY_PREFIX
        + to_canonical_address(implementation)
        + _MINIMAL_PROXY_SUFFIX
    )


def compute_proxy_account_address(
    signer_address: str,
    proxy_deployer_address: str = PROXY_ACCOUNT_DEPLOYER_ADDRESS,
    base_account_address: str = BASE_ACCOUNT_ADDRESS,
) -> str:
    """Compute the deterministic proxy account address of a signer."""
    salt = keccak(encode(("address",), (parse_address(signer_address),)))
    return create2_address(
        proxy_deployer_address, salt, minimal_proxy_init_code(base_account_address)
    )


class ProxyAccountCallData(FrozenModel):
    """Call executed by a proxy account."""

    to: Address
    value: Uint256 = 0
    data: HexBytes = b""
    call_type: CallType = CallType.CALL


class ProxyAccountBatchCallData(ProxyAccountCallData):
    """Entry of a batch executed by a proxy account."""

    revert_on_fail: bool = True


class ProxyAccountForwarder(Forwarder[ProxyAccountCallData, ProxyAccountBatchCallData]):
    """Sign meta-transactions for the signer proxy account.

    The forwarder address is the proxy account address, tokens must be checked
    against the proxy account replay protection storage:

    Examples:
        >>> proxy_address = compute_proxy_account_address(signer.address)
        >>> forwarder = ProxyAccountForwarder(
        ...     ChainID.MAINNET,
        ...     signer,
        ...     BitFlipReplayProtection(signer.address, proxy_address),
        ...     delegate_deployer_address=deployer,
        ... )

    """

    deploy_call_type = CallType.DELEGATE

    def __init__(
        self,
        chain_id: int,
        signer: "SignerPort",
        replay_protection_authority: "ReplayProtectionAuthority",
        proxy_deployer_address: str = PROXY_ACCOUNT_DEPLOYER_ADDRESS,
        base_account_address: str = BASE_ACCOUNT_ADDRESS,
        delegate_deployer_address: Optional[str] = None,
        chain_reader: Optional["ChainReaderPort"] = None,
    ) -> None:
        """Initialize the forwarder for the signer proxy account.

        Args:
            chain_id (int): Chain the meta-transactions are valid on.
            signer (SignerPort): Signing identity, owner of the proxy account.
            replay_protection_authority (ReplayProtectionAuthority): Token issuer.
            proxy_deployer_address (str): Deployer of the proxy accounts.
            base_account_address (str): Implementation behind the proxy accounts.
            delegate_deployer_address (str | None): Deployer used to lower deploy calls.
            chain_reader (ChainReaderPort | None): Reader used to check the deployment.

        """
        self.proxy_deployer_address = parse_address(proxy_deployer_address)
        self.base_account_address = parse_address(base_account_address)
        self._chain_reader = chain_reader
        super().__init__(
            chain_id=chain_id,
            signer=signer,
            address=compute_proxy_account_address(
                signer.address, self.proxy_deployer_address, self.base_account_address
            ),
            replay_protection_authority=replay_protection_authority,
            delegate_deployer_address=delegate_deployer_address,
        )

    def to_call_data(
        self, call: DirectCall, call_type: CallType
    ) -> ProxyAccountCallData:
        """Convert a direct call into a proxy account call."""
        return ProxyAccountCallData(
            to=call.to, value=call.value, data=call.data, call_type=call_type
        )

    def to_batch_call_data(
        self, call: DirectCall, call_type: CallType, revert_on_fail: bool
    ) -> ProxyAccountBatchCallData:
        """Convert a direct call into a proxy account batch entry."""
        return ProxyAccountBatchCallData(
            to=call.to,
            value=call.value,
            data=call.data,
            call_type=call_type,
            revert_on_fail=revert_on_fail,
        )

    def to_forward_params_fields(
        self, data: ProxyAccountCallData
    ) -> tuple[str, int, bytes, CallType]:
        """Extract target, value, payload and call type of a proxy account call."""
        return data.to, data.value, data.data, data.call_type

    def encode_call_data(self, data: ProxyAccountCallData) -> bytes:
        """Encode `(address target, uint256 value, bytes data, uint8 callType)`."""
        return bytes(
            encode(CALL_TYPES, (data.to, data.value, data.data, int(data.call_type)))
        )

    def encode_batch_call_data(
        self, data_list: Sequence[ProxyAccountBatchCallData]
    ) -> bytes:
        """Encode `((address,uint256,bytes,uint8,bool)[] calls)`."""
        return bytes(
            encode((f"{BATCH_ENTRY_TYPE}[]",), (self._batch_entries(data_list),))
        )

    @staticmethod
    def _batch_entries(
        data_list: Sequence[ProxyAccountBatchCallData],
    ) -> list[tuple[str, int, bytes, int, bool]]:
        return [
            (d.to, d.value, d.data, int(d.call_type), d.revert_on_fail)
            for d in data_list
        ]

    def encode_tx(
        self,
        data: ProxyAccountCallData,
        replay_protection: bytes,
        replay_protection_authority: str,
        signature: bytes,
    ) -> bytes:
        """Encode a call to `ProxyAccount.forward`."""
        if data.call_type == CallType.BATCH:
            raise MalformedCallDescriptorError(
                "Batch call type is reserved to ProxyAccount.batch"
            )
        return FORWARD_FUNCTION.encode_call(
            data.to,
            data.value,
            data.data,
            int(data.call_type),
            replay_protection,
            replay_protection_authority,
            signature,
        )

    def encode_batch_tx(
        self,
        data_list: Sequence[ProxyAccountBatchCallData],
        replay_protection: bytes,
        replay_protection_authority: str,
        signature: bytes,
    ) -> bytes:
        """Encode a call to `ProxyAccount.batch`."""
        return BATCH_FUNCTION.encode_call(
            self._batch_entries(data_list),
            replay_protection,
            replay_protection_authority,
            signature,
        )

    def decode_tx(self, data: bytes) -> DecodedTx[ProxyAccountCallData]:
        """Decode a call to `ProxyAccount.forward`."""
        (
            target,
            value,
            call_data,
            call_type,
            replay_protection,
            authority,
            signature,
        ) = FORWARD_FUNCTION.decode_call(data)
        return DecodedTx[ProxyAccountCallData](
            meta_tx=ProxyAccountCallData(
                to=target, value=value, data=call_data, call_type=call_type
            ),
            replay_protection=replay_protection,
            replay_protection_authority=authority,
            signature=signature,
        )

    def decode_batch_tx(
        self, data: bytes
    ) -> DecodedBatchTx[ProxyAccountBatchCallData]:
        """Decode a call to `ProxyAccount.batch`."""
        entries, replay_protection, authority, signature = BATCH_FUNCTION.decode_call(
            data
        )
        return DecodedBatchTx[ProxyAccountBatchCallData](
            meta_tx_list=[
                ProxyAccountBatchCallData(
                    to=to,
                    value=value,
                    data=call_data,
                    call_type=call_type,
                    revert_on_fail=revert,
                )
                for to, value, call_data, call_type, revert in entries
            ],
            replay_protection=replay_protection,
            replay_protection_authority=authority,
            signature=signature,
        )

    def create_proxy_account_tx(self) -> MinimalTx:
        """Build the transaction deploying the signer proxy account."""
        return MinimalTx(
            to=self.proxy_deployer_address,
            data=CREATE_PROXY_ACCOUNT_FUNCTION.encode_call(self.signer.address),
        )

    async def is_proxy_account_deployed(self) -> bool:
        """Check whether the signer proxy account has code on chain.

        Raises:
            ValueError: If the forwarder has no chain reader.
            ChainReadError: If the code could not be read.

        """
        if self._chain_reader is None:
            raise ValueError("A chain reader is required to check the deployment")
        code = await self._chain_reader.get_code(self.address)
        logger.debug(f"Proxy account {self.address} has {len(code)} bytes of code")
        return len(code) > 0
