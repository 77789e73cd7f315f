# pragma: no cover # do not include tests modules in coverage metrics
"""Test the RelayHub forwarder."""

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak
from meta_tx.adapters.replay_protection import (
    BitFlipReplayProtection,
    MultiNonceReplayProtection,
)
from meta_tx.deployment import (
    BIT_FLIP_AUTHORITY_ADDRESS,
    MULTI_NONCE_AUTHORITY_ADDRESS,
    ChainID,
)
from meta_tx.domain.abi import (
    canonical_hash,
    decode_parameters,
    decode_replay_protection,
    encode_replay_protection,
)
from meta_tx.domain.models import CallType, DeployCall, DirectCall
from meta_tx.errors import (
    DecodeMismatchError,
    MalformedCallDescriptorError,
    SigningRejectedError,
)
from meta_tx.forwarders import (
    RelayHubBatchCallData,
    RelayHubCallData,
    RelayHubForwarder,
)
from meta_tx.forwarders.forwarder import DEPLOY_FUNCTION
from meta_tx.forwarders.relay_hub import FORWARD_FUNCTION


def recover(digest: bytes, signature: bytes) -> str:
    """Recover the address that signed a digest as a personal message."""
    return Account.recover_message(encode_defunct(primitive=digest), signature=signature)


@pytest.fixture
def multi_nonce(local_signer, relay_hub_address) -> MultiNonceReplayProtection:
    """Return a 30 queues authority on the relay hub."""
    return MultiNonceReplayProtection(30, local_signer.address, relay_hub_address)


@pytest.fixture
def forwarder(
    counting_signer, relay_hub_address, multi_nonce, delegate_deployer_address
) -> RelayHubForwarder:
    """Return a mainnet relay hub forwarder able to lower deploy calls."""
    return RelayHubForwarder(
        ChainID.MAINNET,
        counting_signer,
        relay_hub_address,
        multi_nonce,
        delegate_deployer_address=delegate_deployer_address,
    )


@pytest.mark.asyncio
async def test_sign_single_call(
    forwarder, local_signer, relay_hub_address, target_address
) -> None:
    """Test a fresh signer call is signed with the first multi-nonce token."""
    # Given a relay hub forwarder for a fresh signer
    # When signing a direct call
    tx = await forwarder.sign_meta_transaction({"to": target_address, "data": "0x1234"})
    # Then the transaction is sent to the relay hub
    assert tx.to == relay_hub_address
    # And it decodes back to the call, the first token and the authority
    decoded = forwarder.decode_tx(tx.data)
    assert decoded.meta_tx == RelayHubCallData(to=target_address, data=b"\x12\x34")
    assert decoded.replay_protection == encode_replay_protection(0, 0)
    assert decoded.replay_protection_authority == MULTI_NONCE_AUTHORITY_ADDRESS
    # And the signature recovers the signer over the canonical hash
    digest = canonical_hash(
        forwarder.encode_call_data(decoded.meta_tx),
        decoded.replay_protection,
        decoded.replay_protection_authority,
        relay_hub_address,
        ChainID.MAINNET,
    )
    assert recover(digest, decoded.signature) == local_signer.address
    # And the payload names the signer
    signer = FORWARD_FUNCTION.decode_call(tx.data)[4]
    assert signer.lower() == local_signer.address.lower()


def test_single_call_data_layout(forwarder, target_address) -> None:
    """Test single calls are signed as (callType, target, data)."""
    encoded = forwarder.encode_call_data(
        RelayHubCallData(to=target_address, data=b"\xab")
    )
    call_type, target, data = decode_parameters(["uint256", "address", "bytes"], encoded)
    assert call_type == CallType.CALL
    assert target.lower() == target_address.lower()
    assert data == b"\xab"


@pytest.mark.asyncio
async def test_value_is_ignored(forwarder, target_address) -> None:
    """Test the relay hub cannot forward value."""
    tx = await forwarder.sign_meta_transaction(
        DirectCall(to=target_address, data=b"\x01", value=10**18)
    )
    decoded = forwarder.decode_tx(tx.data)
    assert decoded.meta_tx == RelayHubCallData(to=target_address, data=b"\x01")


@pytest.mark.asyncio
async def test_deploy_call_is_lowered(forwarder, delegate_deployer_address) -> None:
    """Test a descriptor with a salt becomes a call to the delegate deployer."""
    # Given a deploy descriptor
    init_code, salt = b"\x60\x80\x60\x40", b"my-salt"
    # When signing it
    tx = await forwarder.sign_meta_transaction({"data": init_code, "salt": salt})
    # Then the relay hub calls the deployer with the init code and hashed salt
    decoded = forwarder.decode_tx(tx.data)
    assert decoded.meta_tx.to == delegate_deployer_address
    assert decoded.meta_tx.data == DEPLOY_FUNCTION.encode_call(
        init_code, 0, keccak(salt)
    )
    assert DEPLOY_FUNCTION.decode_call(decoded.meta_tx.data) == (
        init_code,
        0,
        keccak(salt),
    )


@pytest.mark.asyncio
async def test_sign_batch_with_one_signature(
    forwarder,
    counting_signer,
    local_signer,
    relay_hub_address,
    target_address,
    delegate_deployer_address,
) -> None:
    """Test a mixed batch is signed once and decodes back in order."""
    # Given a batch of a deployment and a direct call
    batch = [
        DeployCall(data=b"\x60\x00", salt=b"\x01"),
        DirectCall(to=target_address, data=b"\x12\x34"),
    ]
    # When signing the batch
    tx = await forwarder.sign_meta_transaction(batch, revert_on_fail=False)
    # Then a single signature was produced
    assert counting_signer.calls == 1
    assert tx.to == relay_hub_address
    # And the batch decodes to both calls in order
    decoded = forwarder.decode_batch_tx(tx.data)
    assert [entry.to for entry in decoded.meta_tx_list] == [
        delegate_deployer_address,
        target_address,
    ]
    assert decoded.meta_tx_list[1].data == b"\x12\x34"
    assert all(not entry.revert_on_fail for entry in decoded.meta_tx_list)
    # And the signature recovers the signer over the batch call data
    digest = canonical_hash(
        forwarder.encode_batch_call_data(decoded.meta_tx_list),
        decoded.replay_protection,
        decoded.replay_protection_authority,
        relay_hub_address,
        ChainID.MAINNET,
    )
    assert recover(digest, decoded.signature) == local_signer.address


@pytest.mark.parametrize("length", [0, 1, 3])
def test_batch_round_trip(forwarder, target_address, length) -> None:
    """Test batches of any length decode to their encoded fields."""
    # Given a batch of calls
    data_list = [
        RelayHubBatchCallData(
            to=target_address, data=bytes([i]) * i, revert_on_fail=bool(i % 2)
        )
        for i in range(length)
    ]
    token = encode_replay_protection(4, 2)
    # When encoding then decoding it
    decoded = forwarder.decode_batch_tx(
        forwarder.encode_batch_tx(
            data_list, token, BIT_FLIP_AUTHORITY_ADDRESS, b"\x01" * 65
        )
    )
    # Then every field is restored
    assert decoded.meta_tx_list == data_list
    assert decoded.replay_protection == token
    assert decoded.replay_protection_authority == BIT_FLIP_AUTHORITY_ADDRESS
    assert decoded.signature == b"\x01" * 65


@pytest.mark.asyncio
async def test_decode_mismatch(forwarder, target_address) -> None:
    """Test single and batch payloads are not confused."""
    single = await forwarder.sign_meta_transaction({"to": target_address})
    batch = await forwarder.sign_meta_transaction([{"to": target_address}])
    with pytest.raises(DecodeMismatchError):
        forwarder.decode_tx(batch.data)
    with pytest.raises(DecodeMismatchError):
        forwarder.decode_batch_tx(single.data)
    with pytest.raises(DecodeMismatchError):
        forwarder.decode_tx(b"")


@pytest.mark.asyncio
async def test_deploy_without_deployer_consumes_no_token(
    local_signer, relay_hub_address, multi_nonce
) -> None:
    """Test deploy calls are rejected before a token is issued without deployer."""
    # Given a forwarder without delegate deployer
    forwarder = RelayHubForwarder(
        ChainID.MAINNET, local_signer, relay_hub_address, multi_nonce
    )
    # When signing a deploy call
    # Then the descriptor is malformed
    with pytest.raises(MalformedCallDescriptorError):
        await forwarder.sign_meta_transaction({"data": "0x6000", "salt": "0x01"})
    # And the next token is still the first one
    token = await multi_nonce.get_encoded_replay_protection()
    assert decode_replay_protection(token) == (0, 0)


@pytest.mark.asyncio
async def test_malformed_descriptor_consumes_no_token(forwarder, multi_nonce) -> None:
    """Test invalid input is rejected before a token is issued."""
    with pytest.raises(MalformedCallDescriptorError):
        await forwarder.sign_meta_transaction([{"data": "0x1234"}])
    token = await multi_nonce.get_encoded_replay_protection()
    assert decode_replay_protection(token) == (0, 0)


@pytest.mark.asyncio
async def test_signing_rejected_burns_the_token(
    rejecting_signer, relay_hub_address, multi_nonce, target_address
) -> None:
    """Test a rejected signature does not give its token back."""
    # Given a forwarder whose signer refuses to sign
    forwarder = RelayHubForwarder(
        ChainID.MAINNET, rejecting_signer, relay_hub_address, multi_nonce
    )
    # When signing a call
    # Then the rejection is raised
    with pytest.raises(SigningRejectedError):
        await forwarder.sign_meta_transaction({"to": target_address})
    # And the token issued for it is not handed out again
    token = await multi_nonce.get_encoded_replay_protection()
    assert decode_replay_protection(token) == (1, 0)


@pytest.mark.asyncio
async def test_chain_id_is_signed(local_signer, relay_hub_address, target_address) -> None:
    """Test the same call and token signed for two chains gives two signatures."""
    signatures = []
    for chain_id in (ChainID.MAINNET, ChainID.ROPSTEN):
        authority = BitFlipReplayProtection(local_signer.address, relay_hub_address)
        forwarder = RelayHubForwarder(
            chain_id, local_signer, relay_hub_address, authority
        )
        tx = await forwarder.sign_meta_transaction({"to": target_address})
        signatures.append(forwarder.decode_tx(tx.data).signature)
    assert signatures[0] != signatures[1]


@pytest.mark.asyncio
async def test_forward_params(
    forwarder, local_signer, relay_hub_address, target_address
) -> None:
    """Test the signed envelope encodes to the same payload as the decoded call."""
    # Given the signed envelope of a direct call
    params = await forwarder.sign_forward_params(
        {"to": target_address, "data": "0xabcd", "value": 5}
    )
    # Then it describes the call for the relay hub
    assert params.to == relay_hub_address
    assert params.signer == local_signer.address
    assert params.target == target_address
    assert params.value == 0
    assert params.data == b"\xab\xcd"
    assert params.call_type == CallType.CALL
    assert params.chain_id == ChainID.MAINNET
    assert params.replay_protection_authority == MULTI_NONCE_AUTHORITY_ADDRESS
    # And encoding it gives a payload decoding to the same fields
    decoded = forwarder.decode_tx(forwarder.encode_signed_meta_transaction(params))
    assert decoded.meta_tx == RelayHubCallData(to=target_address, data=b"\xab\xcd")
    assert decoded.replay_protection == params.replay_protection
    assert decoded.signature == params.signature


@pytest.mark.asyncio
async def test_forward_params_of_another_chain_are_rejected(
    forwarder, target_address
) -> None:
    """Test an envelope is only encoded by the forwarder it was signed for."""
    params = await forwarder.sign_forward_params({"to": target_address})
    other = params.model_copy(update={"chain_id": ChainID.ROPSTEN})
    with pytest.raises(MalformedCallDescriptorError):
        forwarder.encode_signed_meta_transaction(other)


@pytest.mark.asyncio
async def test_forward_params_reject_batches(forwarder, target_address) -> None:
    """Test envelopes describe single calls only."""
    with pytest.raises(MalformedCallDescriptorError):
        await forwarder.sign_forward_params([{"to": target_address}])


@pytest.mark.asyncio
async def test_signed_message_is_the_canonical_hash(
    forwarder, counting_signer, relay_hub_address, target_address
) -> None:
    """Test the signer receives exactly the canonical hash of the params."""
    # Given call data, a token and an authority
    call_data = forwarder.encode_call_data(RelayHubCallData(to=target_address))
    token = encode_replay_protection(2, 9)
    # When encoding and signing the params
    encoded, _ = await forwarder.encode_and_sign_params(
        call_data, token, MULTI_NONCE_AUTHORITY_ADDRESS
    )
    # Then the signed message is the canonical hash of the encoded params
    expected = canonical_hash(
        call_data, token, MULTI_NONCE_AUTHORITY_ADDRESS, relay_hub_address, 1
    )
    assert counting_signer.messages == [expected]
    assert keccak(encoded) == expected
