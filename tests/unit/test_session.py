"""Tests for the state channel client and session manager."""
import asyncio
import pytest
from unittest.mock import AsyncMock

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
WETH = "0x4200000000000000000000000000000000000006"
TEN_USDC = 10_000_000


def make_client(**kwargs):
    from agentflow.session import HmacSigner, SessionClient

    kwargs.setdefault("confirmation_delay", 0)
    return SessionClient(HmacSigner("test-key"), **kwargs)


def make_manager(client=None, **kwargs):
    from agentflow.session import SessionManager

    return SessionManager(client or make_client(), participant="0xagent", asset=USDC, **kwargs)


def sell_usdc(amount=TEN_USDC, min_output=0, deadline=None):
    from agentflow.models import TradeParams

    return TradeParams(
        from_token=USDC, to_token=WETH, amount=amount, min_output=min_output, deadline=deadline
    )


# =============================================================================
# Signer
# =============================================================================

def test_hmac_signer_round_trip():
    from agentflow.session import HmacSigner

    signer = HmacSigner("key")
    signature = signer.sign(b"message")

    assert signature.startswith("0x")
    assert signer.verify(b"message", signature) is True
    assert signer.verify(b"other", signature) is False
    assert HmacSigner("other-key").verify(b"message", signature) is False


# =============================================================================
# Session manager lifecycle
# =============================================================================

@pytest.mark.asyncio
async def test_create_session_becomes_active():
    from agentflow.models import SessionStatus

    manager = make_manager()

    session = await manager.create_session(500_000_000)

    assert session.status == SessionStatus.ACTIVE
    assert session.deposit == session.balance == 500_000_000
    assert session.nonce == 0
    assert manager.is_active() is True


@pytest.mark.asyncio
async def test_three_trades_from_500_usdc_deposit():
    from agentflow.models import SessionStatus

    manager = make_manager()
    await manager.create_session(500_000_000)

    for _ in range(3):
        await manager.execute_trade(sell_usdc())

    assert manager.get_balance() == 470_000_000
    assert manager.get_trade_count() == 3
    assert manager.session.status == SessionStatus.ACTIVE


@pytest.mark.asyncio
async def test_trade_into_session_asset_credits_output():
    from agentflow.models import TradeParams

    manager = make_manager()
    await manager.create_session(500_000_000)

    result = await manager.execute_trade(
        TradeParams(from_token=WETH, to_token=USDC, amount=TEN_USDC, min_output=0)
    )

    assert result.output_amount == 9_900_000
    assert manager.get_balance() == 509_900_000


@pytest.mark.asyncio
async def test_concurrent_trades_get_consecutive_nonces():
    manager = make_manager()
    await manager.create_session(500_000_000)

    results = await asyncio.gather(*(manager.execute_trade(sell_usdc()) for _ in range(5)))

    assert sorted(r.nonce for r in results) == [1, 2, 3, 4, 5]
    assert manager.get_trade_count() == 5
    assert manager.get_balance() == 450_000_000


@pytest.mark.asyncio
async def test_create_session_twice_is_rejected():
    from agentflow.core.errors import SessionStateError

    manager = make_manager()
    await manager.create_session(500_000_000)

    with pytest.raises(SessionStateError, match="already active"):
        await manager.create_session(500_000_000)


@pytest.mark.asyncio
async def test_create_session_rejects_non_positive_deposit():
    manager = make_manager()

    with pytest.raises(ValueError):
        await manager.create_session(0)


@pytest.mark.asyncio
async def test_confirmation_timeout_discards_session():
    from agentflow.core.errors import SessionTimeout

    manager = make_manager(make_client(confirmation_delay=1.0), confirmation_timeout=0.01)

    with pytest.raises(SessionTimeout):
        await manager.create_session(500_000_000)

    assert manager.session is None
    assert manager.is_active() is False


@pytest.mark.asyncio
async def test_cancelled_open_discards_session():
    from agentflow.models import SessionStatus

    client = make_client(confirmation_delay=5.0)
    manager = make_manager(client, confirmation_timeout=10.0)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(manager.create_session(500_000_000), 0.05)

    assert manager.session is None

    client.confirmation_delay = 0
    session = await manager.create_session(500_000_000)
    assert session.status == SessionStatus.ACTIVE


@pytest.mark.asyncio
async def test_trade_without_session_is_rejected():
    from agentflow.core.errors import SessionStateError

    manager = make_manager()

    with pytest.raises(SessionStateError, match="No active session"):
        await manager.execute_trade(sell_usdc())


@pytest.mark.asyncio
async def test_settle_without_session_is_rejected():
    from agentflow.core.errors import SessionStateError

    manager = make_manager()

    with pytest.raises(SessionStateError, match="No session to settle"):
        await manager.settle_session()


@pytest.mark.asyncio
async def test_settle_closes_session_and_blocks_trades():
    from agentflow.core.errors import SessionStateError
    from agentflow.models import SessionStatus

    manager = make_manager()
    await manager.create_session(500_000_000)
    await manager.execute_trade(sell_usdc())

    result = await manager.settle_session()

    assert result.success is True
    assert result.final_balance == 490_000_000
    assert result.tx_hash.startswith("0x")
    assert manager.session.status == SessionStatus.CLOSED

    with pytest.raises(SessionStateError):
        await manager.execute_trade(sell_usdc())
    with pytest.raises(SessionStateError):
        await manager.settle_session()


@pytest.mark.asyncio
async def test_new_session_after_settlement():
    manager = make_manager()
    first = await manager.create_session(500_000_000)
    await manager.settle_session()

    second = await manager.create_session(200_000_000)

    assert second.channel_id != first.channel_id
    assert second.nonce == 0
    assert manager.get_balance() == 200_000_000


@pytest.mark.asyncio
async def test_settlement_failure_reverts_to_active():
    from agentflow.core.errors import ExecutionFailure
    from agentflow.models import SessionStatus

    client = make_client()
    manager = make_manager(client)
    await manager.create_session(500_000_000)
    await manager.execute_trade(sell_usdc())

    client.settle_channel = AsyncMock(side_effect=RuntimeError("rpc unavailable"))
    with pytest.raises(ExecutionFailure, match="rpc unavailable"):
        await manager.settle_session()

    assert manager.session.status == SessionStatus.ACTIVE
    assert manager.get_trade_count() == 1
    assert manager.get_balance() == 490_000_000

    # Still usable, and settlement can be retried
    await manager.execute_trade(sell_usdc())
    del client.settle_channel
    result = await manager.settle_session()
    assert result.final_balance == 480_000_000


@pytest.mark.asyncio
async def test_settlement_timeout_reverts_to_active():
    from agentflow.core.errors import SessionTimeout
    from agentflow.models import SessionStatus

    client = make_client()
    manager = make_manager(client, settlement_timeout=0.01)
    await manager.create_session(500_000_000)

    async def slow_settle(channel_id, final_state):
        await asyncio.sleep(1.0)
        return "0xlate"

    client.settle_channel = slow_settle
    with pytest.raises(SessionTimeout):
        await manager.settle_session()

    assert manager.session.status == SessionStatus.ACTIVE


@pytest.mark.asyncio
async def test_cancelled_settlement_reverts_to_active():
    from agentflow.models import SessionStatus

    client = make_client()
    manager = make_manager(client, settlement_timeout=10.0)
    await manager.create_session(500_000_000)
    original_settle = client.settle_channel

    async def slow_settle(channel_id, final_state):
        await asyncio.sleep(5.0)
        return "0xlate"

    client.settle_channel = slow_settle
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(manager.settle_session(), 0.05)

    assert manager.session.status == SessionStatus.ACTIVE
    assert manager.session.balance == 500_000_000

    client.settle_channel = original_settle
    result = await manager.settle_session()
    assert result.final_balance == 500_000_000
    assert manager.session.status == SessionStatus.CLOSED


@pytest.mark.asyncio
async def test_rejected_trade_leaves_session_untouched():
    from agentflow.core.errors import TradeRejected

    manager = make_manager()
    await manager.create_session(500_000_000)

    with pytest.raises(TradeRejected, match="below minimum"):
        await manager.execute_trade(sell_usdc(min_output=TEN_USDC))

    assert manager.get_trade_count() == 0
    assert manager.get_balance() == 500_000_000


# =============================================================================
# Channel client
# =============================================================================

async def open_confirmed(client, deposit=500_000_000):
    channel_id = await client.open_channel("0xagent", USDC, deposit)
    await client.wait_for_confirmation(channel_id)
    return channel_id


@pytest.mark.asyncio
async def test_stale_nonce_trade_is_rejected():
    from agentflow.core.errors import StaleNonceError

    client = make_client()
    channel_id = await open_confirmed(client)
    await client.sign_trade(channel_id, sell_usdc(), 0)

    forged = client.sign(channel_id, sell_usdc(), 0)

    with pytest.raises(StaleNonceError) as exc_info:
        await client.submit_trade(forged)
    assert exc_info.value.recorded_nonce == 1

    state = await client.get_channel_state(channel_id)
    assert state.nonce == 1
    assert state.balances[0] == 490_000_000


@pytest.mark.asyncio
async def test_future_nonce_trade_is_rejected():
    from agentflow.core.errors import TradeRejected

    client = make_client()
    channel_id = await open_confirmed(client)

    with pytest.raises(TradeRejected, match="ahead"):
        await client.sign_trade(channel_id, sell_usdc(), 3)


@pytest.mark.asyncio
async def test_tampered_trade_is_rejected():
    from dataclasses import replace
    from agentflow.core.errors import TradeRejected

    client = make_client()
    channel_id = await open_confirmed(client)
    signed = client.sign(channel_id, sell_usdc(), 0)

    tampered = replace(signed, params=sell_usdc(amount=TEN_USDC * 10))

    with pytest.raises(TradeRejected, match="signature"):
        await client.submit_trade(tampered)


@pytest.mark.asyncio
async def test_unconfirmed_channel_rejects_trades():
    from agentflow.core.errors import TradeRejected

    client = make_client()
    channel_id = await client.open_channel("0xagent", USDC, 500_000_000)

    with pytest.raises(TradeRejected, match="not confirmed"):
        await client.sign_trade(channel_id, sell_usdc(), 0)


@pytest.mark.asyncio
async def test_expired_deadline_is_rejected():
    from agentflow.core.errors import TradeRejected

    client = make_client(clock=lambda: 1_000.0)
    channel_id = await open_confirmed(client)

    with pytest.raises(TradeRejected, match="deadline"):
        await client.sign_trade(channel_id, sell_usdc(deadline=999.0), 0)


@pytest.mark.asyncio
async def test_overdraw_is_rejected():
    from agentflow.core.errors import TradeRejected

    client = make_client()
    channel_id = await open_confirmed(client, deposit=TEN_USDC)

    with pytest.raises(TradeRejected, match="Insufficient"):
        await client.sign_trade(channel_id, sell_usdc(amount=TEN_USDC + 1), 0)


@pytest.mark.asyncio
async def test_settle_requires_final_state_at_current_nonce():
    from dataclasses import replace
    from agentflow.core.errors import StaleNonceError, TradeRejected

    client = make_client()
    channel_id = await open_confirmed(client)
    await client.sign_trade(channel_id, sell_usdc(), 0)
    state = await client.get_channel_state(channel_id)

    with pytest.raises(TradeRejected, match="final"):
        await client.settle_channel(channel_id, state)
    with pytest.raises(StaleNonceError):
        await client.settle_channel(channel_id, replace(state, nonce=0, is_final=True))

    tx_hash = await client.settle_channel(channel_id, replace(state, is_final=True))
    assert tx_hash.startswith("0x")

    with pytest.raises(TradeRejected, match="final"):
        await client.sign_trade(channel_id, sell_usdc(), 1)
