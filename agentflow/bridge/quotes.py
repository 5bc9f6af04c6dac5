"""Bridge quote providers."""
import logging
from typing import Any, Protocol, runtime_checkable

import aiohttp

from agentflow.core.chains import ARBITRUM, BASE
from agentflow.core.errors import ExecutionFailure
from agentflow.models import BridgeParams, BridgeQuote, BridgeStep

logger = logging.getLogger(__name__)

ETHEREUM = 1

# Typical settlement times, seconds
BRIDGE_TIME_ESTIMATES = {
    (BASE, ARBITRUM): 120,
    (ARBITRUM, BASE): 120,
    (BASE, ETHEREUM): 900,
    (ARBITRUM, ETHEREUM): 900,
}
DEFAULT_BRIDGE_TIME = 300

FEE_BPS = 5              # 0.05%
MIN_OUTPUT_BPS = 9_950   # 0.5% slippage on the output
ESTIMATED_GAS = 150_000


def estimate_bridge_time(from_chain_id: int, to_chain_id: int) -> int:
    """Estimated seconds for a bridge transfer to settle."""
    return BRIDGE_TIME_ESTIMATES.get((from_chain_id, to_chain_id), DEFAULT_BRIDGE_TIME)


@runtime_checkable
class QuoteProvider(Protocol):
    """Protocol for bridge quote sources."""

    async def get_quote(self, params: BridgeParams) -> BridgeQuote:
        """Get a quote for moving tokens between chains."""
        ...


class SimulatedQuoteProvider:
    """Deterministic quotes: fixed fee, fixed slippage, approve + bridge steps."""

    bridge_name = "stargate"

    async def get_quote(self, params: BridgeParams) -> BridgeQuote:
        fee = params.from_amount * FEE_BPS // 10_000
        to_amount = params.from_amount - fee
        to_amount_min = to_amount * MIN_OUTPUT_BPS // 10_000

        return BridgeQuote(
            id=f"quote-{params.from_chain_id}-{params.to_chain_id}-{params.from_amount}",
            from_chain_id=params.from_chain_id,
            to_chain_id=params.to_chain_id,
            from_token=params.from_token,
            to_token=params.to_token,
            from_amount=params.from_amount,
            to_amount=to_amount,
            to_amount_min=to_amount_min,
            fee=fee,
            estimated_gas=ESTIMATED_GAS,
            estimated_time=estimate_bridge_time(params.from_chain_id, params.to_chain_id),
            bridge_name=self.bridge_name,
            steps=(
                BridgeStep(
                    type="approve",
                    chain_id=params.from_chain_id,
                    token=params.from_token,
                    amount=params.from_amount,
                    protocol="lifi",
                ),
                BridgeStep(
                    type="bridge",
                    chain_id=params.from_chain_id,
                    token=params.from_token,
                    amount=params.from_amount,
                    protocol=self.bridge_name,
                ),
            ),
        )


class LiFiQuoteProvider:
    """Fetches quotes from the LI.FI REST API."""

    STEP_TYPES = {"cross": "bridge", "swap": "swap", "protocol": "swap"}

    def __init__(self, api_url: str = "https://li.quest/v1", timeout: float = 15.0):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    async def get_quote(self, params: BridgeParams) -> BridgeQuote:
        query = {
            "fromChain": str(params.from_chain_id),
            "toChain": str(params.to_chain_id),
            "fromToken": params.from_token,
            "toToken": params.to_token,
            "fromAmount": str(params.from_amount),
            "fromAddress": params.from_address,
            "slippage": str(params.slippage / 100),
        }
        if params.to_address:
            query["toAddress"] = params.to_address

        logger.debug(
            "STEP: Fetching bridge quote",
            extra={
                "extra_data": {
                    "action": "fetch_quote",
                    "source": "lifi",
                    "from_chain": params.from_chain_id,
                    "to_chain": params.to_chain_id,
                    "amount": params.from_amount,
                }
            },
        )

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(f"{self.api_url}/quote", params=query) as response:
                    if response.status != 200:
                        body = await response.text()
                        raise ExecutionFailure(f"HTTP {response.status}: {body[:200]}")
                    data = await response.json()
        except aiohttp.ClientError as e:
            raise ExecutionFailure(f"Failed to fetch LI.FI quote: {e}") from e

        return self.parse_quote(params, data)

    def parse_quote(self, params: BridgeParams, data: dict[str, Any]) -> BridgeQuote:
        """Convert a LI.FI quote response into a BridgeQuote."""
        estimate = data.get("estimate") or {}
        try:
            to_amount = int(estimate["toAmount"])
            to_amount_min = int(estimate["toAmountMin"])
        except (KeyError, TypeError, ValueError) as e:
            raise ExecutionFailure(f"Malformed LI.FI quote: {e}") from e

        fee = sum(int(c.get("amount", 0)) for c in estimate.get("feeCosts") or [])
        gas = sum(int(c.get("estimate", 0)) for c in estimate.get("gasCosts") or [])

        steps: list[BridgeStep] = []
        if estimate.get("approvalAddress"):
            steps.append(BridgeStep(
                type="approve",
                chain_id=params.from_chain_id,
                token=params.from_token,
                amount=params.from_amount,
                protocol="lifi",
            ))
        for step in data.get("includedSteps") or [data]:
            action = step.get("action") or {}
            steps.append(BridgeStep(
                type=self.STEP_TYPES.get(step.get("type", ""), "bridge"),
                chain_id=int(action.get("fromChainId", params.from_chain_id)),
                token=(action.get("fromToken") or {}).get("address", params.from_token),
                amount=int(action.get("fromAmount", params.from_amount)),
                protocol=step.get("tool", "lifi"),
            ))

        return BridgeQuote(
            id=str(data.get("id", "")),
            from_chain_id=params.from_chain_id,
            to_chain_id=params.to_chain_id,
            from_token=params.from_token,
            to_token=params.to_token,
            from_amount=params.from_amount,
            to_amount=to_amount,
            to_amount_min=to_amount_min,
            fee=fee,
            estimated_gas=gas,
            estimated_time=int(estimate.get("executionDuration", 0))
            or estimate_bridge_time(params.from_chain_id, params.to_chain_id),
            bridge_name=str(data.get("tool", "lifi")),
            steps=tuple(steps),
        )


async def get_bridge_quote(
    provider: QuoteProvider,
    from_chain_id: int,
    to_chain_id: int,
    from_token: str,
    to_token: str,
    amount: int,
    from_address: str,
    slippage: float = 0.5,
) -> BridgeQuote:
    """Get a quote for bridging `amount` from one chain to another."""
    return await provider.get_quote(BridgeParams(
        from_chain_id=from_chain_id,
        to_chain_id=to_chain_id,
        from_token=from_token,
        to_token=to_token,
        from_amount=amount,
        from_address=from_address,
        slippage=slippage,
    ))
