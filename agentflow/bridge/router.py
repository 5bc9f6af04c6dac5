"""Executes cross-chain decisions through a bridge."""
import logging
import time

from agentflow.bridge.quotes import QuoteProvider, get_bridge_quote
from agentflow.core.errors import ExecutionFailure
from agentflow.core.wallet import ChainWallet
from agentflow.models import BridgeQuote, BridgeResult, Decision, ExecutionResult

logger = logging.getLogger(__name__)

# Spender approved for bridge transfers
LIFI_DIAMOND = "0x1231DEB6f5749EF6cE6943a275A1D3E7486F4EaE"


class BridgeRouter:
    """Quotes and executes bridge transfers with a wallet."""

    def __init__(
        self,
        quote_provider: QuoteProvider,
        wallet: ChainWallet | None = None,
        max_slippage_pct: float = 1.0,
        quote_slippage_pct: float = 0.5,
    ):
        """Initialize the router.

        Args:
            quote_provider: Source of bridge quotes
            wallet: Wallet that signs and sends transactions
            max_slippage_pct: Quotes losing more than this between input and
                minimum output are refused
            quote_slippage_pct: Slippage tolerance requested from the provider
        """
        self.quote_provider = quote_provider
        self.wallet = wallet
        self.max_slippage_pct = max_slippage_pct
        self.quote_slippage_pct = quote_slippage_pct

    async def execute_bridge(self, quote: BridgeQuote) -> BridgeResult:
        """Run the steps of a quote.

        Raises:
            ExecutionFailure: If no wallet is connected
        """
        if self.wallet is None:
            raise ExecutionFailure("Wallet not connected")

        try:
            for step in quote.steps:
                if step.type == "approve":
                    await self.wallet.approve(step.chain_id, step.token, step.amount, LIFI_DIAMOND)
            tx_hash = await self.wallet.send_bridge(quote)
        except Exception as e:
            logger.error(f"Bridge {quote.id} failed: {e}")
            return BridgeResult(
                success=False,
                from_amount=quote.from_amount,
                error=str(e),
                executed_at=time.time(),
            )

        logger.info(
            f"Bridged {quote.from_amount} from {quote.from_chain_id} to {quote.to_chain_id} "
            f"via {quote.bridge_name} (min out {quote.to_amount_min}, ~{quote.estimated_time}s)"
        )
        return BridgeResult(
            success=True,
            from_amount=quote.from_amount,
            to_amount=quote.to_amount_min,
            tx_hash=tx_hash,
            executed_at=time.time(),
        )

    async def bridge_decision(self, decision: Decision) -> ExecutionResult:
        """Quote and execute a cross-chain decision.

        Args:
            decision: Decision whose chains differ

        Returns:
            ExecutionResult for the bridge transfer
        """
        if self.wallet is None:
            return ExecutionResult.failed("Wallet not connected")

        try:
            quote = await get_bridge_quote(
                self.quote_provider,
                from_chain_id=decision.from_chain,
                to_chain_id=decision.to_chain,
                from_token=decision.from_token,
                to_token=decision.to_token,
                amount=decision.amount,
                from_address=self.wallet.address,
                slippage=self.quote_slippage_pct,
            )
        except Exception as e:
            logger.error(f"Bridge quote for {decision.id} failed: {e}")
            return ExecutionResult.failed(f"Bridge quote failed: {e}")

        max_slippage_bps = round(self.max_slippage_pct * 100)
        if quote.slippage_bps > max_slippage_bps:
            message = (
                f"Bridge quote loses {quote.slippage_bps}bps, above the {max_slippage_bps}bps limit"
            )
            logger.warning(message)
            return ExecutionResult.failed(message)

        result = await self.execute_bridge(quote)
        if not result.success:
            return ExecutionResult.failed(result.error or "Bridge failed")

        return ExecutionResult(
            success=True,
            tx_id=result.tx_hash,
            gas_used=quote.estimated_gas,
            executed_at=result.executed_at,
        )
