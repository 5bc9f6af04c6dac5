"""Cross-chain bridge adapter."""

from agentflow.bridge.quotes import (
    LiFiQuoteProvider,
    QuoteProvider,
    SimulatedQuoteProvider,
    estimate_bridge_time,
    get_bridge_quote,
)
from agentflow.bridge.router import BridgeRouter

__all__ = [
    "LiFiQuoteProvider",
    "QuoteProvider",
    "SimulatedQuoteProvider",
    "estimate_bridge_time",
    "get_bridge_quote",
    "BridgeRouter",
]
