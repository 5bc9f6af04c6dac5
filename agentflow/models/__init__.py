"""Data models for AgentFlow."""

from agentflow.models.events import Event
from agentflow.models.portfolio import TokenBalance, PortfolioState
from agentflow.models.decisions import Action, Decision, ExecutionResult
from agentflow.models.session import (
    SessionStatus,
    Session,
    TradeParams,
    SignedTrade,
    TradeResult,
    ChannelState,
    SettlementResult,
)
from agentflow.models.bridge import BridgeParams, BridgeStep, BridgeQuote, BridgeResult

__all__ = [
    "Event",
    "TokenBalance",
    "PortfolioState",
    "Action",
    "Decision",
    "ExecutionResult",
    "SessionStatus",
    "Session",
    "TradeParams",
    "SignedTrade",
    "TradeResult",
    "ChannelState",
    "SettlementResult",
    "BridgeParams",
    "BridgeStep",
    "BridgeQuote",
    "BridgeResult",
]
