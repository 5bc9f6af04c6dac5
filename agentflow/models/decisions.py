"""Decision and execution result models for AgentFlow."""
import time
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any


class Action(Enum):
    """Kinds of action a strategy can propose."""
    SWAP = "swap"
    BRIDGE = "bridge"
    REBALANCE = "rebalance"
    HOLD = "hold"


@dataclass(frozen=True)
class Decision:
    """A proposed action produced by a strategy."""
    id: str
    strategy: str       # Name of the originating strategy
    action: Action
    from_chain: int
    to_chain: int
    from_token: str
    to_token: str
    amount: int         # Exact amount in the source token's smallest unit
    reason: str
    confidence: float   # 0.0 to 1.0
    priority: int       # Higher executes first

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(f"Decision amount must be an int, got {type(self.amount).__name__}")
        if self.amount < 0:
            raise ValueError(f"Decision amount must be non-negative, got {self.amount}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Decision confidence must be within [0, 1], got {self.confidence}")

    @property
    def is_cross_chain(self) -> bool:
        return self.from_chain != self.to_chain

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        d = asdict(self)
        d["action"] = self.action.value
        d["amount"] = str(self.amount)
        return d


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of attempting a decision."""
    success: bool
    tx_id: str | None = None
    error: str | None = None
    gas_used: int | None = None
    executed_at: float = 0.0

    @classmethod
    def failed(cls, error: str) -> "ExecutionResult":
        """Build a failed result stamped with the current time."""
        return cls(success=False, error=error, executed_at=time.time())

    @classmethod
    def succeeded(cls, tx_id: str | None = None, gas_used: int | None = None) -> "ExecutionResult":
        """Build a successful result stamped with the current time."""
        return cls(success=True, tx_id=tx_id, gas_used=gas_used, executed_at=time.time())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        d = asdict(self)
        d["gas_used"] = str(self.gas_used) if self.gas_used is not None else None
        return d
