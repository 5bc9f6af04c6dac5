"""Cross-chain bridge models for AgentFlow."""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class BridgeParams:
    """Request for a bridge quote."""
    from_chain_id: int
    to_chain_id: int
    from_token: str
    to_token: str
    from_amount: int
    from_address: str
    to_address: str | None = None
    slippage: float = 0.5  # Percent


@dataclass(frozen=True)
class BridgeStep:
    """One execution step of a bridge route."""
    type: str       # "approve", "bridge" or "swap"
    chain_id: int
    token: str
    amount: int
    protocol: str


@dataclass(frozen=True)
class BridgeQuote:
    """Quote returned by a bridge quote provider."""
    id: str
    from_chain_id: int
    to_chain_id: int
    from_token: str
    to_token: str
    from_amount: int
    to_amount: int
    to_amount_min: int
    fee: int
    estimated_gas: int
    estimated_time: int  # Seconds
    bridge_name: str
    steps: tuple[BridgeStep, ...] = field(default_factory=tuple)

    @property
    def slippage_bps(self) -> int:
        """Worst-case loss between input and minimum output, in basis points."""
        if self.from_amount == 0:
            return 0
        return (self.from_amount - self.to_amount_min) * 10_000 // self.from_amount


@dataclass(frozen=True)
class BridgeResult:
    """Outcome of executing a bridge quote."""
    success: bool
    from_amount: int
    executed_at: float
    tx_hash: str | None = None
    to_amount: int | None = None
    error: str | None = None
