"""State channel session models for AgentFlow."""
from dataclasses import dataclass
from enum import Enum


class SessionStatus(Enum):
    """Session lifecycle states, in transition order."""
    OPENING = "opening"
    ACTIVE = "active"
    SETTLING = "settling"
    CLOSED = "closed"


@dataclass
class Session:
    """Off-chain settlement context backed by an on-chain deposit.

    Mutable fields are owned by the SessionManager; everyone else only reads.
    """
    id: str
    channel_id: str
    participant: str
    asset: str            # Token address the deposit is denominated in
    deposit: int
    balance: int
    nonce: int
    status: SessionStatus
    created_at: float
    last_activity: float

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE


@dataclass(frozen=True)
class TradeParams:
    """Parameters of a trade signed against a session."""
    from_token: str
    to_token: str
    amount: int
    min_output: int
    deadline: float | None = None  # Unix timestamp, seconds


@dataclass(frozen=True)
class SignedTrade:
    """A trade message bound to a channel and nonce, with its signature."""
    channel_id: str
    params: TradeParams
    nonce: int
    signature: str


@dataclass(frozen=True)
class TradeResult:
    """Result of a trade accepted by the channel."""
    success: bool
    nonce: int          # Channel nonce after the trade
    input_amount: int
    output_amount: int
    new_balance: int    # Participant balance in the session asset
    signature: str
    timestamp: float


@dataclass(frozen=True)
class ChannelState:
    """Channel state as recorded by the clearing house."""
    channel_id: str
    balances: tuple[int, int]  # (participant, counterparty)
    nonce: int
    is_final: bool


@dataclass(frozen=True)
class SettlementResult:
    """Result of settling a session on-chain."""
    success: bool
    tx_hash: str
    final_balance: int
    settled_at: float
