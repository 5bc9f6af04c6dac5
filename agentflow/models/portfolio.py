"""Portfolio snapshot models for AgentFlow."""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class TokenBalance:
    """Balance of a single token on a single chain."""
    token: str        # Token contract address
    symbol: str       # "USDC", "WETH", ...
    decimals: int     # Decimal precision of `balance`
    balance: int      # Raw balance in smallest units
    value_usd: float  # USD value of the balance


@dataclass(frozen=True)
class PortfolioState:
    """Immutable snapshot of holdings across chains."""
    address: str
    balances: Mapping[int, tuple[TokenBalance, ...]] = field(default_factory=dict)
    total_value_usd: float = 0.0
    last_updated: float = 0.0  # Unix timestamp, seconds

    def __post_init__(self) -> None:
        frozen = {chain_id: tuple(items) for chain_id, items in self.balances.items()}
        object.__setattr__(self, "balances", MappingProxyType(frozen))

    def find_balance(self, chain_id: int, symbol: str) -> TokenBalance | None:
        """Return the balance of `symbol` on `chain_id`, if held."""
        for balance in self.balances.get(chain_id, ()):
            if balance.symbol == symbol:
                return balance
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "address": self.address,
            "balances": {
                str(chain_id): [
                    {
                        "token": b.token,
                        "symbol": b.symbol,
                        "decimals": b.decimals,
                        "balance": str(b.balance),
                        "value_usd": b.value_usd,
                    }
                    for b in items
                ]
                for chain_id, items in self.balances.items()
            },
            "total_value_usd": self.total_value_usd,
            "last_updated": self.last_updated,
        }
