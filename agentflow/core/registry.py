"""Agent registry: authorization and per-agent trading limits."""
import logging
from dataclasses import dataclass, replace
from typing import Protocol, runtime_checkable

from agentflow.core.config import RiskLimits

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryLimits:
    """Limits recorded for an agent. None means unlimited."""

    max_swap_size: int | None = None
    daily_volume_limit: int | None = None


@runtime_checkable
class AgentRegistry(Protocol):
    """Protocol for the registry that authorizes agents."""

    async def is_authorized(self, agent: str) -> bool:
        """Whether `agent` may trade."""
        ...

    async def get_limits(self, agent: str) -> RegistryLimits:
        """Limits recorded for `agent`."""
        ...

    async def get_remaining_daily_volume(self, agent: str) -> int | None:
        """Volume `agent` may still trade today, or None when unlimited."""
        ...


class StaticRegistry:
    """Registry backed by fixed values."""

    def __init__(
        self,
        authorized: bool = True,
        limits: RegistryLimits | None = None,
        used_volume: int = 0,
    ):
        self.authorized = authorized
        self.limits = limits or RegistryLimits()
        self.used_volume = used_volume

    async def is_authorized(self, agent: str) -> bool:
        return self.authorized

    async def get_limits(self, agent: str) -> RegistryLimits:
        return self.limits

    async def get_remaining_daily_volume(self, agent: str) -> int | None:
        if self.limits.daily_volume_limit is None:
            return None
        return max(self.limits.daily_volume_limit - self.used_volume, 0)


def apply_registry_limits(
    limits: RiskLimits,
    registry_limits: RegistryLimits,
    remaining_volume: int | None = None,
) -> RiskLimits:
    """Tighten risk limits to the registry's, never loosening them.

    Args:
        limits: Limits from the agent configuration
        registry_limits: Limits recorded in the registry
        remaining_volume: Volume left for today, if the registry tracks it

    Returns:
        RiskLimits no looser than any of the inputs
    """
    max_trade_size = limits.max_trade_size
    if registry_limits.max_swap_size is not None:
        max_trade_size = min(max_trade_size, registry_limits.max_swap_size)

    max_daily_volume = limits.max_daily_volume
    for cap in (registry_limits.daily_volume_limit, remaining_volume):
        if cap is not None:
            max_daily_volume = min(max_daily_volume, cap)

    if (max_trade_size, max_daily_volume) != (limits.max_trade_size, limits.max_daily_volume):
        logger.info(
            f"Registry limits applied: max trade {max_trade_size}, daily volume {max_daily_volume}"
        )
    return replace(limits, max_trade_size=max_trade_size, max_daily_volume=max_daily_volume)
