"""Risk gate applied before each execution."""
import logging
import time
from datetime import date, datetime, timezone
from typing import Callable

from agentflow.core.config import RiskLimits
from agentflow.core.errors import RiskLimitExceeded
from agentflow.models import Decision

logger = logging.getLogger(__name__)


class RiskGate:
    """Enforces trade size and daily volume ceilings.

    Volume is tracked per UTC day and only counts decisions that executed
    successfully.
    """

    def __init__(self, limits: RiskLimits, clock: Callable[[], float] = time.time):
        self.limits = limits
        self._clock = clock
        self._day: date | None = None
        self._daily_volume = 0

    @property
    def daily_volume(self) -> int:
        self._roll_day()
        return self._daily_volume

    def check(self, decision: Decision) -> None:
        """Check a decision against the limits.

        Raises:
            RiskLimitExceeded: If the decision is over a limit
        """
        if decision.amount > self.limits.max_trade_size:
            raise RiskLimitExceeded(
                f"Trade size {decision.amount} exceeds limit {self.limits.max_trade_size}"
            )

        projected = self.daily_volume + decision.amount
        if projected > self.limits.max_daily_volume:
            raise RiskLimitExceeded(
                f"Daily volume {projected} would exceed limit {self.limits.max_daily_volume}"
            )

    def record(self, decision: Decision) -> None:
        """Count an executed decision toward today's volume."""
        self._roll_day()
        self._daily_volume += decision.amount
        logger.debug(f"Daily volume now {self._daily_volume} after {decision.id}")

    def _roll_day(self) -> None:
        today = datetime.fromtimestamp(self._clock(), tz=timezone.utc).date()
        if today != self._day:
            self._day = today
            self._daily_volume = 0
