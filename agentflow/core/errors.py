"""Error taxonomy for AgentFlow."""


class AgentFlowError(Exception):
    """Base class for all AgentFlow errors."""

    pass


class ConfigurationError(AgentFlowError):
    """Raised when configuration is invalid or missing."""

    pass


class EvaluationError(AgentFlowError):
    """Raised when a strategy fails while evaluating a portfolio snapshot."""

    def __init__(self, strategy: str, cause: Exception):
        super().__init__(f"Strategy {strategy} failed to evaluate: {cause}")
        self.strategy = strategy
        self.cause = cause


class RiskLimitExceeded(AgentFlowError):
    """Raised when a decision exceeds a configured risk limit."""

    pass


class ExecutionFailure(AgentFlowError):
    """Raised when executing a trade, bridge or settlement fails."""

    pass


class StaleNonceError(ExecutionFailure):
    """Raised when a signed trade references a nonce the channel has moved past."""

    def __init__(self, channel_id: str, nonce: int, recorded_nonce: int):
        super().__init__(
            f"Trade nonce {nonce} is stale for channel {channel_id} (recorded nonce {recorded_nonce})"
        )
        self.channel_id = channel_id
        self.nonce = nonce
        self.recorded_nonce = recorded_nonce


class TradeRejected(ExecutionFailure):
    """Raised when the channel refuses a signed trade."""

    pass


class SessionTimeout(ExecutionFailure):
    """Raised when a channel confirmation or settlement does not complete in time."""

    pass


class SessionStateError(AgentFlowError):
    """Raised on an invalid session lifecycle transition."""

    pass


class NotFoundError(AgentFlowError):
    """Raised when a decision references an unknown strategy."""

    pass
