"""Event model for AgentFlow."""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any


@dataclass
class Event:
    """Base event type for all agent events."""
    type: str                # "decision", "execution", "error", "session"
    timestamp: datetime      # When the event occurred
    source: str              # "engine", "session", "runner", ...
    payload: dict[str, Any]  # Event data

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d
