"""State channel session subsystem."""

from agentflow.session.client import SessionClient
from agentflow.session.manager import SessionManager
from agentflow.session.signer import HmacSigner, Signer

__all__ = [
    "SessionClient",
    "SessionManager",
    "HmacSigner",
    "Signer",
]
