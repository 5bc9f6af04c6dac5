"""Message signers for state channel trades."""
import hashlib
import hmac
from typing import Protocol, runtime_checkable


@runtime_checkable
class Signer(Protocol):
    """Protocol for signing and verifying channel messages."""

    def sign(self, message: bytes) -> str:
        """Sign a message and return the hex-encoded signature."""
        ...

    def verify(self, message: bytes, signature: str) -> bool:
        """Check a signature produced by `sign`."""
        ...


class HmacSigner:
    """Shared-key HMAC-SHA256 signer for simulated channels.

    Stands in for a wallet signature: both channel parties hold the key.
    """

    def __init__(self, key: str | bytes):
        self._key = key.encode() if isinstance(key, str) else key

    def sign(self, message: bytes) -> str:
        return "0x" + hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def verify(self, message: bytes, signature: str) -> bool:
        return hmac.compare_digest(self.sign(message), signature)
