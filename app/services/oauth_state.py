"""Anti-CSRF ``state`` tokens for OAuth authorization flows.

Each session holds at most one pending token per provider. Issuing a new
token for a provider replaces the previous one, and a token is removed the
first time a callback for that provider is checked, whatever the outcome.
"""

import hmac
import logging
import secrets
from collections.abc import Callable, MutableMapping

logger = logging.getLogger(__name__)

STATE_TOKEN_BYTES = 32


class PendingOAuthStates:
    """Typed view over a session's provider -> pending state mapping."""

    def __init__(
        self,
        states: MutableMapping[str, str],
        on_change: Callable[[], None] | None = None,
    ):
        self._states = states
        self._on_change = on_change

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def issue(self, provider: str) -> str:
        """Create a fresh token for the provider, replacing any pending one."""
        token = secrets.token_urlsafe(STATE_TOKEN_BYTES)
        self._states[provider] = token
        self._changed()
        return token

    def pending(self, provider: str) -> str | None:
        return self._states.get(provider)

    def consume(self, provider: str, received: str | None) -> bool:
        """Remove the pending token and report whether ``received`` matches it."""
        expected = self._states.pop(provider, None)
        if expected is not None:
            self._changed()
        if not expected or not received:
            logger.warning(
                f"OAuth state check failed for {provider}: "
                f"{'no pending state' if not expected else 'state missing from callback'}"
            )
            return False
        if not states_match(expected, received):
            logger.warning(f"OAuth state mismatch for {provider}")
            return False
        return True


def states_match(expected: str, received: str) -> bool:
    """Constant-time comparison of two state tokens."""
    expected_bytes = expected.encode()
    received_bytes = received.encode()
    if len(expected_bytes) != len(received_bytes):
        return False
    return hmac.compare_digest(expected_bytes, received_bytes)
