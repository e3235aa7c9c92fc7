"""
Cancellation tokens for async loads.

A fresh load for a scope cancels the in-flight load for the same scope;
stale responses are discarded by checking the token after every await.
"""

from typing import Dict, Hashable, Optional

from ..errors import OperationCancelled


class CancellationToken:
    def __init__(self, reason: str = "Cancelled"):
        self._cancelled = False
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: Optional[str] = None):
        self._cancelled = True
        if reason:
            self.reason = reason

    def raise_if_cancelled(self):
        if self._cancelled:
            raise OperationCancelled(self.reason)


class CancellationScope:
    """
    Issues one live token per key.

    issue() cancels the previous token of the same key.
    """

    def __init__(self):
        self._tokens: Dict[Hashable, CancellationToken] = {}

    def issue(self, key: Hashable) -> CancellationToken:
        previous = self._tokens.get(key)
        if previous is not None:
            previous.cancel("Superseded")
        token = CancellationToken()
        self._tokens[key] = token
        return token

    def current(self, key: Hashable) -> Optional[CancellationToken]:
        return self._tokens.get(key)

    def is_current(self, key: Hashable, token: CancellationToken) -> bool:
        return self._tokens.get(key) is token and not token.cancelled

    def cancel(self, key: Hashable):
        token = self._tokens.pop(key, None)
        if token is not None:
            token.cancel()

    def cancel_all(self):
        for token in self._tokens.values():
            token.cancel()
        self._tokens.clear()
