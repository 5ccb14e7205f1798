"""Cooperative cancellation shared between a caller and a running analysis."""

import threading


class CancellationToken:
    """Cancellation flag that can be set from any thread.

    The analyzer polls ``cancelled`` at the start of every visit and after
    every suspension point; nothing is interrupted forcibly.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
