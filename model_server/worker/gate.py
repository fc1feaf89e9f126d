"""Single-shot readiness gate shared by the supervisor and its readers."""

from __future__ import annotations

import threading
from typing import Optional


class ReadinessGate:
    """
    Latch released once with a success/failure outcome.

    The first release decides the outcome. Later releases never change it
    but still wake any waiter.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._released = False
        self._success = False

    @property
    def released(self) -> bool:
        with self._cond:
            return self._released

    @property
    def outcome(self) -> Optional[bool]:
        """Outcome of the first release, or None while pending."""
        with self._cond:
            return self._success if self._released else None

    def release(self, success: bool) -> bool:
        """
        Release the gate.

        Args:
            success: Outcome to record if the gate is still pending

        Returns:
            True if this call decided the outcome
        """
        with self._cond:
            first = not self._released
            if first:
                self._released = True
                self._success = bool(success)
            self._cond.notify_all()
            return first

    def wait(self, timeout: Optional[float] = None) -> Optional[bool]:
        """
        Block until released or the timeout elapses.

        Returns:
            The outcome, or None on timeout
        """
        with self._cond:
            self._cond.wait_for(lambda: self._released, timeout=timeout)
            return self._success if self._released else None
