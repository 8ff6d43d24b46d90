"""
Error taxonomy for bounded external calls.

Call failures are explicit and separable from other runtime errors so the
HTTP edge and the commands can translate them without string matching.
"""

from __future__ import annotations

from typing import Any


class CallError(RuntimeError):
    def __init__(self, label: str, message: str) -> None:
        super().__init__(f"{label}: {message}")
        self.label = label


class TransportError(CallError):
    pass


class DeadlineExceededError(TransportError):
    def __init__(self, label: str, timeout_s: float | None = None) -> None:
        if timeout_s is None:
            message = "timed out (deadline exceeded)"
        else:
            message = f"timed out after {timeout_s:.3f}s (deadline exceeded)"
        super().__init__(label, message)
        self.timeout_s = timeout_s


class ContextCancelledError(TransportError):
    pass


class ProtocolError(CallError):
    def __init__(self, label: str, status_code: int, body: str = "") -> None:
        message = f"unexpected status code: {status_code}"
        if body:
            message = f"{message} {body}"
        super().__init__(label, message)
        self.status_code = status_code


class DecodeError(CallError):
    pass


class PersistenceError(RuntimeError):
    pass


class NoWinnerError(RuntimeError):
    """
    Raised when no racing branch produced usable data.
    """

    def __init__(self, outcomes: list[Any]) -> None:
        super().__init__(f"No winners among {len(outcomes)} branch(es).")
        self.outcomes = outcomes


class ServerStartError(RuntimeError):
    pass


class ShutdownTimeoutError(RuntimeError):
    pass
