"""
Turn-wide deadline and cancellation for blocking calls.

Backend and database calls block in C code or sockets and cannot be
interrupted from Python. run_with_deadline() runs the call on a worker
thread and stops waiting when the deadline passes or the turn is
cancelled; the abandoned call finishes in the background and its result
is discarded.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from dbsage.errors import DeadlineExceededError, TurnCancelledError

T = TypeVar("T")

POLL_INTERVAL_SECONDS = 0.05


class CancelToken:
    """Thread-safe cancellation flag for one turn."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class TurnDeadline:
    """Absolute deadline (monotonic clock) plus the turn's cancel token."""

    expires_at: float
    token: CancelToken = field(default_factory=CancelToken)

    @classmethod
    def start(cls, timeout_seconds: float, token: CancelToken | None = None) -> "TurnDeadline":
        return cls(expires_at=time.monotonic() + timeout_seconds, token=token or CancelToken())

    def remaining(self) -> float:
        return self.expires_at - time.monotonic()

    def check(self) -> None:
        """
        Raises:
            TurnCancelledError: The token was cancelled
            DeadlineExceededError: The deadline has passed
        """
        if self.token.cancelled:
            raise TurnCancelledError("Turn cancelled")
        if self.remaining() <= 0:
            raise DeadlineExceededError("Turn deadline exceeded")


def run_with_deadline(
    deadline: TurnDeadline,
    func: Callable[..., T],
    *args,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    **kwargs,
) -> T:
    """
    Call ``func(*args, **kwargs)`` on a worker thread, bounded by ``deadline``.
    
    Exceptions raised by ``func`` are re-raised unchanged.
    
    Raises:
        TurnCancelledError: The turn was cancelled while waiting
        DeadlineExceededError: The deadline passed while waiting
    """
    deadline.check()

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dbsage-turn")
    try:
        future = executor.submit(func, *args, **kwargs)
        while True:
            done, _ = wait([future], timeout=max(0.0, min(poll_interval, deadline.remaining())))
            if done:
                return future.result()
            deadline.check()
    finally:
        executor.shutdown(wait=False)
