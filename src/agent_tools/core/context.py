"""Caller-supplied deadline and cancellation for registry operations."""

import threading
import time
from dataclasses import dataclass
from typing import Optional

from agent_tools.core.exceptions import OperationCancelledError


@dataclass
class CallContext:
    """Deadline (``time.monotonic()`` seconds) and/or cancel flag for one call."""

    deadline: Optional[float] = None
    cancel_event: Optional[threading.Event] = None

    @classmethod
    def with_timeout(cls, seconds: float,
                     cancel_event: Optional[threading.Event] = None) -> "CallContext":
        return cls(deadline=time.monotonic() + seconds, cancel_event=cancel_event)

    def cancel(self) -> None:
        if self.cancel_event is None:
            self.cancel_event = threading.Event()
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def done(self) -> bool:
        return self.cancelled or self.expired

    def check(self) -> None:
        """Raise if the call should not proceed."""
        if self.cancelled:
            raise OperationCancelledError("operation cancelled")
        if self.expired:
            raise OperationCancelledError("deadline exceeded")
