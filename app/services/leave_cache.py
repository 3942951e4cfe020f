"""
Balance version signal.

A process-wide, tenant-independent counter bumped on every balance-affecting
mutation (request created/approved/declined/cancelled, manual adjustment,
initialization, employment change). Consumers either poll ``current()`` or
subscribe a callback, and discard any balance snapshot computed under an
older version.

Events carry the organization and employee that changed so a subscriber may
filter, but the counter itself is shared by every tenant in the process.
"""
import logging
import threading
from typing import Callable, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class BalanceChangeEvent(BaseModel):
    version: int
    reason: str
    organization_id: Optional[int] = None
    employee_id: Optional[int] = None


BalanceChangeCallback = Callable[[BalanceChangeEvent], None]


class BalanceVersionSignal:
    def __init__(self):
        self._lock = threading.Lock()
        self._version = 0
        self._subscribers: List[BalanceChangeCallback] = []

    def current(self) -> int:
        with self._lock:
            return self._version

    def bump(self, reason: str, organization_id: Optional[int] = None, employee_id: Optional[int] = None) -> int:
        """Increment the version and notify subscribers. Returns the new version."""
        with self._lock:
            self._version += 1
            event = BalanceChangeEvent(
                version=self._version,
                reason=reason,
                organization_id=organization_id,
                employee_id=employee_id,
            )
            subscribers = list(self._subscribers)

        logger.debug(f"Balance version -> {event.version} ({reason})")
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                # Don't fail the mutation if a subscriber fails
                logger.warning(f"Balance change subscriber failed: {e}", exc_info=True)
        return event.version

    def subscribe(self, callback: BalanceChangeCallback) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def reset(self):
        with self._lock:
            self._version = 0
            self._subscribers.clear()


# Process-wide instance
balance_version_signal = BalanceVersionSignal()


def get_version_signal() -> BalanceVersionSignal:
    return balance_version_signal
