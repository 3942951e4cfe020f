"""
Balance Initializer

Ensures one LeaveBalance row exists per configured category for an employee,
with zero entitlement. Safe to call repeatedly and concurrently:

- InitializationGuard keeps a lock per (tenant, employee) key, so concurrent
  callers for the same employee wait for each other while unrelated
  employees never contend.
- Once a key has been initialized it is remembered in the completed set and
  later calls return 0 without touching the database.
- Rows for one employee are created in a single transaction: all or none.
  On failure the transaction is rolled back, the key lock is released and the
  error is raised so the caller can retry.
"""
import logging
import threading
from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterator, List, Optional, Set

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    BalanceInitializationError,
    InitializationInProgressError,
    MissingContextError,
)
from app.models.employee import Employee
from app.models.leave_balance import LeaveBalance
from app.models.leave_policy import LeavePolicy
from app.services.leave_cache import BalanceVersionSignal, balance_version_signal

logger = logging.getLogger(__name__)


class InitializationGuard:
    """Per-(tenant, employee) in-flight locks plus a completed set. Process scoped."""

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}
        self._key_users: Dict[str, int] = {}
        self._completed: Set[str] = set()

    @staticmethod
    def scope_key(organization_id: int, employee_id: int) -> str:
        return f"{organization_id}:{employee_id}"

    def _checkout(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            self._key_users[key] = self._key_users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str):
        # The lock entry lives only while some caller holds or waits on it
        with self._registry_lock:
            remaining = self._key_users.get(key, 1) - 1
            if remaining > 0:
                self._key_users[key] = remaining
            else:
                self._key_users.pop(key, None)
                self._key_locks.pop(key, None)

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None) -> Iterator[None]:
        lock = self._checkout(key)
        wait = settings.leave.init_guard_timeout_seconds if timeout is None else timeout
        try:
            if not lock.acquire(timeout=wait):
                raise InitializationInProgressError(key)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def tracked_keys(self) -> Set[str]:
        with self._registry_lock:
            return set(self._key_locks)

    def is_in_flight(self, key: str) -> bool:
        with self._registry_lock:
            lock = self._key_locks.get(key)
        return lock is not None and lock.locked()

    def is_completed(self, key: str) -> bool:
        with self._registry_lock:
            return key in self._completed

    def mark_completed(self, key: str):
        with self._registry_lock:
            self._completed.add(key)

    def forget_organization(self, organization_id: int):
        """Drop completion marks for a tenant, e.g. after its policy categories change."""
        prefix = f"{organization_id}:"
        with self._registry_lock:
            self._completed = {k for k in self._completed if not k.startswith(prefix)}

    def reset(self):
        with self._registry_lock:
            self._completed.clear()
            self._key_locks.clear()
            self._key_users.clear()


# Process-wide instance
initialization_guard = InitializationGuard()


def get_initialization_guard() -> InitializationGuard:
    return initialization_guard


def configured_categories(db: Session, organization_id: int) -> List[str]:
    """Categories of the tenant's active policies, or the configured defaults when it has none."""
    rows = db.query(LeavePolicy.category).filter(
        LeavePolicy.organization_id == organization_id,
        LeavePolicy.is_active.is_(True),
    ).distinct().all()
    categories = sorted({row[0] for row in rows})
    return categories or list(settings.leave.default_categories)


class BalanceInitializer:
    def __init__(
        self,
        db: Session,
        guard: Optional[InitializationGuard] = None,
        signal: Optional[BalanceVersionSignal] = None,
    ):
        self.db = db
        self.guard = guard or initialization_guard
        self.signal = signal or balance_version_signal

    def initialize(self, employee_id: int, organization_id: int, effective_date: Optional[date] = None) -> int:
        """Create missing balance rows. Returns how many rows were created."""
        key = self.guard.scope_key(organization_id, employee_id)
        if self.guard.is_completed(key):
            logger.debug(f"Balances already initialized for {key}")
            return 0

        with self.guard.hold(key):
            # Another caller may have finished while we waited for the lock
            if self.guard.is_completed(key):
                return 0

            employee = self.db.query(Employee).filter(
                Employee.id == employee_id,
                Employee.organization_id == organization_id,
            ).first()
            if not employee:
                raise MissingContextError(
                    f"Employee {employee_id} not found in organization {organization_id}",
                    details={"employee_id": employee_id, "organization_id": organization_id},
                )

            existing = {
                row[0] for row in self.db.query(LeaveBalance.category).filter(
                    LeaveBalance.organization_id == organization_id,
                    LeaveBalance.employee_id == employee_id,
                ).all()
            }
            to_create = [c for c in configured_categories(self.db, organization_id) if c not in existing]

            try:
                for category in to_create:
                    self.db.add(LeaveBalance(
                        organization_id=organization_id,
                        employee_id=employee_id,
                        category=category,
                        opening_balance_hours=0.0,
                        accrued_hours=0.0,
                        adjusted_hours=0.0,
                        used_approved_hours=0.0,
                        used_pending_hours=0.0,
                        last_calculated_date=effective_date or date.today(),
                    ))
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to initialize balances for {key}: {e}", exc_info=True)
                raise BalanceInitializationError(
                    f"Could not initialize leave balances for employee {employee_id}",
                    details={"employee_id": employee_id, "organization_id": organization_id},
                ) from e

            self.guard.mark_completed(key)

        if to_create:
            logger.info(f"Initialized {len(to_create)} leave balance(s) for {key}: {', '.join(to_create)}")
            self.signal.bump("balances_initialized", organization_id=organization_id, employee_id=employee_id)
        return len(to_create)
