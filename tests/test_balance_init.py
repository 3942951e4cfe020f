import threading
import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import (
    BalanceInitializationError,
    InitializationInProgressError,
    MissingContextError,
)
from app.models.leave_balance import LeaveBalance
from app.models.leave_policy import LeavePolicy
from app.services.balance_init import BalanceInitializer, InitializationGuard, configured_categories
from app.services.leave_cache import BalanceVersionSignal


def _rows(db_session, employee):
    return db_session.query(LeaveBalance).filter(LeaveBalance.employee_id == employee.id).all()


def test_creates_one_row_per_default_category(db_session, org, employee):
    created = BalanceInitializer(db_session, InitializationGuard()).initialize(employee.id, org.id)
    assert created == 2
    rows = _rows(db_session, employee)
    assert sorted(r.category for r in rows) == ["annual", "personal"]
    assert all(r.accrued_hours == 0 and r.used_pending_hours == 0 for r in rows)


def test_initialize_is_idempotent(db_session, org, employee):
    guard = InitializationGuard()
    signal = BalanceVersionSignal()
    initializer = BalanceInitializer(db_session, guard, signal)
    assert initializer.initialize(employee.id, org.id) == 2
    assert initializer.initialize(employee.id, org.id) == 0
    assert len(_rows(db_session, employee)) == 2
    assert signal.current() == 1


def test_fresh_guard_finds_existing_rows(db_session, org, employee):
    BalanceInitializer(db_session, InitializationGuard()).initialize(employee.id, org.id)
    # A restarted process has an empty completed set but must not duplicate rows
    assert BalanceInitializer(db_session, InitializationGuard()).initialize(employee.id, org.id) == 0
    assert len(_rows(db_session, employee)) == 2


def test_categories_follow_active_policies(db_session, org, employee, nes_policies):
    db_session.add(LeavePolicy(
        organization_id=org.id, name="Long Service", category="long_service",
        accrual_unit="weeks_per_year", accrual_rate=0.8667, eligibility_waiting_years=10,
    ))
    db_session.add(LeavePolicy(
        organization_id=org.id, name="Retired", category="study", is_active=False,
    ))
    db_session.commit()
    assert configured_categories(db_session, org.id) == ["annual", "long_service", "personal"]


def test_missing_employee_raises(db_session, org):
    with pytest.raises(MissingContextError):
        BalanceInitializer(db_session, InitializationGuard()).initialize(404, org.id)


def test_failure_rolls_back_and_allows_retry(db_session, org, employee, monkeypatch):
    guard = InitializationGuard()
    initializer = BalanceInitializer(db_session, guard)
    real_commit = db_session.commit
    calls = {"n": 0}

    def flaky_commit():
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return real_commit()

    monkeypatch.setattr(db_session, "commit", flaky_commit)

    with pytest.raises(BalanceInitializationError):
        initializer.initialize(employee.id, org.id)

    key = guard.scope_key(org.id, employee.id)
    assert not guard.is_completed(key)
    assert not guard.is_in_flight(key)
    assert _rows(db_session, employee) == []

    assert initializer.initialize(employee.id, org.id) == 2
    assert guard.is_completed(key)


def test_guard_blocks_same_key_until_timeout():
    guard = InitializationGuard()
    holding = threading.Event()
    release = threading.Event()

    def holder():
        with guard.hold("1:1"):
            holding.set()
            release.wait(5)

    t = threading.Thread(target=holder)
    t.start()
    try:
        assert holding.wait(5)
        assert guard.is_in_flight("1:1")
        with pytest.raises(InitializationInProgressError):
            with guard.hold("1:1", timeout=0.05):
                pass
    finally:
        release.set()
        t.join(5)

    assert not guard.is_in_flight("1:1")
    assert guard.tracked_keys() == set()


def test_guard_does_not_serialize_unrelated_employees():
    guard = InitializationGuard()
    holding = threading.Event()
    release = threading.Event()

    def holder():
        with guard.hold("1:1"):
            holding.set()
            release.wait(5)

    t = threading.Thread(target=holder)
    t.start()
    try:
        assert holding.wait(5)
        with guard.hold("1:2", timeout=0.05):
            assert guard.is_in_flight("1:2")
    finally:
        release.set()
        t.join(5)


def test_waiting_caller_sees_completion_and_skips():
    guard = InitializationGuard()
    key = "1:1"
    results = []
    ready = threading.Event()

    def waiter():
        ready.wait(5)
        with guard.hold(key, timeout=5):
            results.append(guard.is_completed(key))

    t = threading.Thread(target=waiter)
    with guard.hold(key):
        t.start()
        ready.set()
        guard.mark_completed(key)
    t.join(5)
    assert results == [True]


def test_forget_organization_only_clears_that_tenant():
    guard = InitializationGuard()
    guard.mark_completed("1:1")
    guard.mark_completed("2:1")
    guard.forget_organization(1)
    assert not guard.is_completed("1:1")
    assert guard.is_completed("2:1")


def test_initialize_endpoint(client, org_headers, employee):
    first = client.post(f"/api/leave/balances/{employee.id}/initialize", headers=org_headers)
    second = client.post(f"/api/leave/balances/{employee.id}/initialize", headers=org_headers)
    assert first.json() == {"employee_id": employee.id, "created_count": 2}
    assert second.json()["created_count"] == 0


def test_initialize_endpoint_unknown_employee(client, org_headers):
    response = client.post("/api/leave/balances/9999/initialize", headers=org_headers)
    assert response.status_code == 404


def test_initialized_employees_leave_no_locks_behind(db_session, org, nes_policies, make_employee):
    guard = InitializationGuard()
    initializer = BalanceInitializer(db_session, guard)
    for name in ("A", "B", "C"):
        employee = make_employee(full_name=name)
        initializer.initialize(employee.id, org.id)
        assert guard.is_completed(guard.scope_key(org.id, employee.id))

    assert guard.tracked_keys() == set()
