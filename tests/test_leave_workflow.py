import pytest
from datetime import date

from app.core.exceptions import BalanceInconsistencyError, InvalidTransitionError
from app.models.leave_request import LeaveStatus
from app.models.public_holiday import PublicHoliday
from app.schemas.leave import LeaveRequestCreate
from app.services.leave_balance import LeaveBalanceService
from app.services.leave_cache import balance_version_signal
from app.services.leave_workflow import LeaveWorkflowService

REFERENCE = "2025-01-01"


def _submit(client, org_headers, employee, start, end, partial="full", category="annual"):
    return client.post(
        "/api/leave/requests",
        headers=org_headers,
        json={
            "employee_id": employee.id,
            "category": category,
            "start_date": start,
            "end_date": end,
            "partial_day_type": partial,
        },
    )


def _annual(client, org_headers, employee):
    response = client.get(f"/api/leave/balances/{employee.id}?reference_date={REFERENCE}", headers=org_headers)
    return response.json()["balances"]["annual"]


def test_submit_reserves_pending_hours(client, org_headers, employee, nes_policies):
    before = _annual(client, org_headers, employee)
    response = _submit(client, org_headers, employee, "2025-03-03", "2025-03-07")
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["total_chargeable_days"] == 5
    assert data["chargeable_hours"] == pytest.approx(38.0)

    after = _annual(client, org_headers, employee)
    assert after["used_pending_hours"] == pytest.approx(38.0)
    assert after["available_hours"] == pytest.approx(before["available_hours"] - 38.0)


def test_approve_moves_pending_to_approved(client, org_headers, employee, nes_policies):
    req = _submit(client, org_headers, employee, "2025-03-03", "2025-03-07").json()
    pending = _annual(client, org_headers, employee)

    response = client.post(f"/api/leave/requests/{req['id']}/approve", headers=org_headers, json={"comment": "Enjoy"})
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["decision_comment"] == "Enjoy"

    approved = _annual(client, org_headers, employee)
    assert approved["used_pending_hours"] == pytest.approx(0.0)
    assert approved["used_approved_hours"] == pytest.approx(38.0)
    assert approved["available_hours"] == pytest.approx(pending["available_hours"])


def test_recall_restores_balance_exactly(client, org_headers, employee, nes_policies):
    original = _annual(client, org_headers, employee)
    req = _submit(client, org_headers, employee, "2025-03-03", "2025-03-07").json()
    client.post(f"/api/leave/requests/{req['id']}/approve", headers=org_headers)

    response = client.post(f"/api/leave/requests/{req['id']}/cancel", headers=org_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    restored = _annual(client, org_headers, employee)
    assert restored["available_hours"] == pytest.approx(original["available_hours"])
    assert restored["used_approved_hours"] == pytest.approx(0.0)


def test_decline_releases_pending(client, org_headers, employee, nes_policies):
    original = _annual(client, org_headers, employee)
    req = _submit(client, org_headers, employee, "2025-03-03", "2025-03-04").json()
    response = client.post(f"/api/leave/requests/{req['id']}/decline", headers=org_headers)
    assert response.json()["status"] == "declined"
    assert _annual(client, org_headers, employee)["available_hours"] == pytest.approx(original["available_hours"])


@pytest.mark.parametrize("first, second", [("decline", "approve"), ("cancel", "approve"), ("decline", "cancel")])
def test_terminal_states_reject_transitions(client, org_headers, employee, nes_policies, first, second):
    req = _submit(client, org_headers, employee, "2025-03-03", "2025-03-03").json()
    client.post(f"/api/leave/requests/{req['id']}/{first}", headers=org_headers)
    response = client.post(f"/api/leave/requests/{req['id']}/{second}", headers=org_headers)
    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "INVALID_STATUS_TRANSITION"


def test_approved_request_cannot_be_declined(client, org_headers, employee, nes_policies):
    req = _submit(client, org_headers, employee, "2025-03-03", "2025-03-03").json()
    client.post(f"/api/leave/requests/{req['id']}/approve", headers=org_headers)
    response = client.post(f"/api/leave/requests/{req['id']}/decline", headers=org_headers)
    assert response.status_code == 409


def test_overlapping_request_is_rejected(client, org_headers, employee, nes_policies):
    _submit(client, org_headers, employee, "2025-03-03", "2025-03-07")
    response = _submit(client, org_headers, employee, "2025-03-06", "2025-03-12", category="personal")
    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "LEAVE_OVERLAP"


def test_cancelled_request_no_longer_blocks(client, org_headers, employee, nes_policies):
    req = _submit(client, org_headers, employee, "2025-03-03", "2025-03-07").json()
    client.post(f"/api/leave/requests/{req['id']}/cancel", headers=org_headers)
    assert _submit(client, org_headers, employee, "2025-03-03", "2025-03-07").status_code == 201


def test_morning_and_afternoon_compose_to_one_day(client, org_headers, employee, nes_policies):
    original = _annual(client, org_headers, employee)
    am = _submit(client, org_headers, employee, "2025-03-05", "2025-03-05", partial="half_am")
    pm = _submit(client, org_headers, employee, "2025-03-05", "2025-03-05", partial="half_pm")
    assert am.status_code == 201 and pm.status_code == 201
    assert am.json()["total_chargeable_days"] == 0.5

    after = _annual(client, org_headers, employee)
    assert original["available_hours"] - after["available_hours"] == pytest.approx(7.6)


def test_same_half_twice_conflicts(client, org_headers, employee, nes_policies):
    _submit(client, org_headers, employee, "2025-03-05", "2025-03-05", partial="half_am")
    response = _submit(client, org_headers, employee, "2025-03-05", "2025-03-05", partial="half_am")
    assert response.status_code == 409


def test_half_day_spanning_two_days_is_invalid(client, org_headers, employee, nes_policies):
    response = _submit(client, org_headers, employee, "2025-03-05", "2025-03-06", partial="half_pm")
    assert response.status_code == 422
    assert response.json()["errors"][0]["code"] == "INVALID_LEAVE_REQUEST"


def test_weekend_only_request_is_invalid(client, org_headers, employee, nes_policies):
    response = _submit(client, org_headers, employee, "2025-03-08", "2025-03-09")
    assert response.status_code == 422


def test_christmas_new_year_request_is_continuous(client, org_headers, employee, nes_policies, db_session, org):
    db_session.add_all([
        PublicHoliday(organization_id=org.id, date=date(2023, 12, 25), name="Christmas Day"),
        PublicHoliday(organization_id=org.id, date=date(2023, 12, 26), name="Boxing Day"),
        PublicHoliday(organization_id=org.id, date=date(2024, 1, 1), name="New Year's Day"),
    ])
    db_session.commit()

    response = _submit(client, org_headers, employee, "2023-12-20", "2024-01-05")
    assert response.status_code == 201
    assert response.json()["total_chargeable_days"] == 10
    assert response.json()["chargeable_hours"] == pytest.approx(76.0)


def test_insufficient_balance_is_rejected(client, org_headers, make_employee, nes_policies):
    newcomer = make_employee(service_start_date=date.today())
    response = _submit(client, org_headers, newcomer, "2025-03-03", "2025-03-07")
    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "INSUFFICIENT_BALANCE"


def test_casual_cannot_request_paid_leave(client, org_headers, make_employee, nes_policies):
    casual = make_employee(employment_type="casual")
    response = _submit(client, org_headers, casual, "2025-03-03", "2025-03-03")
    assert response.status_code == 422


def test_unknown_employee_is_not_found(client, org_headers, nes_policies):
    response = client.post(
        "/api/leave/requests",
        headers=org_headers,
        json={"employee_id": 999, "category": "annual", "start_date": "2025-03-03", "end_date": "2025-03-03"},
    )
    assert response.status_code == 404


def test_list_requests_filters_by_status(client, org_headers, employee, nes_policies):
    first = _submit(client, org_headers, employee, "2025-03-03", "2025-03-03").json()
    _submit(client, org_headers, employee, "2025-03-10", "2025-03-10")
    client.post(f"/api/leave/requests/{first['id']}/approve", headers=org_headers)

    approved = client.get("/api/leave/requests?status=approved", headers=org_headers).json()
    assert [r["id"] for r in approved] == [first["id"]]
    assert len(client.get(f"/api/leave/requests?employee_id={employee.id}", headers=org_headers).json()) == 2


def test_new_holiday_marks_open_request_stale(client, org_headers, employee, nes_policies, db_session, org):
    req = _submit(client, org_headers, employee, "2025-03-03", "2025-03-07").json()
    db_session.add(PublicHoliday(organization_id=org.id, date=date(2025, 3, 4), name="Snap Holiday"))
    db_session.commit()

    annual = _annual(client, org_headers, employee)
    assert annual["stale_request_ids"] == [req["id"]]


def test_every_transition_bumps_version(db_session, org, employee, nes_policies):
    service = LeaveWorkflowService(db_session)
    req = service.submit(org.id, LeaveRequestCreate(
        employee_id=employee.id, category="annual", start_date=date(2025, 3, 3), end_date=date(2025, 3, 3),
    ))
    after_submit = balance_version_signal.current()
    service.approve(org.id, req.id)
    service.cancel(org.id, req.id)
    assert balance_version_signal.current() == after_submit + 2


def test_service_rejects_invalid_transition(db_session, org, employee, nes_policies):
    service = LeaveWorkflowService(db_session)
    req = service.submit(org.id, LeaveRequestCreate(
        employee_id=employee.id, category="annual", start_date=date(2025, 3, 3), end_date=date(2025, 3, 3),
    ))
    service.decline(org.id, req.id)
    with pytest.raises(InvalidTransitionError):
        service.approve(org.id, req.id)


def test_missing_reservation_is_reported_as_inconsistency(db_session, org, employee, nes_policies):
    service = LeaveWorkflowService(db_session)
    req = service.submit(org.id, LeaveRequestCreate(
        employee_id=employee.id, category="annual", start_date=date(2025, 3, 3), end_date=date(2025, 3, 7),
    ))
    row = LeaveBalanceService(db_session).get_balance_row(org.id, employee.id, "annual")
    row.used_pending_hours = 0.0
    db_session.commit()

    with pytest.raises(BalanceInconsistencyError):
        service.approve(org.id, req.id)

    db_session.refresh(req)
    assert req.status == LeaveStatus.PENDING.value
