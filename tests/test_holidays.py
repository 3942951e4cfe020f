import pytest
from datetime import date

from app.models.organization import Organization
from app.models.public_holiday import PublicHoliday
from app.services.chargeable_days import calculate_chargeable_days_for_region
from app.services.holidays import resolve_holidays


@pytest.fixture
def calendar(db_session, org):
    db_session.add_all([
        PublicHoliday(organization_id=org.id, date=date(2024, 1, 1), name="New Year's Day"),
        PublicHoliday(organization_id=org.id, date=date(2024, 1, 26), name="Australia Day"),
        PublicHoliday(organization_id=org.id, date=date(2024, 1, 26), region_code="NSW", name="Australia Day (NSW)"),
        PublicHoliday(organization_id=org.id, date=date(2024, 3, 11), region_code="VIC", name="Labour Day"),
    ])
    db_session.commit()


def test_entity_wide_and_region_holidays_are_combined(db_session, org, calendar):
    holidays = resolve_holidays(db_session, org.id, "VIC", date(2024, 1, 1), date(2024, 12, 31))
    assert [h.date for h in holidays] == [date(2024, 1, 1), date(2024, 1, 26), date(2024, 3, 11)]


def test_other_regions_are_excluded(db_session, org, calendar):
    holidays = resolve_holidays(db_session, org.id, "NSW", date(2024, 1, 1), date(2024, 12, 31))
    assert date(2024, 3, 11) not in {h.date for h in holidays}


def test_duplicate_date_is_returned_once_with_region_name(db_session, org, calendar):
    holidays = resolve_holidays(db_session, org.id, "NSW", date(2024, 1, 26), date(2024, 1, 26))
    assert len(holidays) == 1
    assert holidays[0].name == "Australia Day (NSW)"


def test_no_region_means_entity_wide_only(db_session, org, calendar):
    holidays = resolve_holidays(db_session, org.id, None, date(2024, 1, 1), date(2024, 12, 31))
    assert {h.region_code for h in holidays} == {None}
    assert len(holidays) == 2


def test_holidays_are_tenant_scoped(db_session, org, calendar):
    other = Organization(name="Beta", slug="beta")
    db_session.add(other)
    db_session.commit()
    assert resolve_holidays(db_session, other.id, "NSW", date(2024, 1, 1), date(2024, 12, 31)) == []


def test_empty_calendar_treats_every_weekday_as_chargeable(db_session, org):
    result = calculate_chargeable_days_for_region(db_session, org.id, date(2024, 1, 1), date(2024, 1, 7), "NSW")
    assert result.chargeable_days == 5


def test_region_holiday_reduces_chargeable_days(db_session, org, calendar):
    # Week of Mon 11 Mar 2024
    vic = calculate_chargeable_days_for_region(db_session, org.id, date(2024, 3, 11), date(2024, 3, 15), "VIC")
    nsw = calculate_chargeable_days_for_region(db_session, org.id, date(2024, 3, 11), date(2024, 3, 15), "NSW")
    assert vic.chargeable_days == 4
    assert nsw.chargeable_days == 5


def test_holiday_api_round_trip(client, org_headers):
    created = client.post(
        "/api/public-holidays",
        headers=org_headers,
        json={"date": "2024-04-25", "name": "Anzac Day"},
    )
    assert created.status_code == 201

    duplicate = client.post(
        "/api/public-holidays",
        headers=org_headers,
        json={"date": "2024-04-25", "name": "Anzac Day"},
    )
    assert duplicate.status_code == 409

    listed = client.get("/api/public-holidays?year=2024", headers=org_headers)
    assert [h["name"] for h in listed.json()] == ["Anzac Day"]


def test_chargeable_days_endpoint(client, org_headers, calendar):
    response = client.post(
        "/api/leave/chargeable-days",
        headers=org_headers,
        json={"start_date": "2024-01-22", "end_date": "2024-01-28", "region_code": "NSW"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["chargeable_days"] == 4
    assert data["holiday_count"] == 1
    assert data["holiday_details"][0]["name"] == "Australia Day (NSW)"


def test_chargeable_days_endpoint_rejects_bad_range(client, org_headers):
    response = client.post(
        "/api/leave/chargeable-days",
        headers=org_headers,
        json={"start_date": "2024-01-28", "end_date": "2024-01-22"},
    )
    assert response.status_code == 422
    assert response.json()["errors"][0]["code"] == "INVALID_LEAVE_REQUEST"
