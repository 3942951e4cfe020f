from app.services.leave_cache import BalanceVersionSignal


def test_bump_is_monotonic():
    signal = BalanceVersionSignal()
    assert signal.current() == 0
    assert signal.bump("leave_request_created") == 1
    assert signal.bump("balance_adjusted") == 2
    assert signal.current() == 2


def test_subscribers_receive_events_in_order():
    signal = BalanceVersionSignal()
    received = []
    signal.subscribe(received.append)

    signal.bump("balances_initialized", organization_id=1, employee_id=7)
    signal.bump("leave_request_approved", organization_id=1, employee_id=7)

    assert [e.version for e in received] == [1, 2]
    assert received[1].reason == "leave_request_approved"
    assert received[0].employee_id == 7


def test_unsubscribe_stops_delivery():
    signal = BalanceVersionSignal()
    received = []
    unsubscribe = signal.subscribe(received.append)
    signal.bump("first")
    unsubscribe()
    signal.bump("second")
    assert len(received) == 1


def test_failing_subscriber_does_not_break_bump():
    signal = BalanceVersionSignal()
    received = []

    def broken(event):
        raise RuntimeError("subscriber down")

    signal.subscribe(broken)
    signal.subscribe(received.append)
    assert signal.bump("balance_adjusted") == 1
    assert len(received) == 1


def test_balance_version_endpoint_tracks_mutations(client, org_headers, employee, nes_policies):
    before = client.get("/api/leave/balance-version").json()["version"]
    client.post(f"/api/leave/balances/{employee.id}/initialize", headers=org_headers)
    after = client.get("/api/leave/balance-version").json()["version"]
    assert after > before
