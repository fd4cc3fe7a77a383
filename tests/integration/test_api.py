"""Integration tests for API endpoints"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from conftest import FakeAccountData, FakeNotifier, FakeTransactionSource, make_account, make_stream, make_txn
from dynamic_budget.infrastructure.database.models import LinkedItem, Transaction, User
from dynamic_budget.infrastructure.database.repositories import LinkedItemRepository


def money(value) -> Decimal:
    return Decimal(str(value))


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "budget_sync_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_register_and_profile(client: TestClient):
    response = client.post(
        "/v1/users/register",
        json={"name": "Carol", "email": "Carol@Example.com", "auth_uid": "uid-carol"},
    )
    assert response.status_code == 201
    assert response.json()["email"] == "carol@example.com"

    profile = client.get("/v1/users/profile", headers={"X-Auth-Uid": "uid-carol"})
    assert profile.status_code == 200
    assert profile.json()["onboarding_complete"] is False

    balance = client.get("/v1/balance", headers={"X-Auth-Uid": "uid-carol"})
    assert money(balance.json()["balance"]) == Decimal("0")


def test_register_duplicate_email_is_conflict(client: TestClient, user: User):
    response = client.post("/v1/users/register", json={"email": "alice@example.com"})
    assert response.status_code == 409


def test_missing_auth_header_is_unauthorized(client: TestClient):
    assert client.get("/v1/balance").status_code == 401


def test_unknown_user_is_not_found(client: TestClient):
    assert client.get("/v1/balance", headers={"X-Auth-Uid": "nobody"}).status_code == 404


def test_link_item_twice_is_conflict(client: TestClient, user: User, auth_headers):
    body = {"item_id": "item-9", "access_token": "access-9"}
    assert client.post("/v1/items", json=body, headers=auth_headers).status_code == 201
    assert client.post("/v1/items", json=body, headers=auth_headers).status_code == 409


def test_set_balance(client: TestClient, user: User, auth_headers):
    response = client.post("/v1/balance", json={"amount": "123.45"}, headers=auth_headers)
    assert response.status_code == 200
    assert money(response.json()["balance"]) == Decimal("123.45")


def test_sync_and_decide_flow(
    client: TestClient,
    user: User,
    linked_item: LinkedItem,
    source: FakeTransactionSource,
    notifier: FakeNotifier,
    auth_headers,
):
    source.added = [
        make_txn("pay", "-3000", txn_date=date(2024, 2, 15), name="ACME PAYROLL"),
        make_txn("coffee", "4.50"),
    ]

    sync = client.post("/v1/transactions/sync", headers=auth_headers)
    assert sync.status_code == 200
    assert sync.json()["added_count"] == 2
    assert money(sync.json()["balance"]) == Decimal("-4.50")
    assert len(notifier.transactions) == 2

    pending = client.get("/v1/transactions/deposits/pending", headers=auth_headers).json()
    assert [t["external_id"] for t in pending] == ["pay"]
    assert pending[0]["suggested_kind"] == "paycheck"

    decided = client.post(
        f"/v1/transactions/{pending[0]['id']}/decision",
        json={"decision": "treat_as_income"},
        headers=auth_headers,
    )
    assert decided.status_code == 200
    assert decided.json()["counted_as_income"] is True
    assert money(decided.json()["balance"]) == Decimal("2995.50")

    listed = client.get("/v1/transactions", headers=auth_headers).json()
    assert len(listed) == 2


def test_sync_upstream_failure_is_503(client: TestClient, user: User, linked_item: LinkedItem, source, auth_headers):
    source.fail = True
    response = client.post("/v1/transactions/sync", headers=auth_headers)
    assert response.status_code == 503


def test_sync_without_linked_item_is_400(client: TestClient, user: User, auth_headers):
    assert client.post("/v1/transactions/sync", headers=auth_headers).status_code == 400


def test_invalid_decision_is_400(client: TestClient, db: Session, user: User, auth_headers):
    txn = Transaction(user_id=user.id, external_id="x", amount=Decimal("10"), date=date(2024, 2, 1), name="x")
    db.add(txn)
    db.commit()

    response = client.post(f"/v1/transactions/{txn.id}/decision", json={"decision": "nope"}, headers=auth_headers)
    assert response.status_code == 400


def test_decision_on_missing_transaction_is_404(client: TestClient, user: User, auth_headers):
    response = client.post("/v1/transactions/999/decision", json={"decision": "treat_as_income"}, headers=auth_headers)
    assert response.status_code == 404


def test_large_expense_review(client: TestClient, db: Session, user: User, auth_headers):
    txn = Transaction(
        user_id=user.id,
        external_id="tv",
        amount=Decimal("1200"),
        date=date(2024, 2, 10),
        name="Best Buy",
        is_large_expense_candidate=True,
    )
    db.add(txn)
    db.commit()

    pending = client.get("/v1/transactions/large-expenses/pending", headers=auth_headers).json()
    assert [t["id"] for t in pending] == [txn.id]

    missing_split = client.post(
        f"/v1/transactions/{txn.id}/large-expense-decision",
        json={"option": "convert_to_fixed_cost"},
        headers=auth_headers,
    )
    assert missing_split.status_code == 400

    response = client.post(
        f"/v1/transactions/{txn.id}/large-expense-decision",
        json={"option": "convert_to_fixed_cost", "split_over_periods": 3},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert money(response.json()["balance"]) == Decimal("1200.00")

    fixed_costs = client.get("/v1/fixed-costs", headers=auth_headers).json()["fixed_costs"]
    assert len(fixed_costs) == 3
    assert {fc["type"] for fc in fixed_costs} == {"large_expense_plan"}


def test_fixed_cost_crud(client: TestClient, user: User, auth_headers):
    created = client.post(
        "/v1/fixed-costs",
        json={"name": "Rent", "amount": 1500, "category": "Housing", "plaid_merchant_name": "Landlord"},
        headers=auth_headers,
    )
    assert created.status_code == 201
    fixed_cost_id = created.json()["id"]
    assert created.json()["type"] == "manual"

    assert client.delete(f"/v1/fixed-costs/{fixed_cost_id}", headers=auth_headers).status_code == 204
    assert client.delete(f"/v1/fixed-costs/{fixed_cost_id}", headers=auth_headers).status_code == 404


def test_mark_recurring(client: TestClient, db: Session, user: User, auth_headers):
    txn = Transaction(
        user_id=user.id,
        external_id="netflix",
        amount=Decimal("15.49"),
        date=date(2024, 1, 31),
        name="NETFLIX.COM",
        merchant_name="Netflix",
    )
    db.add(txn)
    db.commit()

    response = client.post(f"/v1/transactions/{txn.id}/mark-recurring", headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Netflix"
    assert body["category"] == "Recurring"
    assert body["type"] == "from_transaction"
    assert body["next_due_date"] == "2024-02-29"


def test_mark_recurring_rejects_deposits(client: TestClient, db: Session, user: User, auth_headers):
    txn = Transaction(
        user_id=user.id,
        external_id="refund",
        amount=Decimal("20"),
        is_credit=True,
        date=date(2024, 1, 31),
        name="Refund",
    )
    db.add(txn)
    db.commit()

    response = client.post(f"/v1/transactions/{txn.id}/mark-recurring", headers=auth_headers)
    assert response.status_code == 400


def test_finalize_endpoint(client: TestClient, user: User, auth_headers):
    next_paycheck = datetime.now(timezone.utc).date() + timedelta(days=1)
    body = {
        "paycheck_amount": 3000,
        "pay_day_1": next_paycheck.day,
        "pay_day_2": next_paycheck.day,
        "next_paycheck_date": next_paycheck.isoformat(),
    }

    first = client.post("/v1/budget/finalize", json=body, headers=auth_headers)
    assert first.status_code == 200
    assert first.json()["days_until_next_paycheck"] == 1

    second = client.post("/v1/budget/finalize", json=body, headers=auth_headers)
    assert second.status_code == 409


def test_finalize_rejects_bad_pay_day(client: TestClient, user: User, auth_headers):
    body = {"paycheck_amount": 3000, "pay_day_1": 0, "pay_day_2": 15, "next_paycheck_date": "2030-01-15"}
    assert client.post("/v1/budget/finalize", json=body, headers=auth_headers).status_code == 422


def test_register_device(client: TestClient, user: User, auth_headers):
    body = {"expo_push_token": "ExponentPushToken[x]", "platform": "ios"}
    first = client.post("/v1/notifications/register-device", json=body, headers=auth_headers)
    second = client.post("/v1/notifications/register-device", json=body, headers=auth_headers)

    assert first.status_code == 200
    assert first.json()["device_id"] == second.json()["device_id"]


def test_webhook_triggers_sync_and_notifies(
    client: TestClient,
    user: User,
    linked_item: LinkedItem,
    source: FakeTransactionSource,
    notifier: FakeNotifier,
):
    source.added = [make_txn("t1", "10")]

    response = client.post(
        "/v1/plaid/webhook",
        json={"webhook_type": "TRANSACTIONS", "webhook_code": "DEFAULT_UPDATE", "item_id": "item-1"},
    )

    assert response.status_code == 200
    assert response.json()["added"] == 1
    assert notifier.messages[0]["title"] == "Dynamic budget updated"
    assert notifier.messages[0]["user_id"] == user.id


def test_webhook_ignores_other_types(client: TestClient, source: FakeTransactionSource):
    response = client.post(
        "/v1/plaid/webhook",
        json={"webhook_type": "ITEM", "webhook_code": "ERROR", "item_id": "item-1"},
    )

    assert response.status_code == 200
    assert source.calls == []


def test_webhook_failure_still_acknowledged(client: TestClient, user: User, linked_item: LinkedItem, source):
    source.fail = True
    response = client.post(
        "/v1/plaid/webhook",
        json={"webhook_type": "TRANSACTIONS", "webhook_code": "INITIAL_UPDATE", "item_id": "item-1"},
    )

    assert response.status_code == 200
    assert "failed" in response.json()["message"]


def test_webhook_with_non_string_fields_is_acknowledged(client: TestClient, source: FakeTransactionSource):
    response = client.post(
        "/v1/plaid/webhook",
        json={"webhook_type": "TRANSACTIONS", "webhook_code": 42, "item_id": 12345},
    )

    assert response.status_code == 200
    assert source.calls == []


def test_webhook_with_numeric_item_id_syncs_matching_item(
    client: TestClient,
    db: Session,
    user: User,
    source: FakeTransactionSource,
):
    LinkedItemRepository(db).create_item(user.id, "12345", "access-numeric")
    db.commit()
    source.added = [make_txn("t1", "10")]

    response = client.post(
        "/v1/plaid/webhook",
        json={"webhook_type": "TRANSACTIONS", "webhook_code": "DEFAULT_UPDATE", "item_id": 12345},
    )

    assert response.status_code == 200
    assert response.json()["added"] == 1
    assert source.calls[0]["access_token"] == "access-numeric"


def test_list_linked_items(client: TestClient, user: User, linked_item: LinkedItem, auth_headers):
    response = client.get("/v1/items", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == [{"id": linked_item.id, "item_id": "item-1", "institution_name": "First Platypus Bank"}]


def test_recurring_streams_without_item(client: TestClient, user: User, auth_headers):
    response = client.get("/v1/plaid/recurring", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"linked": False, "inflow_streams": [], "outflow_streams": []}


def test_recurring_streams_and_import(
    client: TestClient,
    user: User,
    linked_item: LinkedItem,
    account_data: FakeAccountData,
    auth_headers,
):
    account_data.outflow = [make_stream("s1", "15.49"), make_stream("s2", "60", description="GYM", merchant_name="Gym")]

    streams = client.get("/v1/plaid/recurring", headers=auth_headers).json()
    assert streams["linked"] is True
    assert [s["stream_id"] for s in streams["outflow_streams"]] == ["s1", "s2"]

    imported = client.post("/v1/plaid/recurring/import", json={"stream_ids": ["s2"]}, headers=auth_headers)
    assert imported.status_code == 201
    assert [(fc["name"], fc["type"], fc["plaid_merchant_name"]) for fc in imported.json()] == [
        ("GYM", "plaid_discovered", "Gym")
    ]

    rest = client.post("/v1/plaid/recurring/import", headers=auth_headers)
    assert [fc["plaid_merchant_name"] for fc in rest.json()] == ["Netflix"]


def test_recurring_import_without_item_is_400(client: TestClient, user: User, auth_headers):
    assert client.post("/v1/plaid/recurring/import", headers=auth_headers).status_code == 400


def test_recurring_streams_upstream_failure_is_503(
    client: TestClient, user: User, linked_item: LinkedItem, account_data: FakeAccountData, auth_headers
):
    account_data.fail = True
    response = client.get("/v1/plaid/recurring", headers=auth_headers)

    assert response.status_code == 503
    assert response.json()["detail"].startswith("Upstream service unavailable")


def test_debt_snapshot(client: TestClient, user: User, linked_item: LinkedItem, account_data: FakeAccountData, auth_headers):
    account_data.accounts = {"access-sandbox-1": [make_account("visa", "credit", "250.10", name="Visa")]}

    response = client.get("/v1/debt/snapshot", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert money(body["total_debt"]) == Decimal("250.10")
    assert body["accounts"][0]["institution_name"] == "First Platypus Bank"
    assert body["accounts"][0]["account_name"] == "Visa"
