import pytest
from fastapi.testclient import TestClient

from identity import issue_token
from main import app, get_store


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    return {"Authorization": f"Bearer {issue_token(1)}"}


def _seed(client, auth):
    account = client.post(
        "/api/accounts", json={"name": "Card", "accrues": True}, headers=auth
    ).json()
    category = client.post(
        "/api/categories", json={"name": "Food", "kind": "expense"}, headers=auth
    ).json()
    return account, category


def test_requests_without_a_token_are_rejected(client):
    assert client.get("/api/accounts").status_code == 401
    response = client.get(
        "/api/accounts", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


def test_create_and_list_accounts(client, auth):
    response = client.post(
        "/api/accounts",
        json={"name": "Wallet", "initial_balance_cents": 5_000},
        headers=auth,
    )

    assert response.status_code == 201
    listed = client.get("/api/accounts", headers=auth).json()
    assert [(a["name"], a["balance_cents"]) for a in listed] == [("Wallet", 5_000)]


def test_category_in_use_returns_conflict(client, auth):
    account, category = _seed(client, auth)
    created = client.post(
        "/api/transactions",
        json={
            "account_id": account["id"],
            "category_id": category["id"],
            "amount_cents": 1_200,
            "kind": "expense",
            "date": "2024-05-10",
        },
        headers=auth,
    )
    assert created.status_code == 201

    response = client.delete(f"/api/categories/{category['id']}", headers=auth)

    assert response.status_code == 409


def test_kind_mismatch_is_a_bad_request(client, auth):
    account, category = _seed(client, auth)

    response = client.post(
        "/api/transactions",
        json={
            "account_id": account["id"],
            "category_id": category["id"],
            "amount_cents": 1_200,
            "kind": "income",
            "date": "2024-05-10",
        },
        headers=auth,
    )

    assert response.status_code == 400


def test_editing_transaction_kind_is_refused(client, auth):
    account, category = _seed(client, auth)
    txn = client.post(
        "/api/transactions",
        json={
            "account_id": account["id"],
            "category_id": category["id"],
            "amount_cents": 1_200,
            "kind": "expense",
            "date": "2024-05-10",
        },
        headers=auth,
    ).json()

    response = client.patch(
        f"/api/transactions/{txn['id']}", json={"kind": "income"}, headers=auth
    )

    assert response.status_code == 422


def test_installment_plan_create_and_cancel(client, auth):
    account, category = _seed(client, auth)

    created = client.post(
        "/api/installments",
        json={
            "description": "Sofa",
            "total_amount_cents": 60_000,
            "installment_amount_cents": 10_000,
            "installment_count": 6,
            "category_id": category["id"],
            "account_id": account["id"],
            "start_date": "2099-01-10",
        },
        headers=auth,
    )
    assert created.status_code == 201
    plan = created.json()
    assert plan["end_date"] == "2099-06-10"
    assert plan["remaining_cents"] == 60_000

    cancelled = client.post(f"/api/installments/{plan['id']}/cancel", headers=auth)

    assert cancelled.json() == {"deleted": 6}
    assert client.get("/api/transactions?period=all", headers=auth).json() == []


def test_unknown_plan_is_not_found(client, auth):
    response = client.post("/api/installments/999/cancel", headers=auth)

    assert response.status_code == 404


def test_session_start_reports_both_passes(client, auth):
    response = client.post("/api/session/start", headers=auth)

    assert response.status_code == 200
    assert response.json() == {
        "recurring": {"created": [], "skipped": [], "failed": []},
        "paid_counts": {"updated": [], "unchanged": [], "failed": []},
    }


def test_null_amount_on_edit_is_a_bad_request(client, auth):
    account, category = _seed(client, auth)
    txn = client.post(
        "/api/transactions",
        json={
            "account_id": account["id"],
            "category_id": category["id"],
            "amount_cents": 1_200,
            "kind": "expense",
            "date": "2024-05-10",
        },
        headers=auth,
    ).json()

    response = client.patch(
        f"/api/transactions/{txn['id']}", json={"amount_cents": None}, headers=auth
    )

    assert response.status_code == 400


def test_duplicate_category_is_a_bad_request(client, auth):
    _seed(client, auth)

    response = client.post(
        "/api/categories", json={"name": "Food", "kind": "expense"}, headers=auth
    )

    assert response.status_code == 400
