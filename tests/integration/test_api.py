"""Integration tests for API endpoints"""

from datetime import date, timedelta
from fastapi.testclient import TestClient
from cashflow_engine.api.dependencies import get_reference_client
from cashflow_engine.domain.exceptions import ReferenceDataError

CRON_HEADERS = {"Authorization": "Bearer default-secret"}


class FailingReferenceClient:
    async def get_categories(self):
        raise ReferenceDataError("Reference API timeout after 5.0s")


def create_recurring(client: TestClient, **overrides) -> dict:
    body = {
        "description": "Rent",
        "amount": 1200,
        "type": "EXPENSE",
        "frequency": "MONTHLY",
        "categoryId": "cat-rent",
        "userId": "user-1",
        "startDate": "2025-01-15",
    }
    body.update(overrides)
    response = client.post("/recurring-transactions", json=body)
    assert response.status_code == 201
    return response.json()


def create_plan(client: TestClient, **overrides) -> dict:
    body = {
        "description": "Laptop",
        "totalAmount": 1000.00,
        "installments": 3,
        "categoryId": "cat-tech",
        "userId": "user-1",
        "startDate": "2025-03-05",
    }
    body.update(overrides)
    response = client.post("/installments", json=body)
    assert response.status_code == 201
    return response.json()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "cashflow_recurring_executions_total" in response.text


def test_request_id_is_propagated(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_execute_recurring_catch_up(client: TestClient):
    """Three missed monthly periods generate three transactions"""
    record = create_recurring(client)
    assert record["state"] == "ACTIVE"
    assert record["nextDueDate"] == "2025-01-15"

    response = client.post(f"/recurring-transactions/{record['id']}/execute", params={"asOf": "2025-03-20"})

    assert response.status_code == 200
    data = response.json()
    assert [t["date"] for t in data["transactions"]] == ["2025-01-15", "2025-02-15", "2025-03-15"]
    assert all(t["amount"] == 1200 for t in data["transactions"])
    assert all(t["recurringSourceId"] == record["id"] for t in data["transactions"])
    assert data["nextDueDate"] == "2025-04-15"
    assert data["state"] == "ACTIVE"

    # Second call with the same date has nothing left to do
    response = client.post(f"/recurring-transactions/{record['id']}/execute", params={"asOf": "2025-03-20"})
    assert response.status_code == 200
    assert response.json()["transactions"] == []
    assert response.json()["nextDueDate"] == "2025-04-15"


def test_pause_blocks_execution(client: TestClient):
    record = create_recurring(client)

    response = client.put(f"/recurring-transactions/{record['id']}", json={"isActive": False})
    assert response.status_code == 200
    assert response.json()["state"] == "PAUSED"
    assert response.json()["nextDueDate"] == "2025-01-15"

    response = client.post(f"/recurring-transactions/{record['id']}/execute", params={"asOf": "2025-03-20"})
    assert response.status_code == 409


def test_ended_recurring_cannot_resume(client: TestClient):
    record = create_recurring(client, endDate="2025-02-01")
    client.post(f"/recurring-transactions/{record['id']}/execute", params={"asOf": "2025-03-20"})

    response = client.get(f"/recurring-transactions/{record['id']}")
    assert response.json()["state"] == "ENDED"

    response = client.put(f"/recurring-transactions/{record['id']}", json={"isActive": True})
    assert response.status_code == 409


def test_recurring_validation(client: TestClient):
    response = client.post(
        "/recurring-transactions",
        json={
            "description": "Rent",
            "amount": 1200,
            "type": "EXPENSE",
            "frequency": "FORTNIGHTLY",
            "categoryId": "cat-rent",
            "userId": "user-1",
            "startDate": "2025-01-15",
        },
    )
    assert response.status_code == 422

    response = client.post(
        "/recurring-transactions",
        json={
            "description": "Rent",
            "amount": 1200,
            "type": "EXPENSE",
            "frequency": "MONTHLY",
            "categoryId": "cat-rent",
            "userId": "user-1",
            "startDate": "2025-01-15",
            "endDate": "2025-01-01",
        },
    )
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "endDate"


def test_recurring_not_found(client: TestClient):
    assert client.get("/recurring-transactions/missing").status_code == 404
    assert client.post("/recurring-transactions/missing/execute").status_code == 404


def test_installment_lifecycle(client: TestClient):
    plan = create_plan(client)
    assert [s["amount"] for s in plan["schedule"]] == [333.33, 333.33, 333.34]
    assert plan["nextDueDate"] == "2025-03-05"
    assert plan["status"] == "ACTIVE"

    response = client.post(f"/installments/{plan['id']}/next")
    assert response.status_code == 200
    assert response.json()["currentInstallment"] == 1
    assert response.json()["nextDueDate"] == "2025-04-05"

    response = client.post(f"/installments/{plan['id']}/cancel")
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["nextDueDate"] is None

    response = client.post(f"/installments/{plan['id']}/next")
    assert response.status_code == 409


def test_installment_validation(client: TestClient):
    response = client.post(
        "/installments",
        json={
            "description": "Laptop",
            "totalAmount": 1000,
            "installments": 1,
            "categoryId": "cat-tech",
            "userId": "user-1",
        },
    )
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "installments"


def test_create_and_confirm_scheduled_transaction(client: TestClient):
    response = client.post(
        "/transactions",
        json={
            "description": "Bonus",
            "amount": 500.5,
            "type": "INCOME",
            "categoryId": "cat-salary",
            "userId": "user-1",
            "isScheduled": True,
            "scheduledDate": "2025-03-20",
        },
    )
    assert response.status_code == 201
    txn = response.json()
    assert txn["amount"] == 500.5
    assert txn["date"] == "2025-03-20"
    assert txn["isScheduled"] is True

    response = client.post(f"/transactions/{txn['id']}/confirm")
    assert response.status_code == 200
    assert response.json()["isScheduled"] is False
    assert response.json()["scheduledDate"] is None

    assert client.get(f"/transactions/{txn['id']}").json()["date"] == "2025-03-20"


def test_transaction_validation(client: TestClient):
    base = {"description": "Coffee", "type": "EXPENSE", "categoryId": "cat-food", "userId": "user-1"}

    assert client.post("/transactions", json={**base, "amount": -5}).status_code == 422
    assert client.post("/transactions", json={**base, "amount": 5.123}).status_code == 422
    assert client.post("/transactions", json={**base, "amount": 5, "isScheduled": True}).status_code == 422
    assert client.post("/transactions", json={**base, "amount": 5, "type": "TRANSFER"}).status_code == 422


def test_transaction_pays_installment(client: TestClient):
    plan = create_plan(client, installments=2)

    response = client.post(
        "/transactions",
        json={
            "description": "Laptop 1/2",
            "amount": 500,
            "type": "EXPENSE",
            "categoryId": "cat-tech",
            "userId": "user-1",
            "date": "2025-03-05",
            "installmentId": plan["id"],
        },
    )
    assert response.status_code == 201
    assert client.get(f"/installments/{plan['id']}").json()["currentInstallment"] == 1


def test_calendar_merges_all_sources(client: TestClient):
    create_recurring(client, startDate="2025-03-15")
    plan = create_plan(client)
    client.post(
        "/transactions",
        json={
            "description": "Groceries",
            "amount": 45.5,
            "type": "EXPENSE",
            "categoryId": "cat-food",
            "userId": "user-1",
            "date": "2025-03-10",
        },
    )

    response = client.get("/transactions/calendar", params={"month": 3, "year": 2025})

    assert response.status_code == 200
    data = response.json()
    assert len(data["dailyTotals"]) == 31
    assert data["totalTransactions"] == 1
    assert data["totalScheduled"] == 1
    assert data["totalPending"] == 1

    assert data["confirmedByDay"]["2025-03-10"][0]["status"] == "confirmed"
    assert data["dailyTotals"]["2025-03-10"]["expense"] == 45.5
    assert data["dailyTotals"]["2025-03-10"]["balance"] == -45.5

    recurring_event = data["scheduledByDay"]["2025-03-15"][0]
    assert recurring_event["status"] == "recurring"
    assert recurring_event["isRecurring"] is True
    assert data["dailyTotals"]["2025-03-15"]["scheduledExpense"] == 1200

    pending = data["pendingByDay"]["2025-03-05"][0]
    assert pending["id"] == f"installment-{plan['id']}-1"
    assert pending["description"] == "Laptop - 1/3"
    assert data["dailyTotals"]["2025-03-05"]["pendingExpense"] == 333.33


def test_calendar_empty_month(client: TestClient):
    response = client.get("/transactions/calendar", params={"month": 2, "year": 2024})
    assert response.status_code == 200
    totals = response.json()["dailyTotals"]
    assert len(totals) == 29
    assert all(
        t == {
            "income": 0,
            "expense": 0,
            "balance": 0,
            "scheduledIncome": 0,
            "scheduledExpense": 0,
            "pendingExpense": 0,
        }
        for t in totals.values()
    )


def test_calendar_rejects_invalid_month(client: TestClient):
    assert client.get("/transactions/calendar", params={"month": 13, "year": 2025}).status_code == 422


def _post_month(client: TestClient):
    for body in [
        {"description": "Salary", "amount": 3000, "type": "INCOME", "categoryId": "cat-salary", "date": "2025-03-01"},
        {"description": "Lunch", "amount": 50, "type": "EXPENSE", "categoryId": "cat-food", "date": "2025-03-05"},
        {"description": "Dinner", "amount": 50, "type": "EXPENSE", "categoryId": "cat-food", "date": "2025-03-06"},
        {"description": "Salary", "amount": 2000, "type": "INCOME", "categoryId": "cat-salary", "date": "2025-02-01"},
        {"description": "Rent", "amount": 1000, "type": "EXPENSE", "categoryId": "cat-rent", "date": "2025-02-03"},
    ]:
        assert client.post("/transactions", json={**body, "userId": "user-1"}).status_code == 201


def test_dashboard(client: TestClient):
    _post_month(client)

    response = client.get("/dashboard", params={"month": 3, "year": 2025})

    assert response.status_code == 200
    data = response.json()
    assert data["income"] == 3000
    assert data["expenses"] == 100
    assert data["balance"] == 2900
    assert data["previousMonth"] == {"income": 2000, "expenses": 1000}
    assert data["variations"] == {"income": 50.0, "expense": -90.0}
    assert data["metrics"]["savingsRate"] == 96.67
    assert data["metrics"]["mostUsedCategory"] == "Food"
    assert data["metrics"]["maxExpense"] == 50
    assert data["metrics"]["totalTransactions"] == 3
    assert [t["date"] for t in data["recentTransactions"]] == ["2025-03-06", "2025-03-05", "2025-03-01"]


def test_dashboard_without_reference_data(client: TestClient):
    _post_month(client)
    client.app.dependency_overrides[get_reference_client] = lambda: FailingReferenceClient()

    response = client.get("/dashboard", params={"month": 3, "year": 2025})

    assert response.status_code == 200
    assert response.json()["metrics"]["mostUsedCategory"] == "cat-food"


def test_dashboard_empty_month(client: TestClient):
    response = client.get("/dashboard", params={"month": 6, "year": 2025})
    assert response.status_code == 200
    metrics = response.json()["metrics"]
    assert metrics["savingsRate"] == 0
    assert metrics["daysUntilZero"] is None
    assert metrics["mostUsedCategory"] is None


def test_cron_requires_secret(client: TestClient):
    assert client.post("/cron/process-recurring").status_code == 401
    assert client.post("/cron/process-recurring", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.post("/cron/process-scheduled").status_code == 401


def test_cron_process_recurring(client: TestClient):
    today = date.today()
    create_recurring(client, frequency="WEEKLY", startDate=today.isoformat())
    create_recurring(client, startDate=(today + timedelta(days=2)).isoformat())

    status = client.get("/cron/process-recurring", headers=CRON_HEADERS).json()
    assert status["due"] == 1
    assert status["upcoming"] == 1

    response = client.post("/cron/process-recurring", headers=CRON_HEADERS)
    assert response.status_code == 200
    assert response.json() == {"total": 1, "processed": 1, "created": 1, "skipped": 0, "failed": 0}

    status = client.get("/cron/process-recurring", headers=CRON_HEADERS).json()
    assert status["due"] == 0


def test_cron_process_scheduled(client: TestClient):
    client.post(
        "/transactions",
        json={
            "description": "Bonus",
            "amount": 100,
            "type": "INCOME",
            "categoryId": "cat-salary",
            "userId": "user-1",
            "isScheduled": True,
            "scheduledDate": date.today().isoformat(),
        },
    )

    response = client.post("/cron/process-scheduled", headers=CRON_HEADERS)
    assert response.status_code == 200
    assert response.json() == {"confirmed": 1}


def test_installment_count_is_bounded(client: TestClient):
    response = client.post(
        "/installments",
        json={
            "description": "Mortgage",
            "totalAmount": 1000,
            "installments": 100000,
            "categoryId": "cat-rent",
            "userId": "user-1",
            "startDate": "2025-03-05",
        },
    )
    assert response.status_code == 422

    assert client.get("/transactions/calendar", params={"month": 3, "year": 2025}).status_code == 200
    assert client.get("/dashboard", params={"month": 3, "year": 2025}).status_code == 200


def test_execute_rejects_future_as_of(client: TestClient):
    record = create_recurring(client, frequency="DAILY", startDate=date.today().isoformat())
    future = (date.today() + timedelta(days=400)).isoformat()

    response = client.post(f"/recurring-transactions/{record['id']}/execute", params={"asOf": future})
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "asOf"

    assert client.get(f"/recurring-transactions/{record['id']}").json()["nextDueDate"] == date.today().isoformat()


def test_list_recurring_transactions(client: TestClient):
    rent = create_recurring(client)
    gym = create_recurring(client, description="Gym", userId="user-2", startDate="2025-02-01")
    client.put(f"/recurring-transactions/{gym['id']}", json={"isActive": False})

    response = client.get("/recurring-transactions")
    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == [rent["id"], gym["id"]]

    response = client.get("/recurring-transactions", params={"userId": "user-2"})
    assert [(r["id"], r["state"]) for r in response.json()] == [(gym["id"], "PAUSED")]


def test_list_installment_plans(client: TestClient):
    active = create_plan(client)
    cancelled = create_plan(client, description="Phone")
    client.post(f"/installments/{cancelled['id']}/cancel")

    response = client.get("/installments", params={"userId": "user-1", "status": "ACTIVE"})
    assert response.status_code == 200
    assert [p["id"] for p in response.json()] == [active["id"]]

    assert len(client.get("/installments").json()) == 2
    assert client.get("/installments", params={"status": "PAUSED"}).status_code == 422


def test_list_scheduled_transactions(client: TestClient):
    base = {"type": "INCOME", "categoryId": "cat-salary", "userId": "user-1", "isScheduled": True}
    past = client.post(
        "/transactions", json={**base, "description": "Old", "amount": 10, "scheduledDate": "2025-01-10"}
    ).json()
    later = (date.today() + timedelta(days=3)).isoformat()
    soon = client.post(
        "/transactions", json={**base, "description": "Bonus", "amount": 20, "scheduledDate": later}
    ).json()

    response = client.get("/transactions/scheduled")
    assert response.status_code == 200
    assert [t["id"] for t in response.json()] == [past["id"], soon["id"]]

    response = client.get("/transactions/scheduled", params={"status": "pending"})
    assert [t["id"] for t in response.json()] == [soon["id"]]

    assert len(client.get("/transactions/scheduled", params={"limit": 1}).json()) == 1
    assert client.get("/transactions/scheduled", params={"status": "done"}).status_code == 422


def pay_plan(client: TestClient, plan: dict) -> dict:
    response = client.post(
        "/transactions",
        json={
            "description": "Laptop",
            "amount": 333.33,
            "type": "EXPENSE",
            "categoryId": "cat-tech",
            "userId": "user-1",
            "date": "2025-03-05",
            "installmentId": plan["id"],
        },
    )
    assert response.status_code == 201
    return response.json()


def test_delete_transaction_recounts_plan(client: TestClient):
    plan = create_plan(client)
    first = pay_plan(client, plan)
    pay_plan(client, plan)

    assert client.delete(f"/transactions/{first['id']}").status_code == 204
    assert client.get(f"/transactions/{first['id']}").status_code == 404
    assert client.delete(f"/transactions/{first['id']}").status_code == 404

    assert client.get(f"/installments/{plan['id']}").json()["currentInstallment"] == 1


def test_installment_sync_endpoints(client: TestClient):
    plan = create_plan(client, installments=2)
    pay_plan(client, plan)
    first = pay_plan(client, plan)

    status = client.get(f"/installments/{plan['id']}/sync").json()
    assert status["isSynced"] is True
    assert status["needsSync"] is False
    assert status["transactionCount"] == 2
    assert status["status"] == "COMPLETED"

    # A completed plan stays completed after losing a payment
    client.delete(f"/transactions/{first['id']}")
    response = client.post(f"/installments/{plan['id']}/sync")
    assert response.status_code == 200
    body = response.json()
    assert body["previousInstallment"] == 2
    assert body["calculatedInstallment"] == 2
    assert body["difference"] == 0
    assert body["transactionCount"] == 1
    assert body["isCompleted"] is True
    assert body["installment"]["status"] == "COMPLETED"

    assert client.post("/installments/missing/sync").status_code == 404
    assert client.get("/installments/missing/sync").status_code == 404


def test_cron_sync_installments(client: TestClient):
    plan = create_plan(client)
    pay_plan(client, plan)

    assert client.post("/cron/sync-installments").status_code == 401
    assert client.get("/cron/sync-installments", headers=CRON_HEADERS).json() == {"needsSyncCount": 0}

    response = client.post("/cron/sync-installments", headers=CRON_HEADERS)
    assert response.status_code == 200
    assert response.json() == {
        "totalInstallments": 1,
        "syncedCount": 1,
        "fixedCount": 0,
        "failedCount": 0,
        "fixes": [],
    }
