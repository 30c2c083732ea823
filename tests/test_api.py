"""Tests for the JSON routes."""

import sqlite3
from datetime import date

from fleet_app.finance import FleetFinance
from fleet_app.stores import TransactionStore


def this_month(day=1):
    return date.today().replace(day=day).isoformat()


def seed_vehicle(client, vehicle_id="v1", number="DXB-1001"):
    response = client.post("/api/vehicles", json={"id": vehicle_id, "vehicleNumber": number})
    assert response.status_code == 201
    return response.get_json()


def post_transaction(client, **fields):
    payload = {
        "vehicleId": "v1",
        "transactionType": "revenue",
        "amount": 1000,
        "date": this_month(),
    }
    payload.update(fields)
    return client.post("/api/vehicle-transactions", json=payload)


def test_create_and_fetch_vehicle(client):
    created = seed_vehicle(client)

    assert created["vehicleNumber"] == "DXB-1001"
    assert client.get("/api/vehicles/v1").get_json()["id"] == "v1"
    assert client.get("/api/vehicles/missing").status_code == 404
    assert client.post("/api/vehicles", json={"vehicleNumber": "DXB-1001"}).status_code == 400


def test_transaction_lifecycle(client):
    seed_vehicle(client)

    response = post_transaction(client, category="Rental", description="Weekly rental")
    assert response.status_code == 201
    created = response.get_json()
    assert created["month"] == this_month()[:7]
    assert created["amount"] == 1000.0
    assert created["transactionType"] == "revenue"

    response = client.put(f"/api/vehicle-transactions/{created['id']}", json={"amount": 1250})
    assert response.status_code == 200
    assert response.get_json()["amount"] == 1250.0

    response = client.delete(f"/api/vehicle-transactions/{created['id']}")
    assert response.status_code == 204
    assert client.get(f"/api/vehicle-transactions/{created['id']}").status_code == 404


def test_transaction_validation_errors_are_400(client):
    seed_vehicle(client)

    response = post_transaction(client, amount=0)
    assert response.status_code == 400
    assert response.get_json() == {"error": "Transaction amount must be greater than 0"}

    response = post_transaction(client, vehicleId="nope")
    assert response.status_code == 400
    assert "does not exist" in response.get_json()["error"]

    response = post_transaction(client, date="2999-01-01")
    assert response.status_code == 400
    assert "future" in response.get_json()["error"]


def test_update_errors(client):
    seed_vehicle(client)
    created = post_transaction(client).get_json()

    assert client.put("/api/vehicle-transactions/missing", json={"amount": 5}).status_code == 404
    response = client.put(f"/api/vehicle-transactions/{created['id']}", json={"amount": -5})
    assert response.status_code == 400


def test_list_transactions_with_filters(client):
    seed_vehicle(client)
    seed_vehicle(client, "v2", "DXB-1002")
    post_transaction(client)
    post_transaction(client, vehicleId="v2")

    assert len(client.get("/api/vehicle-transactions").get_json()) == 2
    by_vehicle = client.get("/api/vehicle-transactions?vehicleId=v1").get_json()
    assert [t["vehicleId"] for t in by_vehicle] == ["v1"]
    month = this_month()[:7]
    assert len(client.get(f"/api/vehicle-transactions?vehicleId=v1&month={month}").get_json()) == 1
    assert client.get("/api/vehicle-transactions?vehicleId=v1&month=1999-01").get_json() == []


def test_profitability_payload(client):
    seed_vehicle(client)
    post_transaction(client, amount=1000)
    post_transaction(client, transactionType="expense", amount=400, category="Fuel")

    response = client.get("/api/vehicle-finances/v1")

    assert response.status_code == 200
    summary = response.get_json()
    assert summary["vehicleId"] == "v1"
    assert summary["allTimeProfit"] == 600.0
    assert summary["currentMonth"]["totalRevenue"] == 1000.0
    assert summary["currentMonth"]["transactionCount"] == 2
    assert len(summary["months"]) == 12
    assert summary["months"][-1]["month"] == this_month()[:7]


def test_profitability_of_vehicle_without_transactions(client):
    summary = client.get("/api/vehicle-finances/unknown").get_json()

    assert summary["allTimeRevenue"] == 0
    assert len(summary["months"]) == 12


def test_profitability_store_failure_is_500(app, client, monkeypatch):
    app.config["PROPAGATE_EXCEPTIONS"] = False

    def broken(self, vehicle_id):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(TransactionStore, "get_by_vehicle_id", broken)

    response = client.get("/api/vehicle-finances/v1")

    assert response.status_code == 500
    assert response.get_json() == {"error": "database is locked"}


def test_dashboard_metrics(client):
    seed_vehicle(client)
    seed_vehicle(client, "v2", "DXB-1002")
    customer = client.post("/api/customers", json={"name": "Gulf Logistics"}).get_json()
    client.post(
        "/api/invoices",
        json={"id": "inv1", "number": "INV-001", "customerId": customer["id"], "total": 1500},
    )
    post_transaction(client, amount=1500, invoiceId="inv1")
    post_transaction(client, transactionType="expense", amount=500, category="Fuel")

    response = client.get("/api/vehicle-finances/dashboard")

    assert response.status_code == 200
    metrics = response.get_json()
    assert metrics["overall"]["totalRevenue"] == 1500.0
    assert metrics["overall"]["netProfit"] == 1000.0
    assert metrics["vehicleBased"]["totalActive"] == 1
    assert metrics["vehicleBased"]["noData"] == 1
    assert metrics["customerBased"]["topByRevenue"] == [
        {"customerId": customer["id"], "customerName": "Gulf Logistics", "revenue": 1500.0}
    ]
    assert metrics["categoryBased"]["expensesByCategory"] == {"Fuel": 500.0}
    assert metrics["operational"]["mostActiveVehicle"]["vehicleNumber"] == "DXB-1001"
    assert len(metrics["timeBased"]["monthlyTrend"]) == 12


def test_dashboard_falls_back_to_zeros(client, monkeypatch):
    def broken(self):
        raise sqlite3.OperationalError("no such table: vehicle_transactions")

    monkeypatch.setattr(FleetFinance, "dashboard_metrics", broken)

    response = client.get("/api/vehicle-finances/dashboard")

    assert response.status_code == 200
    metrics = response.get_json()
    assert metrics["overall"]["totalRevenue"] == 0
    assert metrics["timeBased"]["monthlyTrend"] == []
    assert metrics["vehicleBased"]["topByRevenue"] == []
    assert metrics["categoryBased"]["topExpenseCategory"] == "N/A"
    assert metrics["operational"]["mostActiveVehicle"] == {
        "vehicleId": "",
        "vehicleNumber": "N/A",
        "transactionCount": 0,
    }


def test_expense_categories(client):
    names = [c["name"] for c in client.get("/api/expense-categories").get_json()]
    assert "Fuel" in names

    response = client.post("/api/expense-categories", json={"name": "Tyres"})
    assert response.status_code == 201
    assert response.get_json()["isCustom"] is True

    assert client.post("/api/expense-categories", json={"name": "TYRES"}).status_code == 400
    assert client.delete("/api/expense-categories/cat_fuel").status_code == 409
    category_id = response.get_json()["id"]
    assert client.delete(f"/api/expense-categories/{category_id}").status_code == 204


def test_invoice_routes(client):
    assert client.get("/api/invoices/missing").status_code == 404
    client.post("/api/invoices", json={"id": "inv1", "number": "INV-001", "total": 300})

    invoices = client.get("/api/invoices").get_json()

    assert [i["number"] for i in invoices] == ["INV-001"]
    assert invoices[0]["customerId"] is None


def test_init_db_command(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["init-db"])

    assert "Initialized the database." in result.output


def test_employee_routes_and_linked_transaction(client):
    seed_vehicle(client)

    response = client.post(
        "/api/employees", json={"name": "Ahmed Khan", "role": "Driver", "salary": 3500}
    )
    assert response.status_code == 201
    employee = response.get_json()
    assert employee["salary"] == 3500.0

    assert client.get(f"/api/employees/{employee['id']}").get_json()["name"] == "Ahmed Khan"
    assert client.get("/api/employees/missing").status_code == 404
    assert [e["id"] for e in client.get("/api/employees").get_json()] == [employee["id"]]
    assert client.post("/api/employees", json={"role": "Driver"}).status_code == 400

    response = post_transaction(
        client, transactionType="expense", category="Salary", amount=3500, employeeId=employee["id"]
    )
    assert response.status_code == 201
    assert response.get_json()["employeeId"] == employee["id"]


def test_update_and_delete_vehicle(client):
    seed_vehicle(client)
    seed_vehicle(client, "v2", "DXB-1002")
    post_transaction(client, amount=1000)
    post_transaction(client, vehicleId="v2", amount=400)

    response = client.put("/api/vehicles/v2", json={"make": "Nissan", "status": "inactive"})
    assert response.status_code == 200
    assert response.get_json()["make"] == "Nissan"
    assert response.get_json()["vehicleNumber"] == "DXB-1002"
    assert client.put("/api/vehicles/v2", json={"vehicleNumber": "DXB-1001"}).status_code == 400
    assert client.put("/api/vehicles/missing", json={"make": "Kia"}).status_code == 404

    assert client.delete("/api/vehicles/v2").status_code == 204
    assert client.get("/api/vehicles/v2").status_code == 404
    assert client.get("/api/vehicle-transactions?vehicleId=v2").get_json() == []
    metrics = client.get("/api/vehicle-finances/dashboard").get_json()
    assert metrics["overall"]["totalRevenue"] == 1000.0
    assert metrics["operational"]["avgTransactionsPerVehicle"] == 1.0


def test_expense_category_get_and_rename(client):
    assert client.get("/api/expense-categories/cat_fuel").get_json()["name"] == "Fuel"
    assert client.get("/api/expense-categories/missing").status_code == 404

    category = client.post("/api/expense-categories", json={"name": "Tyres"}).get_json()
    response = client.put(f"/api/expense-categories/{category['id']}", json={"name": "Wheels"})
    assert response.status_code == 200
    assert response.get_json()["name"] == "Wheels"

    response = client.put(f"/api/expense-categories/{category['id']}", json={"name": "fuel"})
    assert response.status_code == 400
    assert client.put("/api/expense-categories/missing", json={"name": "X"}).status_code == 404


def test_non_object_json_body_is_400(client):
    seed_vehicle(client)

    response = client.post("/api/vehicle-transactions", json=[1])
    assert response.status_code == 400
    assert client.post("/api/vehicles", json="DXB-1003").status_code == 400
    assert client.put("/api/vehicles/v1", json=[1]).status_code == 200
