from datetime import date, timedelta

from credit_plan.data_models import Loan

LOAN = {
    "name": "Sofa",
    "amount": 1200,
    "annual_rate": 0,
    "term_months": 12,
    "start_date": "2024-01-01",
}


def _create(client, **overrides):
    response = client.post("/api/loans", json={**LOAN, **overrides})
    assert response.status_code == 200
    return response.get_json()["data"]


def test_create_and_list_loans(client):
    loan = _create(client)

    assert loan["id"]
    assert loan["annual_rate"] == 0.0
    assert loan["monthly_payment"] == 100.0
    assert loan["current_balance"] == 1200.0
    assert len(loan["schedule"]) == 12

    body = client.get("/api/loans").get_json()
    assert body["ok"] is True
    assert [item["id"] for item in body["data"]] == [loan["id"]]
    assert len(body["data"][0]["schedule"]) == 12


def test_create_loan_without_rate_has_no_schedule(client):
    loan = _create(client, annual_rate=None)

    assert loan["annual_rate"] is None
    assert loan["schedule"] == []


def test_create_loan_rejects_non_object(client):
    response = client.post("/api/loans", json=[1, 2])

    assert response.status_code == 400
    assert response.get_json() == {
        "ok": False,
        "code": "VALIDATION_ERROR",
        "message": "Request body must be a JSON object",
    }


def test_create_loan_rejects_bad_schedule(client):
    response = client.post("/api/loans", json={**LOAN, "schedule": "rows"})

    assert response.status_code == 400
    assert response.get_json()["code"] == "VALIDATION_ERROR"


def test_toggle_payment(client):
    loan = _create(client)

    response = client.post(f"/api/loans/{loan['id']}/payments/1", json={"paid_amount": 120})
    data = response.get_json()["data"]

    assert response.status_code == 200
    assert data["schedule"][0]["paid"] is True
    assert data["schedule"][0]["paid_amount"] == 120.0
    assert data["current_balance"] == 1100.0

    data = client.post(f"/api/loans/{loan['id']}/payments/1").get_json()["data"]
    assert data["schedule"][0]["paid"] is False
    assert data["current_balance"] == 1200.0


def test_toggle_payment_rejects_unusable_amount(client):
    loan = _create(client)

    response = client.post(f"/api/loans/{loan['id']}/payments/1", json={"paid_amount": "abc"})

    assert response.status_code == 400
    assert response.get_json()["code"] == "VALIDATION_ERROR"
    schedule = client.get("/api/loans").get_json()["data"][0]["schedule"]
    assert schedule[0]["paid"] is False


def test_toggle_payment_out_of_range(client):
    loan = _create(client)

    response = client.post(f"/api/loans/{loan['id']}/payments/13")

    assert response.status_code == 400
    assert response.get_json()["code"] == "VALIDATION_ERROR"


def test_unknown_loan_is_not_found(client):
    for response in (
        client.post("/api/loans/missing/payments/1"),
        client.post("/api/loans/missing/rebuild", json={"term_months": 6}),
        client.get("/api/loans/missing/summary"),
        client.delete("/api/loans/missing"),
    ):
        assert response.status_code == 404
        assert response.get_json()["code"] == "NOT_FOUND"


def test_rebuild_keeps_history(client):
    loan = _create(client)
    client.post(f"/api/loans/{loan['id']}/payments/1")

    response = client.post(f"/api/loans/{loan['id']}/rebuild", json={"annual_rate": 12, "term_months": 6})
    data = response.get_json()["data"]

    assert response.status_code == 200
    assert data["annual_rate"] == 12.0
    assert len(data["schedule"]) == 6
    assert data["schedule"][0]["paid"] is True


def test_rebuild_type_change_conflict(client):
    loan = _create(client)
    client.post(f"/api/loans/{loan['id']}/payments/1")

    response = client.post(f"/api/loans/{loan['id']}/rebuild", json={"schedule_type": "differentiated"})

    assert response.status_code == 409
    assert response.get_json()["code"] == "CONFLICT"


def test_summary(client):
    loan = _create(client, annual_rate=12, schedule_type="differentiated")

    data = client.get(f"/api/loans/{loan['id']}/summary").get_json()["data"]

    assert data == {
        "total_interest_paid": 78.0,
        "total_paid": 1278.0,
        "actual_paid": 0.0,
        "current_balance": 1200.0,
        "months_remaining": 12,
    }


def test_delete_loan(client):
    loan = _create(client)

    assert client.delete(f"/api/loans/{loan['id']}").get_json() == {"ok": True, "data": None}
    assert client.get("/api/loans").get_json()["data"] == []


def test_upcoming(client):
    start = date.today() + timedelta(days=2)
    loan = _create(client, start_date=start.isoformat())

    data = client.get("/api/upcoming?days=7").get_json()["data"]
    assert data == [
        {
            "loan_id": loan["id"],
            "loan_name": "Sofa",
            "payment_date": start.isoformat(),
            "amount": 100.0,
            "month_number": 1,
        }
    ]
    assert client.get("/api/upcoming?days=1").get_json()["data"] == []


def test_stateless_schedule(client):
    data = client.post("/api/schedule", json=LOAN).get_json()["data"]

    assert len(data) == 12
    assert data[0]["planned_payment"] == 100.0
    assert data[-1]["remaining_balance"] == 0.0


def test_stateless_schedule_with_missing_rate_is_empty(client):
    payload = {key: value for key, value in LOAN.items() if key != "annual_rate"}

    assert client.post("/api/schedule", json=payload).get_json()["data"] == []


def test_calculate_payment(client):
    response = client.post("/api/calculate/payment", json={"amount": 120000, "annual_rate": 12, "term_months": 12})

    assert response.get_json() == {"ok": True, "data": {"monthly_payment": 10661.85}}


def test_calculate_term(client):
    response = client.post(
        "/api/calculate/term", json={"amount": 100000, "annual_rate": 10, "monthly_payment": 4614.50}
    )

    assert response.get_json()["data"] == {"term_months": 24}


def test_calculate_term_infeasible(client):
    response = client.post(
        "/api/calculate/term", json={"amount": 100000, "annual_rate": 12, "monthly_payment": 1000}
    )

    assert response.status_code == 422
    assert response.get_json()["code"] == "CALCULATION_ERROR"


def test_calculate_amount(client):
    response = client.post(
        "/api/calculate/amount", json={"annual_rate": 12, "term_months": 12, "monthly_payment": 10661.85}
    )

    assert response.get_json()["data"] == {"amount": 119999.95}


def test_calculate_amount_missing_input(client):
    response = client.post("/api/calculate/amount", json={"annual_rate": 12, "term_months": 12})

    assert response.status_code == 422


def test_migrations(client, store):
    store.save_loan(Loan(id="draft", amount=None))

    data = client.post("/api/migrations").get_json()["data"]

    assert [loan["id"] for loan in data["migrated"]] == ["draft"]
    assert data["failed"] == []
