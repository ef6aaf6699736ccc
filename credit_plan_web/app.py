"""JSON API for the credit plan engine.

Every response is an envelope: ``{"ok": true, "data": ...}`` on success and
``{"ok": false, "code": ..., "message": ...}`` on failure. Run it with
``flask --app credit_plan_web.app run``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify, request

from credit_plan.config import Config
from credit_plan.engine import build_schedule
from credit_plan.errors import CreditPlanError, InvalidParametersError, LoanNotFoundError, ScheduleTypeLockedError
from credit_plan.logging_config import setup_logging
from credit_plan.serialize import (
    loan_from_dict,
    loan_to_dict,
    schedule_item_from_dict,
    schedule_to_dicts,
    summary_to_dict,
    upcoming_to_dict,
)
from credit_plan.solver import calculate_amount_from_payment, calculate_annuity_payment, calculate_term_from_payment

from .loan_service import LoanService
from .loan_store import create_store_from_env

log = logging.getLogger(__name__)


def _ok(data: Any = None, status: int = 200):
    return jsonify({"ok": True, "data": data}), status


def _fail(code: str, message: str, status: int):
    return jsonify({"ok": False, "code": code, "message": message}), status


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidParametersError("Request body must be a JSON object")
    return data


def _service() -> LoanService:
    return current_app.extensions["credit_plan"]


def create_app(config: Optional[Config] = None, service: Optional[LoanService] = None) -> Flask:
    config = config or Config.from_env()
    setup_logging(config.log_level, config.log_format)

    app = Flask(__name__)
    app.secret_key = config.secret_key
    app.config["REMINDER_DAYS"] = config.reminder_days
    app.extensions["credit_plan"] = service or LoanService(create_store_from_env(config.database_url))

    @app.errorhandler(LoanNotFoundError)
    def handle_not_found(exc):
        return _fail("NOT_FOUND", str(exc), 404)

    @app.errorhandler(ScheduleTypeLockedError)
    def handle_locked(exc):
        return _fail("CONFLICT", str(exc), 409)

    @app.errorhandler(CreditPlanError)
    def handle_invalid(exc):
        log.warning("Rejected request to %s: %s", request.path, exc)
        return _fail("VALIDATION_ERROR", str(exc), 400)

    @app.get("/api/loans")
    def list_loans():
        return _ok([loan_to_dict(loan, schedule) for loan, schedule in _service().list_loans()])

    @app.post("/api/loans")
    def save_loan():
        data = _payload()
        loan = loan_from_dict(data)
        rows = data.get("schedule") or []
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise InvalidParametersError("schedule must be a list of objects")
        schedule = [schedule_item_from_dict(row) for row in rows]
        saved, current = _service().save_loan(loan, schedule or None)
        return _ok(loan_to_dict(saved, current))

    @app.delete("/api/loans/<loan_id>")
    def delete_loan(loan_id: str):
        _service().delete_loan(loan_id)
        return _ok()

    @app.post("/api/loans/<loan_id>/rebuild")
    def rebuild_schedule(loan_id: str):
        loan, schedule = _service().rebuild_schedule(loan_id, _payload())
        return _ok(loan_to_dict(loan, schedule))

    @app.post("/api/loans/<loan_id>/payments/<int:month_number>")
    def apply_payment(loan_id: str, month_number: int):
        data = request.get_json(silent=True)
        paid_amount = data.get("paid_amount") if isinstance(data, dict) else None
        loan, schedule = _service().apply_payment(loan_id, month_number, paid_amount)
        return _ok(loan_to_dict(loan, schedule))

    @app.get("/api/loans/<loan_id>/summary")
    def loan_summary(loan_id: str):
        return _ok(summary_to_dict(_service().summary(loan_id)))

    @app.get("/api/upcoming")
    def upcoming():
        days = request.args.get("days", default=app.config["REMINDER_DAYS"], type=int)
        return _ok([upcoming_to_dict(payment) for payment in _service().upcoming_payments(days)])

    @app.post("/api/schedule")
    def schedule():
        return _ok(schedule_to_dicts(build_schedule(_payload())))

    @app.post("/api/calculate/payment")
    def calculate_payment():
        data = _payload()
        payment = calculate_annuity_payment(data.get("amount"), data.get("annual_rate"), data.get("term_months"))
        if payment is None:
            return _fail("CALCULATION_ERROR", "Invalid parameters for payment calculation", 422)
        return _ok({"monthly_payment": float(payment)})

    @app.post("/api/calculate/term")
    def calculate_term():
        data = _payload()
        term = calculate_term_from_payment(data.get("amount"), data.get("annual_rate"), data.get("monthly_payment"))
        if term is None:
            return _fail("CALCULATION_ERROR", "Invalid parameters for term calculation", 422)
        return _ok({"term_months": term})

    @app.post("/api/calculate/amount")
    def calculate_amount():
        data = _payload()
        amount = calculate_amount_from_payment(
            data.get("annual_rate"), data.get("term_months"), data.get("monthly_payment")
        )
        if amount is None:
            return _fail("CALCULATION_ERROR", "Invalid parameters for amount calculation", 422)
        return _ok({"amount": float(amount)})

    @app.post("/api/migrations")
    def migrate():
        report = _service().migrate_all()
        return _ok(
            {
                "migrated": [loan_to_dict(loan) for loan in report.migrated],
                "failed": [{"loan_id": loan_id, "error": error} for loan_id, error in report.failed],
            }
        )

    return app


if __name__ == "__main__":
    print("Starting credit plan API...")
    create_app().run(debug=True)
