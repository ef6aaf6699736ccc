import logging
from datetime import date
from decimal import Decimal

import pytest

from credit_plan.config import Config
from credit_plan.data_models import Loan, ScheduleType
from credit_plan.engine import build_schedule
from credit_plan.logging_config import LOGGER_NAMES
from credit_plan_web.app import create_app
from credit_plan_web.loan_service import LoanService
from credit_plan_web.loan_store import LoanStore


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # entry points install handlers bound to the streams of the test that ran them
    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        logger.propagate = True


@pytest.fixture
def interest_free_loan():
    return Loan(
        id="loan-0",
        name="Sofa",
        schedule_type=ScheduleType.ANNUITY,
        amount=Decimal("1200"),
        annual_rate=Decimal("0"),
        term_months=12,
        start_date=date(2024, 1, 1),
        current_balance=Decimal("1200"),
    )


@pytest.fixture
def interest_free_schedule(interest_free_loan):
    return build_schedule(interest_free_loan.schedule_params())


@pytest.fixture
def store(tmp_path):
    return LoanStore(f"sqlite:///{tmp_path / 'credit_plan.sqlite3'}")


@pytest.fixture
def service(store):
    return LoanService(store)


@pytest.fixture
def client(service):
    app = create_app(Config(log_level="WARNING"), service=service)
    app.config["TESTING"] = True
    return app.test_client()
