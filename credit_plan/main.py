"""Command-line interface for the credit plan engine.

This module uses the ``click`` library to implement a multi-command
interface. Users can build a payment schedule, view its summary, solve for a
missing loan parameter, and, against the configured database, list upcoming
payments or migrate loans that have no schedule yet. Schedules can be printed
to the terminal or exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from .config import Config
from .data_models import Loan, ScheduleItem, ScheduleParams, ScheduleType
from .engine import build_schedule
from .formatter import print_schedule, print_summary, print_upcoming
from .ledger import calculate_credit_summary
from .logging_config import setup_logging
from .serialize import schedule_to_dicts, summary_to_dict
from .solver import calculate_amount_from_payment, calculate_annuity_payment, calculate_term_from_payment
from .utils import parse_iso_date, to_payment_day


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("500000") and shorthand with ``k``/``m`` suffixes
    (e.g., "500k" meaning 500_000).
    """
    value = value.strip().lower()
    value = value.replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    try:
        number = Decimal(value)
    except ArithmeticError:
        raise click.BadParameter(f"Invalid amount: {value}")
    if not number.is_finite():
        raise click.BadParameter(f"Invalid amount: {value}")
    return number * factor


def parse_rate(value: str) -> Decimal:
    """Parse an annual percentage rate ("12", "7.5%"); zero is allowed."""
    value = value.strip()
    if value.endswith("%"):
        value = value[:-1]
    try:
        rate = Decimal(value)
    except ArithmeticError:
        raise click.BadParameter(f"Invalid rate: {value}")
    if not rate.is_finite() or rate < 0:
        raise click.BadParameter(f"Invalid rate: {value}")
    return rate


def build_params_from_options(
    amount: str,
    rate: str,
    term: int,
    schedule_type: str,
    start_date: str,
    payment_day: Optional[int] = None,
) -> ScheduleParams:
    if term <= 0:
        raise click.BadParameter(f"Term must be positive; got {term}")
    try:
        start_dt = parse_iso_date(start_date)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    if payment_day is not None and to_payment_day(payment_day) is None:
        raise click.BadParameter(f"Payment day must be between 1 and 31; got {payment_day}")
    return ScheduleParams(
        schedule_type=ScheduleType(schedule_type.lower()),
        amount=parse_amount(amount),
        annual_rate=parse_rate(rate),
        term_months=term,
        start_date=start_dt,
        payment_day=payment_day,
    )


def _summary_for(params: ScheduleParams, schedule: List[ScheduleItem]):
    return calculate_credit_summary(Loan(id="cli", amount=params.amount), schedule)


def export_to_json(path: Path, schedule: List[ScheduleItem], summary: Dict[str, Any]) -> None:
    """Export schedule and summary to a JSON file."""
    data = {"summary": summary, "schedule": schedule_to_dicts(schedule)}
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, schedule: List[ScheduleItem]) -> None:
    """Export schedule to a CSV file."""
    header = [
        "Month",
        "Payment_Date",
        "Planned_Payment",
        "Interest",
        "Principal",
        "Remaining_Balance",
        "Paid",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for item in schedule:
            writer.writerow(
                [
                    item.month_number,
                    item.payment_date.isoformat(),
                    f"{item.planned_payment:.2f}",
                    f"{item.interest_part:.2f}",
                    f"{item.principal_part:.2f}",
                    f"{item.remaining_balance:.2f}",
                    item.paid,
                ]
            )


def loan_options(func):
    """Options shared by the commands that build a schedule."""
    options = [
        click.option("--amount", "-a", "amount", required=True, help="Loan amount (500k / 1.2m shorthand accepted)"),
        click.option("--rate", "-r", "rate", required=True, help="Annual interest rate in percent (0 allowed)"),
        click.option("--term", "-t", "term", required=True, type=int, help="Loan term in months"),
        click.option(
            "--type",
            "schedule_type",
            type=click.Choice([t.value for t in ScheduleType]),
            default=ScheduleType.ANNUITY.value,
            help="Amortization method",
        ),
        click.option("--start-date", "-s", "start_date", required=True, help="First payment date (YYYY-MM-DD)"),
        click.option("--payment-day", "payment_day", type=int, help="Day of month payments fall due (1-31)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option("--log-level", default=None, help="Log level (defaults to CREDIT_PLAN_LOG_LEVEL or INFO)")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """Loan schedules, smart input and payment reminders."""
    config = Config.from_env()
    setup_logging(log_level or config.log_level, config.log_format)
    ctx.obj = config


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def schedule(
    amount: str,
    rate: str,
    term: int,
    schedule_type: str,
    start_date: str,
    payment_day: Optional[int],
    output: Optional[str],
) -> None:
    """Build and print the full payment schedule."""
    params = build_params_from_options(amount, rate, term, schedule_type, start_date, payment_day)
    items = build_schedule(params)
    if not items:
        raise click.ClickException("These parameters do not produce a schedule")
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, items, summary_to_dict(_summary_for(params, items)))
            click.echo(f"Schedule exported to {path}")
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, items)
            click.echo(f"Schedule exported to {path}")
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
    else:
        print_schedule(items)


@cli.command()
@loan_options
def summary(
    amount: str,
    rate: str,
    term: int,
    schedule_type: str,
    start_date: str,
    payment_day: Optional[int],
) -> None:
    """Print only the summary figures of a schedule."""
    params = build_params_from_options(amount, rate, term, schedule_type, start_date, payment_day)
    items = build_schedule(params)
    if not items:
        raise click.ClickException("These parameters do not produce a schedule")
    print_summary(_summary_for(params, items), params, items[0].planned_payment)


@cli.group()
def solve() -> None:
    """Solve for one loan parameter given the other three."""


@solve.command("payment")
@click.option("--amount", "-a", "amount", required=True)
@click.option("--rate", "-r", "rate", required=True)
@click.option("--term", "-t", "term", required=True, type=int)
def solve_payment(amount: str, rate: str, term: int) -> None:
    """Monthly payment for an amount, rate and term."""
    payment = calculate_annuity_payment(parse_amount(amount), parse_rate(rate), term)
    if payment is None:
        raise click.ClickException("Cannot compute a payment for these parameters")
    click.echo(f"Monthly payment: {payment:.2f}")


@solve.command("term")
@click.option("--amount", "-a", "amount", required=True)
@click.option("--rate", "-r", "rate", required=True)
@click.option("--payment", "-p", "payment", required=True)
def solve_term(amount: str, rate: str, payment: str) -> None:
    """Months needed to repay an amount with a given payment."""
    term = calculate_term_from_payment(parse_amount(amount), parse_rate(rate), parse_amount(payment))
    if term is None:
        raise click.ClickException("The payment never repays the loan; it must exceed the monthly interest")
    click.echo(f"Term: {term} months")


@solve.command("amount")
@click.option("--rate", "-r", "rate", required=True)
@click.option("--term", "-t", "term", required=True, type=int)
@click.option("--payment", "-p", "payment", required=True)
def solve_amount(rate: str, term: int, payment: str) -> None:
    """Largest amount a payment repays over a term."""
    amount = calculate_amount_from_payment(parse_rate(rate), term, parse_amount(payment))
    if amount is None:
        raise click.ClickException("Cannot compute an amount for these parameters")
    click.echo(f"Amount: {amount:.2f}")


def _service(config: Config, database_url: Optional[str]):
    from credit_plan_web.loan_service import LoanService
    from credit_plan_web.loan_store import create_store_from_env

    return LoanService(create_store_from_env(database_url or config.database_url))


@cli.command()
@click.option("--days", "days", type=int, default=None, help="Days ahead to look (default from config)")
@click.option("--database-url", "database_url", default=None, help="SQLAlchemy database URL")
@click.pass_obj
def upcoming(config: Config, days: Optional[int], database_url: Optional[str]) -> None:
    """List unpaid payments of active loans due in the next few days."""
    service = _service(config, database_url)
    print_upcoming(service.upcoming_payments(config.reminder_days if days is None else days))


@cli.command()
@click.option("--database-url", "database_url", default=None, help="SQLAlchemy database URL")
@click.pass_obj
def migrate(config: Config, database_url: Optional[str]) -> None:
    """Build schedules for stored loans that do not have one yet."""
    report = _service(config, database_url).migrate_all()
    click.echo(f"Migrated {len(report.migrated)} loans, {len(report.failed)} failed")
    for loan_id, error in report.failed:
        click.echo(f"  {loan_id}: {error}")


if __name__ == "__main__":
    cli()
