# Overview: Service-layer operations for reporting; read-only sales aggregates.

from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import and_, case, func

from ..extensions import db
from ..models import Sale
from kbpos.time_utils import business_date, business_day_bounds, utcnow

# Only settled sales count towards revenue figures
REPORTED_PAYMENT_STATUS = "Paid"


def _period_columns(label: str, start: datetime, end: datetime) -> list:
    """COUNT and SUM(total_amount) of sales created in [start, end)."""
    in_period = and_(Sale.created_at >= start, Sale.created_at < end)
    return [
        func.sum(case((in_period, 1), else_=0)).label(f"{label}_count"),
        func.sum(case((in_period, Sale.total_amount), else_=0)).label(f"{label}_amount"),
    ]


def _bucket(row, label: str) -> dict:
    return {
        "total_sales": int(getattr(row, f"{label}_count") or 0),
        "total_amount": round(float(getattr(row, f"{label}_amount") or 0), 2),
    }


def sales_stats(now: datetime | None = None) -> dict:
    """
    Paid-sales totals for today, this month and this year, plus a per-month
    breakdown of the current year. Periods follow the business calendar
    (BUSINESS_TIMEZONE); their UTC bounds are computed here and the sums run
    in the database.
    """
    tz_name = current_app.config["BUSINESS_TIMEZONE"]
    today = business_date(now or utcnow(), tz_name)

    def start_of(day: date) -> datetime:
        return business_day_bounds(day, tz_name)[0]

    end = start_of(today + timedelta(days=1))
    periods = {
        "today": (start_of(today), end),
        "month": (start_of(today.replace(day=1)), end),
        "year": (start_of(date(today.year, 1, 1)), end),
    }
    for month in range(1, today.month + 1):
        month_end = end if month == today.month else start_of(date(today.year, month + 1, 1))
        periods[f"m{month}"] = (start_of(date(today.year, month, 1)), month_end)

    columns = []
    for label, (start, stop) in periods.items():
        columns.extend(_period_columns(label, start, stop))

    row = (
        db.session.query(*columns)
        .filter(
            Sale.payment_status == REPORTED_PAYMENT_STATUS,
            Sale.created_at >= periods["year"][0],
            Sale.created_at < end,
        )
        .one()
    )

    monthly = []
    for month in range(1, today.month + 1):
        bucket = _bucket(row, f"m{month}")
        if bucket["total_sales"]:
            monthly.append({"month": month, **bucket})

    return {
        "today": _bucket(row, "today"),
        "month": _bucket(row, "month"),
        "year": _bucket(row, "year"),
        "monthly_breakdown": monthly,
    }
