"""Read-only revenue reports over committed transactions.

Every report is relative to ``today`` (the server's local date unless given),
and period boundaries are computed here rather than with dialect-specific SQL
date functions so the same queries run on SQLite and MySQL.
"""
from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import models

CHART_DAYS = 7
TOP_PRODUCTS_LIMIT = 5


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _month_bounds(day: date):
    start = day.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return _day_start(start), _day_start(end)


def _revenue_between(db: Session, start: datetime, end: datetime) -> Decimal:
    stmt = select(func.coalesce(func.sum(models.Transaction.total), 0)).where(
        models.Transaction.created_at >= start,
        models.Transaction.created_at < end,
    )
    return Decimal(db.execute(stmt).scalar_one())


def omset(db: Session, today: Optional[date] = None) -> dict:
    """Revenue for the current day, month and year. Empty periods are 0, never None."""
    today = today or date.today()
    day_start = _day_start(today)
    month_start, month_end = _month_bounds(today)
    year_start = _day_start(date(today.year, 1, 1))
    year_end = _day_start(date(today.year + 1, 1, 1))
    return {
        "daily": _revenue_between(db, day_start, day_start + timedelta(days=1)),
        "monthly": _revenue_between(db, month_start, month_end),
        "yearly": _revenue_between(db, year_start, year_end),
    }


def sales_chart(db: Session, today: Optional[date] = None) -> List[dict]:
    today = today or date.today()
    start = _day_start(today - timedelta(days=CHART_DAYS))
    stmt = (
        select(models.Transaction.created_at, models.Transaction.total)
        .where(models.Transaction.created_at >= start)
        .order_by(models.Transaction.created_at)
    )
    totals = OrderedDict()
    for created_at, total in db.execute(stmt):
        day = created_at.date().isoformat()
        totals[day] = totals.get(day, Decimal("0")) + total
    return [{"date": day, "total": total} for day, total in totals.items()]


def top_products(db: Session, today: Optional[date] = None, limit: int = TOP_PRODUCTS_LIMIT) -> List[dict]:
    today = today or date.today()
    month_start, month_end = _month_bounds(today)
    total_sold = func.sum(models.TransactionItem.quantity).label("total_sold")
    stmt = (
        select(models.TransactionItem.menu_name, total_sold)
        .join(models.Transaction, models.TransactionItem.transaction_id == models.Transaction.id)
        .where(
            models.Transaction.created_at >= month_start,
            models.Transaction.created_at < month_end,
        )
        .group_by(models.TransactionItem.menu_name)
        .order_by(total_sold.desc(), models.TransactionItem.menu_name)
        .limit(limit)
    )
    return [{"menu_name": name, "total_sold": int(sold)} for name, sold in db.execute(stmt)]
