"""Purchase-order numbers: ``PO-YYYY-MM-NNNN``, sequence reset monthly."""

from datetime import datetime
from typing import Optional

from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from factory_erp.db.base import utcnow
from factory_erp.models.purchase_order import OrderSequence, PurchaseOrder


def format_order_number(year: int, month: int, sequence: int) -> str:
    return f"PO-{year}-{month:02d}-{sequence:04d}"


def period_key(now: datetime) -> str:
    return f"{now.year}-{now.month:02d}"


def month_bounds(now: datetime):
    start = datetime(now.year, now.month, 1)
    if now.month == 12:
        end = datetime(now.year + 1, 1, 1)
    else:
        end = datetime(now.year, now.month + 1, 1)
    return start, end


def count_based_number(db: Session, now: Optional[datetime] = None) -> str:
    """Number derived from ``count(orders this month) + 1``.

    Two callers in the same month see the same count until one of them
    commits, so this is only ever used as a preview.
    """
    now = now or utcnow()
    start, end = month_bounds(now)
    count = (
        db.query(PurchaseOrder)
        .filter(PurchaseOrder.created_at >= start, PurchaseOrder.created_at < end)
        .count()
    )
    return format_order_number(now.year, now.month, count + 1)


def preview_order_number(db: Session, now: Optional[datetime] = None) -> str:
    """Next number the counter would hand out, without consuming it."""
    now = now or utcnow()
    sequence = db.query(OrderSequence).filter(OrderSequence.period == period_key(now)).first()
    last_value = sequence.last_value if sequence else 0
    return format_order_number(now.year, now.month, last_value + 1)


def ensure_period_row(db: Session, period: str) -> None:
    """Insert the month's counter row unless it already exists.

    With the row present, the ``FOR UPDATE`` read in
    ``allocate_order_number`` locks that row rather than an index gap, and
    first-of-month allocations queue on it instead of deadlocking.
    """
    dialect = db.get_bind().dialect.name
    table = OrderSequence.__table__
    if dialect == "mysql":
        stmt = mysql_insert(table).values(period=period, last_value=0)
        stmt = stmt.on_duplicate_key_update(last_value=table.c.last_value)
    elif dialect == "sqlite":
        stmt = sqlite_insert(table).values(period=period, last_value=0)
        stmt = stmt.on_conflict_do_nothing(index_elements=["period"])
    elif dialect == "postgresql":
        stmt = postgresql_insert(table).values(period=period, last_value=0)
        stmt = stmt.on_conflict_do_nothing(index_elements=["period"])
    else:
        return
    db.execute(stmt)


def allocate_order_number(db: Session, now: Optional[datetime] = None) -> str:
    """Consume the next number of the month inside the caller's transaction.

    The counter row is created if absent, then read ``FOR UPDATE`` so
    concurrent allocations serialize on it until the caller commits.
    """
    now = now or utcnow()
    period = period_key(now)
    ensure_period_row(db, period)
    sequence = (
        db.query(OrderSequence)
        .filter(OrderSequence.period == period)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if sequence is None:
        sequence = OrderSequence(period=period, last_value=0)
        db.add(sequence)
    sequence.last_value += 1
    db.flush()
    return format_order_number(now.year, now.month, sequence.last_value)
