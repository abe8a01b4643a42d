"""
Row locking that follows the database dialect.

PostgreSQL gets SELECT ... FOR UPDATE (optionally SKIP LOCKED for queue
reads). SQLite has no row locks; there the helpers are plain reads and the
in-process keyed lock is what serializes work.
"""

import logging
from typing import List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_postgres(db: Session) -> bool:
    bind = db.get_bind()
    return bind is not None and bind.dialect.name == 'postgresql'


def acquire_row_lock(db: Session, model: Type[T], filter_condition) -> Optional[T]:
    """
    First row matching filter_condition, locked until the transaction ends.

        reservation = acquire_row_lock(db, Reservation, Reservation.channel_booking_id == "501")
    """
    query = db.query(model).filter(filter_condition)
    if is_postgres(db):
        query = query.with_for_update()
    return query.first()


def get_pending_with_skip_locked(
    db: Session,
    model: Type[T],
    filter_condition,
    order_by=None,
    limit: int = 50,
) -> List[T]:
    """
    Queue read for workers. On PostgreSQL rows locked by another worker are
    skipped, so concurrent workers never pick the same event.
    """
    query = db.query(model).filter(filter_condition)
    if order_by is not None:
        query = query.order_by(order_by)
    if is_postgres(db):
        query = query.with_for_update(skip_locked=True)
    return query.limit(limit).all()
