"""
Persistence Gateway

Thin create/find/update/list facade over a SQLAlchemy session. Services
express row filters as keyword arguments instead of building queries, which
keeps every conditional state transition a single UPDATE statement.

Filter syntax:
    status=MemberStatus.ACTIVE      equality
    user_id__in=[1, 2, 3]           membership
    id__ne=5                        inequality
    created_at__gte=some_datetime   range (also __gt, __lt, __lte)
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_OPERATORS = {
    "in": lambda column, value: column.in_(list(value)),
    "ne": lambda column, value: column != value,
    "gt": lambda column, value: column > value,
    "gte": lambda column, value: column >= value,
    "lt": lambda column, value: column < value,
    "lte": lambda column, value: column <= value,
}


def build_criteria(model, filters: Dict[str, Any]) -> list:
    """Translate keyword filters into SQLAlchemy criteria for ``model``."""
    criteria = []
    for key, value in filters.items():
        field, _, op = key.partition("__")
        column = getattr(model, field, None)
        if column is None:
            raise AttributeError(f"{model.__name__} has no column '{field}'")
        if not op:
            criteria.append(column.is_(None) if value is None else column == value)
        elif op in _OPERATORS:
            criteria.append(_OPERATORS[op](column, value))
        else:
            raise ValueError(f"Unsupported filter operator: {op}")
    return criteria


class PersistenceGateway:
    """
    Row level access to the group tables through one session.

    Writes are flushed, never committed; ``atomic()`` owns the commit so a
    multi-step operation either fully lands or fully rolls back.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def atomic(self) -> Iterator[Session]:
        """Transaction scope: commit on success, roll back and re-raise on error."""
        try:
            yield self.db
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def create(self, model, **fields):
        """Insert a row and flush so its primary key is populated."""
        row = model(**fields)
        self.db.add(row)
        self.db.flush()
        return row

    def find(self, model, order_by: Union[Sequence, Any] = None, **filters) -> Optional[Any]:
        """First row matching every filter, or None."""
        return self._query(model, order_by, filters).first()

    def update(self, model, filters: Dict[str, Any], fields: Dict[str, Any]) -> int:
        """
        Conditional bulk update.

        Returns:
            Number of rows the database reports as matched
        """
        count = (
            self.db.query(model)
            .filter(*build_criteria(model, filters))
            .update(fields, synchronize_session="fetch")
        )
        logger.debug(f"Updated {count} {model.__tablename__} rows")
        return count

    def list(self, model, order_by: Union[Sequence, Any] = None, **filters) -> List[Any]:
        """All rows matching every filter, optionally ordered."""
        return self._query(model, order_by, filters).all()

    def count(self, model, **filters) -> int:
        """Number of rows matching every filter."""
        return self._query(model, None, filters).count()

    def _query(self, model, order_by, filters: Dict[str, Any]):
        query = self.db.query(model).filter(*build_criteria(model, filters))
        if order_by is not None:
            if not isinstance(order_by, (list, tuple)):
                order_by = [order_by]
            query = query.order_by(*order_by)
        return query
