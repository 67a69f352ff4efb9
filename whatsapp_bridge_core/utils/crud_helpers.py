"""
Generic key/value CRUD helpers.

Vendor meta and site options are both key/value tables; these functions work
with any SQLAlchemy model given the filter columns that identify one row and
the column holding the value.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import ErrorCode, RepositoryError
from .logger import get_logger

T = TypeVar("T")


def get_record(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> Optional[T]:
    """
    Fetch the single row matching every filter, or None.

    Raises:
        RepositoryError: If the query fails
    """
    try:
        query = session.query(model_class)
        for key, value in filters.items():
            query = query.filter(getattr(model_class, key) == value)
        return query.first()
    except SQLAlchemyError as e:
        raise RepositoryError(
            f"Failed to read {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            model=model_class.__name__,
        )


def get_value(
    session: Session,
    model_class: Type[T],
    filters: Dict[str, Any],
    value_field: str,
    default: Any = None,
) -> Any:
    """Return the value column of the matching row, or default."""
    record = get_record(session, model_class, filters)
    if record is None:
        return default
    return getattr(record, value_field)


def upsert_value(
    session: Session,
    model_class: Type[T],
    filters: Dict[str, Any],
    value_field: str,
    value: Any,
) -> T:
    """
    Insert or update the row identified by filters.

    Raises:
        RepositoryError: If the write fails
    """
    logger = get_logger()

    record = get_record(session, model_class, filters)
    try:
        if record is None:
            record = model_class(**filters, **{value_field: value})
            session.add(record)
        else:
            setattr(record, value_field, value)
            if hasattr(record, "updated_at"):
                record.updated_at = datetime.now(timezone.utc)
        session.commit()

        logger.debug(
            f"Upserted {model_class.__name__}",
            extra={"model": model_class.__name__, **filters},
        )
        return record

    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to write {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            model=model_class.__name__,
        )


def delete_records(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> int:
    """
    Delete every row matching filters and return how many were removed.

    Raises:
        RepositoryError: If the delete fails
    """
    try:
        query = session.query(model_class)
        for key, value in filters.items():
            query = query.filter(getattr(model_class, key) == value)
        deleted = query.delete(synchronize_session=False)
        session.commit()
        return deleted

    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to delete {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            model=model_class.__name__,
        )
