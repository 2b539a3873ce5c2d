"""Record store used by the ledger engine.

Every public method runs in its own session and commits before returning, so a
single call is atomic and nothing is atomic across calls. Callers that need a
multi-step write must compensate on their own.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional, Sequence, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from errors import DuplicateRowError, ReferentialIntegrityError, StoreError


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

_FK_MARKERS = ("FOREIGN KEY", "23503", "foreign key")
_UNIQUE_MARKERS = ("UNIQUE", "23505", "unique constraint", "duplicate key")


def _translate(exc: SQLAlchemyError, operation: str) -> StoreError:
    message = str(getattr(exc, "orig", exc) or exc)
    if isinstance(exc, IntegrityError):
        pgcode = getattr(getattr(exc, "orig", None), "pgcode", None) or ""
        if any(marker in message or marker == pgcode for marker in _FK_MARKERS):
            return ReferentialIntegrityError(f"{operation}: {message}")
        if any(marker in message or marker == pgcode for marker in _UNIQUE_MARKERS):
            return DuplicateRowError(f"{operation}: {message}")
    return StoreError(f"{operation}: {message}")


class RecordStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session: Session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning(f"store_error: operation={operation} error={exc}")
            raise _translate(exc, operation) from exc
        finally:
            session.close()

    def select(
        self,
        model: type[ModelT],
        *criteria: Any,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
    ) -> list[ModelT]:
        stmt = select(model).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session(f"select:{model.__name__}") as session:
            return list(session.scalars(stmt).all())

    def select_one(self, model: type[ModelT], *criteria: Any) -> Optional[ModelT]:
        stmt = select(model).where(*criteria).limit(1)
        with self._session(f"select_one:{model.__name__}") as session:
            return session.scalars(stmt).first()

    def insert(self, row: ModelT) -> ModelT:
        with self._session(f"insert:{type(row).__name__}") as session:
            session.add(row)
            session.flush()
            session.refresh(row)
        return row

    def insert_batch(self, rows: Iterable[ModelT]) -> list[ModelT]:
        rows = list(rows)
        if not rows:
            return rows
        with self._session(f"insert_batch:{type(rows[0]).__name__}") as session:
            session.add_all(rows)
            session.flush()
            for row in rows:
                session.refresh(row)
        return rows

    def update(self, model: type[ModelT], row_id: int, **fields: Any) -> int:
        stmt = (
            update(model)
            .where(model.id == row_id)  # type: ignore[attr-defined]
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        with self._session(f"update:{model.__name__}") as session:
            result = session.execute(stmt)
            return result.rowcount or 0

    def delete(self, model: type[ModelT], *criteria: Any) -> int:
        if not criteria:
            raise ValueError("Refusing to delete without criteria")
        stmt = (
            delete(model)
            .where(*criteria)
            .execution_options(synchronize_session=False)
        )
        with self._session(f"delete:{model.__name__}") as session:
            result = session.execute(stmt)
            return result.rowcount or 0

    def count(self, model: type[ModelT], *criteria: Any) -> int:
        stmt = select(func.count()).select_from(model).where(*criteria)
        with self._session(f"count:{model.__name__}") as session:
            return int(session.execute(stmt).scalar_one() or 0)
