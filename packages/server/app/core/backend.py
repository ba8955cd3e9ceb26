"""
Generic table-query client over the managed Postgres backend.

Every screen-level operation goes through this thin binding instead of
touching ORM classes directly:

- select / select_one / count with equality filters (a list value means IN)
- insert / update / delete with equality filters
- rpc: named procedures that run inside the caller's transaction

Database failures surface as ``BackendReadError`` or ``BackendWriteError``
so endpoints can tell a broken read from a broken write.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Optional

import structlog
from fastapi import Depends
from sqlalchemy import delete as sa_delete
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from app.core.database import get_session
from app.core.errors import BackendReadError, BackendWriteError
from app.models import CommissionRequest, Message, Profile, User, Work, WorkLike

log = structlog.get_logger()

TABLES: dict[str, type[SQLModel]] = {
    "users": User,
    "profiles": Profile,
    "works": Work,
    "work_likes": WorkLike,
    "requests": CommissionRequest,
    "messages": Message,
}

Filters = Mapping[str, Any]

# Never echoed back to callers in error responses.
SENSITIVE_COLUMNS = frozenset({"password_hash"})
Procedure = Callable[["BackendClient", dict[str, Any]], Awaitable[Any]]

_PROCEDURES: dict[str, Procedure] = {}


def procedure(name: str) -> Callable[[Procedure], Procedure]:
    """Register an async function as a remote procedure callable via ``rpc``."""

    def decorator(fn: Procedure) -> Procedure:
        _PROCEDURES[name] = fn
        return fn

    return decorator


class BackendClient:
    """Request-scoped table client bound to one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def model_for(table: str) -> type[SQLModel]:
        try:
            return TABLES[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None

    @staticmethod
    def _column(model: type[SQLModel], name: str):
        attr = getattr(model, name, None)
        if attr is None:
            raise ValueError(f"Unknown column: {model.__tablename__}.{name}")
        return attr

    @staticmethod
    def _conditions(model: type[SQLModel], filters: Optional[Filters]) -> list:
        conditions = []
        for column, value in (filters or {}).items():
            attr = BackendClient._column(model, column)
            if isinstance(value, (list, tuple, set, frozenset)):
                conditions.append(attr.in_(list(value)))
            elif value is None:
                conditions.append(attr.is_(None))
            else:
                conditions.append(attr == value)
        return conditions

    def _read_failed(self, table: str, operation: str, exc: Exception) -> BackendReadError:
        log.error("backend.read_failed", table=table, operation=operation, **_describe(exc))
        return BackendReadError(table=table, operation=operation)

    def _write_failed(
        self, table: str, operation: str, exc: Exception, form: Optional[dict] = None
    ) -> BackendWriteError:
        log.error("backend.write_failed", table=table, operation=operation, **_describe(exc))
        return BackendWriteError(
            table=table,
            operation=operation,
            form=form,
            constraint_violation=isinstance(exc, IntegrityError),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        columns: Optional[Sequence[str]] = None,
        fresh: bool = False,
    ) -> list[Any]:
        """Matching rows as model instances, or as dicts when ``columns`` is given.

        ``fresh`` reloads rows already held by the session from the database.
        """
        model = self.model_for(table)
        if columns:
            stmt = select(*[self._column(model, c) for c in columns])
        else:
            stmt = select(model)
        stmt = stmt.where(*self._conditions(model, filters))
        if order_by:
            column = self._column(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise self._read_failed(table, "select", exc)
        if columns:
            return [dict(row._mapping) for row in result.all()]
        return list(result.scalars().all())

    async def select_one(
        self, table: str, filters: Filters, *, fresh: bool = False
    ) -> Optional[Any]:
        """Return the single matching row, or None when nothing matches."""
        rows = await self.select(table, filters, limit=1, fresh=fresh)
        return rows[0] if rows else None

    async def count(self, table: str, filters: Optional[Filters] = None) -> int:
        model = self.model_for(table)
        stmt = select(func.count()).select_from(model).where(*self._conditions(model, filters))
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise self._read_failed(table, "count", exc)
        return result.scalar() or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(
        self, table: str, values: Mapping[str, Any], *, form: Optional[Mapping[str, Any]] = None
    ) -> Any:
        """Insert one row. On failure ``form`` (default: the non-sensitive values) is echoed."""
        model = self.model_for(table)
        row = model(**values)
        self.session.add(row)
        try:
            await self.session.flush()
            await self.session.refresh(row)
        except SQLAlchemyError as exc:
            echoed = _jsonable(values if form is None else form)
            raise self._write_failed(table, "insert", exc, form=echoed)
        return row

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Filters,
        *,
        form: Optional[Mapping[str, Any]] = None,
    ) -> list[Any]:
        """Apply ``values`` to every matching row and return the refreshed rows."""
        rows = await self.select(table, filters)
        for row in rows:
            for key, value in values.items():
                if not hasattr(row, key):
                    raise ValueError(f"Unknown column: {table}.{key}")
                setattr(row, key, value)
        try:
            await self.session.flush()
            for row in rows:
                await self.session.refresh(row)
        except SQLAlchemyError as exc:
            echoed = _jsonable(values if form is None else form)
            raise self._write_failed(table, "update", exc, form=echoed)
        return rows

    async def delete(self, table: str, filters: Filters) -> int:
        if not filters:
            raise ValueError("delete requires at least one filter")
        model = self.model_for(table)
        stmt = sa_delete(model).where(*self._conditions(model, filters))
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise self._write_failed(table, "delete", exc)
        return result.rowcount or 0

    async def rpc(self, name: str, params: Optional[dict[str, Any]] = None) -> Any:
        fn = _PROCEDURES.get(name)
        if fn is None:
            raise ValueError(f"Unknown procedure: {name}")
        log.debug("backend.rpc", procedure=name)
        return await fn(self, dict(params or {}))

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise self._write_failed("*", "commit", exc)


def _jsonable(values: Mapping[str, Any]) -> dict[str, Any]:
    return {
        k: v if isinstance(v, (str, int, float, bool, type(None))) else str(v)
        for k, v in values.items()
        if k not in SENSITIVE_COLUMNS
    }


def _describe(exc: Exception) -> dict[str, str]:
    """Log fields for a database error, without the bound statement parameters."""
    orig = getattr(exc, "orig", None)
    return {"error": type(exc).__name__, "detail": str(orig if orig is not None else exc)}


async def get_backend(session: AsyncSession = Depends(get_session)) -> BackendClient:
    """FastAPI dependency: a backend client sharing the request's session."""
    return BackendClient(session)


def registered_procedures() -> Sequence[str]:
    return sorted(_PROCEDURES)
