"""Table-addressed record store backed by SQLAlchemy.

Rows travel as plain dictionaries keyed by column name. Blocking database
work runs in a worker thread so callers on the event loop are only suspended,
never blocked.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from sqlalchemy import delete as sql_delete
from sqlalchemy import select
from sqlalchemy import update as sql_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..models import CommunityPost, Profile, Video, VideoComment
from .change_feed import ChangeEvent, ChangeFeed

logger = logging.getLogger(__name__)

Row = dict[str, Any]

TABLES: dict[str, type] = {
    "profiles": Profile,
    "videos": Video,
    "comments": VideoComment,
    "community_posts": CommunityPost,
}


class RecordStoreError(RuntimeError):
    """Raised when the backing database rejects or fails an operation."""


def _row_to_dict(instance: Any) -> Row:
    return {column.key: getattr(instance, column.key) for column in instance.__table__.columns}


class RecordStore:
    """CRUD over the ``profiles``, ``videos``, ``comments`` and ``community_posts`` tables."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        change_feed: ChangeFeed | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._change_feed = change_feed

    @property
    def change_feed(self) -> ChangeFeed | None:
        return self._change_feed

    @staticmethod
    def _model(table: str) -> Any:
        try:
            return TABLES[table]
        except KeyError as exc:
            raise RecordStoreError(f"Unknown table: {table}") from exc

    @staticmethod
    def _conditions(model: Any, filters: dict[str, Any]) -> list[Any]:
        conditions = []
        for name, value in filters.items():
            column = getattr(model, name, None)
            if column is None:
                raise RecordStoreError(f"Unknown column {name} on {model.__tablename__}")
            conditions.append(column == value)
        return conditions

    async def _publish(self, table: str, kind: str, record_id: Any) -> None:
        if self._change_feed is None:
            return
        await self._change_feed.publish(
            ChangeEvent(table=table, kind=kind, record_id=str(record_id) if record_id is not None else None)
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def _select_sync(self, table: str, order_by: str | None, descending: bool, filters: dict[str, Any]) -> list[Row]:
        model = self._model(table)
        stmt = select(model).where(*self._conditions(model, filters))
        if order_by:
            column = getattr(model, order_by, None)
            if column is None:
                raise RecordStoreError(f"Unknown column {order_by} on {table}")
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        try:
            with self._session_factory() as session:
                return [_row_to_dict(item) for item in session.scalars(stmt).all()]
        except SQLAlchemyError as exc:
            logger.exception("Failed to select from %s", table)
            raise RecordStoreError(f"Failed to read {table}") from exc

    async def select(
        self,
        table: str,
        *,
        order_by: str | None = None,
        descending: bool = False,
        **filters: Any,
    ) -> list[Row]:
        """Return rows of ``table`` matching every equality filter."""

        return await asyncio.to_thread(self._select_sync, table, order_by, descending, filters)

    async def select_one(self, table: str, **filters: Any) -> Row | None:
        """Return the first matching row or ``None`` when nothing matches."""

        rows = await self.select(table, **filters)
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def _insert_sync(self, table: str, values: dict[str, Any]) -> Row:
        model = self._model(table)
        with self._session_factory() as session:
            try:
                instance = model(**values)
                session.add(instance)
                session.commit()
                session.refresh(instance)
                return _row_to_dict(instance)
            except (SQLAlchemyError, TypeError) as exc:
                session.rollback()
                logger.exception("Failed to insert into %s", table)
                raise RecordStoreError(f"Failed to insert into {table}") from exc

    async def insert(self, table: str, values: dict[str, Any]) -> Row:
        """Insert ``values`` and return the stored row, defaults included."""

        row = await asyncio.to_thread(self._insert_sync, table, dict(values))
        await self._publish(table, "INSERT", row.get("id"))
        return row

    def _update_sync(self, table: str, values: dict[str, Any], filters: dict[str, Any]) -> int:
        model = self._model(table)
        stmt = (
            sql_update(model)
            .where(*self._conditions(model, filters))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session:
            try:
                result = session.execute(stmt)
                session.commit()
                return int(result.rowcount or 0)
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception("Failed to update %s", table)
                raise RecordStoreError(f"Failed to update {table}") from exc

    async def update(self, table: str, values: dict[str, Any], **filters: Any) -> int:
        """Apply ``values`` to every matching row and return the affected count."""

        if not filters:
            raise RecordStoreError("Refusing to update without a filter")
        if not values:
            return 0
        count = await asyncio.to_thread(self._update_sync, table, dict(values), filters)
        if count:
            await self._publish(table, "UPDATE", filters.get("id"))
        return count

    def _delete_sync(self, table: str, filters: dict[str, Any]) -> int:
        model = self._model(table)
        stmt = sql_delete(model).where(*self._conditions(model, filters)).execution_options(synchronize_session=False)
        with self._session_factory() as session:
            try:
                result = session.execute(stmt)
                session.commit()
                return int(result.rowcount or 0)
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception("Failed to delete from %s", table)
                raise RecordStoreError(f"Failed to delete from {table}") from exc

    async def delete(self, table: str, **filters: Any) -> int:
        """Delete every matching row and return the affected count."""

        if not filters:
            raise RecordStoreError("Refusing to delete without a filter")
        count = await asyncio.to_thread(self._delete_sync, table, filters)
        if count:
            await self._publish(table, "DELETE", filters.get("id"))
        return count

    def _increment_sync(self, table: str, column_name: str, record_id: str, by: int) -> int | None:
        model = self._model(table)
        column = getattr(model, column_name, None)
        if column is None:
            raise RecordStoreError(f"Unknown column {column_name} on {table}")
        stmt = (
            sql_update(model)
            .where(model.id == record_id)
            .values({column_name: column + by})
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session:
            try:
                result = session.execute(stmt)
                if not result.rowcount:
                    session.rollback()
                    return None
                value = session.scalar(select(column).where(model.id == record_id))
                session.commit()
                return int(value or 0)
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception("Failed to increment %s.%s", table, column_name)
                raise RecordStoreError(f"Failed to update {table}") from exc

    async def increment(self, table: str, column: str, record_id: str, *, by: int = 1) -> int | None:
        """Atomically add ``by`` to a counter column and return the new value.

        Returns ``None`` when no row has ``record_id``.
        """

        value = await asyncio.to_thread(self._increment_sync, table, column, record_id, by)
        if value is not None:
            await self._publish(table, "UPDATE", record_id)
        return value


__all__ = ["RecordStore", "RecordStoreError", "Row", "TABLES"]
