"""
Ticket Repository for reading tickets and persisting resolved names.

Reads the columns the name resolver needs from the support ticket table and
writes resolved franchise/outlet names back to it. Databases that predate the
``franchise_name_resolved`` / ``outlet_name_resolved`` columns are tolerated:
reads fall back to the base columns and writes become warn-and-skip no-ops.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from support_hub.config.settings import get_settings
from support_hub.infrastructure.franchise.types import TicketRecord

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "support_requests"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

# SQLSTATE for undefined_column (PostgreSQL)
_UNDEFINED_COLUMN = "42703"
# MySQL ER_BAD_FIELD_ERROR
_MYSQL_BAD_FIELD = 1054


def is_missing_column_error(exc: BaseException) -> bool:
    """
    Whether a database error means a referenced column does not exist.

    Checks the driver SQLSTATE / error code first and falls back to the
    message text for drivers that expose neither (SQLite).
    """
    orig = getattr(exc, "orig", exc)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == _UNDEFINED_COLUMN:
        return True
    args = getattr(orig, "args", ())
    if args and args[0] == _MYSQL_BAD_FIELD:
        return True
    message = str(orig).lower()
    return (
        "no such column" in message
        or "unknown column" in message
        or ("column" in message and "does not exist" in message)
    )


def create_engine_from_settings() -> Engine:
    """
    Create a SQLAlchemy engine for the ticket database.

    Raises:
        ValueError: If no database URI is configured
    """
    uri = get_settings().get_database_connection_string()
    if not uri:
        raise ValueError(
            "Ticket database not configured: set DATABASE_URL or SUPPORT_HUB_DATABASE_URI"
        )
    return sa.create_engine(uri, pool_pre_ping=True)


class TicketRepository:
    """
    Repository for the support ticket table.

    Usage:
        repo = TicketRepository(engine)

        records = repo.fetch_records(limit=50, only_unresolved=True)

        # Used as the resolver's persistence collaborator
        repo.store_resolution(ticket_id, "Beta Mart", "Beta #3")
    """

    def __init__(self, engine: Engine, table_name: Optional[str] = None):
        """
        Initialize the repository.

        Args:
            engine: SQLAlchemy engine for the ticket database
            table_name: Ticket table; defaults to settings.tickets_table
        """
        table_name = table_name or get_settings().tickets_table or DEFAULT_TABLE_NAME
        if not _IDENTIFIER.match(table_name):
            raise ValueError(f"Invalid table name: {table_name!r}")

        self.engine = engine
        self.table_name = table_name
        schema, _, name = table_name.rpartition(".")
        self._table = sa.table(
            name,
            sa.column("id"),
            sa.column("fid"),
            sa.column("oid"),
            sa.column("outlet_name"),
            sa.column("franchise_name_resolved"),
            sa.column("outlet_name_resolved"),
            schema=schema or None,
        )

    def fetch_records(
        self,
        limit: Optional[int] = None,
        offset: int = 0,
        only_unresolved: bool = False,
    ) -> List[TicketRecord]:
        """
        Read tickets in id order.

        Args:
            limit: Maximum rows to return (None = all)
            offset: Rows to skip
            only_unresolved: Only tickets without any resolved name

        Returns:
            TicketRecord per row, keys normalized
        """
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        try:
            rows = self._select(limit, offset, only_unresolved, with_resolved=True)
        except sa.exc.DBAPIError as e:
            if not is_missing_column_error(e):
                raise
            logger.warning(
                "Resolved name columns missing; reading base ticket columns only",
                extra={"table": self.table_name},
            )
            rows = self._select(limit, offset, only_unresolved=False, with_resolved=False)
        return [TicketRecord.from_row(row) for row in rows]

    def _select(
        self,
        limit: Optional[int],
        offset: int,
        only_unresolved: bool,
        with_resolved: bool,
    ) -> List[Dict[str, Any]]:
        tbl = self._table
        columns = [tbl.c.id, tbl.c.fid, tbl.c.oid, tbl.c.outlet_name]
        if with_resolved:
            columns += [tbl.c.franchise_name_resolved, tbl.c.outlet_name_resolved]
        else:
            columns += [
                sa.null().label("franchise_name_resolved"),
                sa.null().label("outlet_name_resolved"),
            ]

        stmt = sa.select(*columns).order_by(tbl.c.id).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        if only_unresolved:
            stmt = stmt.where(
                sa.and_(
                    *(
                        sa.or_(column.is_(None), sa.func.trim(column) == "")
                        for column in (tbl.c.franchise_name_resolved, tbl.c.outlet_name_resolved)
                    )
                )
            )

        with self.engine.connect() as conn:
            rows = [dict(row) for row in conn.execute(stmt).mappings()]

        logger.debug(
            "Fetched tickets",
            extra={"table": self.table_name, "count": len(rows), "offset": offset},
        )
        return rows

    def store_resolution(
        self,
        record_id: Any,
        franchise_name: Optional[str],
        outlet_name: Optional[str],
    ) -> None:
        """
        Persist resolved names for one ticket.

        Both columns are written in one UPDATE inside one transaction, so a
        ticket never ends up with only one of the two names from a write.
        A database without the resolved-name columns is skipped with a
        warning.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: For any other database error
        """
        tbl = self._table
        stmt = (
            sa.update(tbl)
            .where(tbl.c.id == record_id)
            .values(
                franchise_name_resolved=franchise_name,
                outlet_name_resolved=outlet_name,
            )
        )
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except sa.exc.DBAPIError as e:
            if is_missing_column_error(e):
                logger.warning(
                    "Resolved name columns missing; skipping store_resolution",
                    extra={"table": self.table_name, "record_id": record_id},
                )
                return
            raise

        if result.rowcount == 0:
            logger.warning(
                "store_resolution matched no ticket",
                extra={"table": self.table_name, "record_id": record_id},
            )
