"""Database engine and the record store used by every repository.

The `RecordStore` wraps one SQLAlchemy engine configured from
`DATABASE_URL` (SQLite by default, the file lives next to the package as
`app.db`). It executes the parameterized statements built by
`cyberwhisper.query` and has an explicit `init()`/`shutdown()` lifecycle
so the application and tests can each own their instance.

Every `execute()` call runs in its own transaction: statements are
atomic one at a time, nothing here spans two of them.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from . import models  # noqa: F401  registers the tables on SQLModel.metadata
from .query import Statement

logger = logging.getLogger("cyberwhisper.db")


@dataclass
class ExecResult:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None


def _summarize_sql(sql: str) -> str:
    collapsed = " ".join(sql.strip().split())
    return collapsed[:160] + ("..." if len(collapsed) > 160 else "")


class RecordStore:
    """Executes parameterized statements against the relational database."""

    def __init__(self, database_url: str, *, echo: bool = False):
        self.database_url = database_url
        self.echo = echo
        self._engine: Optional[Engine] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("record store is not initialised; call init() first")
        return self._engine

    def init(self) -> "RecordStore":
        """Create the engine and make sure the tables exist.

        Table creation uses SQLModel metadata, which is enough for local
        development and tests; production schemas are managed outside
        the application.
        """
        if self._engine is not None:
            return self
        connect_args = {}
        if self.database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self._engine = create_engine(self.database_url, echo=self.echo, connect_args=connect_args)
        SQLModel.metadata.create_all(self._engine)
        logger.info("record_store_ready %s", json.dumps({"dialect": self._engine.dialect.name}))
        return self

    def shutdown(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def execute(self, statement: Statement) -> ExecResult:
        """Run one statement in its own transaction and return its rows."""
        started = time.perf_counter()
        with self.engine.begin() as conn:
            result = conn.execute(text(statement.sql), statement.bind())
            if result.returns_rows:
                rows = [dict(row._mapping) for row in result]
                rowcount = len(rows)
            else:
                rows = []
                rowcount = result.rowcount
        logger.debug(
            "db_execute %s",
            json.dumps(
                {
                    "sql": _summarize_sql(statement.sql),
                    "parameter_count": len(statement.params),
                    "rowcount": rowcount,
                    "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
                }
            ),
        )
        return ExecResult(rows=rows, rowcount=rowcount)
