"""Parameterized statement construction for every repository.

Statements are plain SQL text with numbered named placeholders (`:p1`,
`:p2`, ...) plus the ordered tuple of values they bind. Column names
never come from the client: each table declares a static allow-list of
filterable, searchable and writable columns and anything outside it is
dropped before a statement is assembled.

The emitted SQL sticks to the subset shared by SQLite and PostgreSQL
(`LOWER(..) LIKE LOWER(..)` instead of `ILIKE`, `CURRENT_TIMESTAMP`,
`RETURNING *`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

EQ = "eq"
CONTAINS = "contains"
OPERATORS = (EQ, CONTAINS)

LIKE_ESCAPE = "\\"


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Marker for a field the caller did not supply. Distinct from None, which
# is a real value in partial updates.
UNSET: Any = _Unset()


def quote_ident(name: str) -> str:
    """Double-quote an allow-listed identifier (handles names like `level`)."""
    return '"' + name.replace('"', '""') + '"'


def contains_pattern(term: Any) -> str:
    """`%term%` with the term's own `%`, `_` and escape chars matched literally."""
    text = str(term)
    for char in (LIKE_ESCAPE, "%", "_"):
        text = text.replace(char, LIKE_ESCAPE + char)
    return f"%{text}%"


def ilike(column: str, placeholder: str) -> str:
    return f"LOWER({quote_ident(column)}) LIKE LOWER({placeholder}) ESCAPE '{LIKE_ESCAPE}'"


@dataclass(frozen=True)
class FilterField:
    """One allow-listed filter: request field -> column + operator."""
    column: str
    op: str = EQ

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"unsupported filter operator: {self.op}")


@dataclass(frozen=True)
class TableSpec:
    """Static description of what may be queried and written on a table."""
    name: str
    filters: Mapping[str, FilterField] = field(default_factory=dict)
    search_columns: Tuple[str, ...] = ()
    writable: frozenset = frozenset()
    order_by: Tuple[Tuple[str, str], ...] = (("created_at", "DESC"),)
    touch_column: Optional[str] = "updated_at"
    primary_key: str = "id"

    def lookup_columns(self) -> frozenset:
        return frozenset(
            [self.primary_key, *self.writable, *(f.column for f in self.filters.values())]
        )


@dataclass(frozen=True)
class Statement:
    sql: str
    params: Tuple[Any, ...] = ()

    def bind(self) -> Dict[str, Any]:
        """Return the params keyed by placeholder name for execution."""
        return {f"p{i}": value for i, value in enumerate(self.params, start=1)}


@dataclass(frozen=True)
class PageQuery:
    """COUNT + page SELECT built from one filter set."""
    count: Statement
    select: Statement
    limit: int
    offset: int


class _Params:
    """Accumulates bound values and hands out their placeholder names in order."""

    def __init__(self):
        self.values: List[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f":p{len(self.values)}"


def clamp_page(limit: Optional[int], offset: Optional[int], *, default_limit: int, max_limit: int) -> Tuple[int, int]:
    """Clamp `limit` into [1, max_limit] and `offset` to >= 0."""
    if limit is None:
        limit = default_limit
    limit = max(1, min(int(limit), max_limit))
    offset = max(0, int(offset or 0))
    return limit, offset


def _is_unset(value: Any) -> bool:
    return value is UNSET


class QueryBuilder:
    """Build statements for one table from its `TableSpec`."""

    def __init__(self, table: TableSpec, *, max_page_size: int = 100, default_page_size: int = 20):
        self.table = table
        self.max_page_size = max_page_size
        self.default_page_size = min(default_page_size, max_page_size)

    # -- predicates ---------------------------------------------------

    def _where(self, params: _Params, filters: Optional[Mapping[str, Any]], search: Optional[str]) -> str:
        conditions: List[str] = []
        filters = filters or {}
        # allow-list order, not caller order, fixes placeholder numbering
        for name, rule in self.table.filters.items():
            value = filters.get(name, UNSET)
            if _is_unset(value) or value is None:
                continue
            if rule.op == CONTAINS:
                conditions.append(ilike(rule.column, params.add(contains_pattern(value))))
            else:
                conditions.append(f"{quote_ident(rule.column)} = {params.add(value)}")
        term = (search or "").strip()
        if term and self.table.search_columns:
            placeholder = params.add(contains_pattern(term))
            group = " OR ".join(ilike(c, placeholder) for c in self.table.search_columns)
            conditions.append(f"({group})")
        if not conditions:
            return ""
        return " WHERE " + " AND ".join(conditions)

    def _order_by(self) -> str:
        if not self.table.order_by:
            return ""
        parts = [f"{quote_ident(column)} {direction}" for column, direction in self.table.order_by]
        return " ORDER BY " + ", ".join(parts)

    # -- reads --------------------------------------------------------

    def page(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> PageQuery:
        """Build the COUNT and LIMIT/OFFSET SELECT for one filter set.

        Both statements share the same WHERE text and predicate values;
        pagination values are appended to the SELECT only.
        """
        limit, offset = clamp_page(
            limit, offset, default_limit=self.default_page_size, max_limit=self.max_page_size
        )
        params = _Params()
        where = self._where(params, filters, search)
        predicate_values = tuple(params.values)
        table = quote_ident(self.table.name)
        count = Statement(f"SELECT COUNT(*) AS total FROM {table}{where}", predicate_values)
        limit_ph = params.add(limit)
        offset_ph = params.add(offset)
        select = Statement(
            f"SELECT * FROM {table}{where}{self._order_by()} LIMIT {limit_ph} OFFSET {offset_ph}",
            tuple(params.values),
        )
        return PageQuery(count=count, select=select, limit=limit, offset=offset)

    def select(self, filters: Optional[Mapping[str, Any]] = None, search: Optional[str] = None) -> Statement:
        """Unpaged SELECT for small child tables."""
        params = _Params()
        where = self._where(params, filters, search)
        return Statement(
            f"SELECT * FROM {quote_ident(self.table.name)}{where}{self._order_by()}",
            tuple(params.values),
        )

    def get(self, record_id: Any) -> Statement:
        return self.find_by(self.table.primary_key, record_id)

    def find_by(self, column: str, value: Any) -> Statement:
        if column not in self.table.lookup_columns():
            raise ValueError(f"column not queryable on {self.table.name}: {column}")
        return Statement(
            f"SELECT * FROM {quote_ident(self.table.name)} WHERE {quote_ident(column)} = :p1",
            (value,),
        )

    def distinct(self, column: str) -> Statement:
        if column not in self.table.lookup_columns():
            raise ValueError(f"column not queryable on {self.table.name}: {column}")
        ident = quote_ident(column)
        return Statement(
            f"SELECT DISTINCT {ident} FROM {quote_ident(self.table.name)} "
            f"WHERE {ident} IS NOT NULL ORDER BY {ident} ASC"
        )

    # -- writes -------------------------------------------------------

    def _writable_items(self, values: Mapping[str, Any]) -> Iterable[Tuple[str, Any]]:
        for key, value in values.items():
            if key in self.table.writable and not _is_unset(value):
                yield key, value

    def insert(self, values: Mapping[str, Any]) -> Statement:
        items = list(self._writable_items(values))
        if not items:
            raise ValueError(f"insert into {self.table.name} needs at least one column")
        params = _Params()
        columns = ", ".join(quote_ident(k) for k, _ in items)
        placeholders = ", ".join(params.add(v) for _, v in items)
        return Statement(
            f"INSERT INTO {quote_ident(self.table.name)} ({columns}) VALUES ({placeholders}) RETURNING *",
            tuple(params.values),
        )

    def update(self, record_id: Any, changes: Mapping[str, Any]) -> Optional[Statement]:
        """Build a sparse UPDATE, or return None when nothing is left to set.

        Only allow-listed keys with a supplied value become `col = :pN`
        assignments. The touch column is appended last and the id binds
        after every assignment.
        """
        params = _Params()
        assignments = [f"{quote_ident(k)} = {params.add(v)}" for k, v in self._writable_items(changes)]
        if not assignments:
            return None
        if self.table.touch_column:
            assignments.append(f"{quote_ident(self.table.touch_column)} = CURRENT_TIMESTAMP")
        id_ph = params.add(record_id)
        return Statement(
            f"UPDATE {quote_ident(self.table.name)} SET {', '.join(assignments)} "
            f"WHERE {quote_ident(self.table.primary_key)} = {id_ph} RETURNING *",
            tuple(params.values),
        )

    def delete(self, record_id: Any) -> Statement:
        return Statement(
            f"DELETE FROM {quote_ident(self.table.name)} WHERE {quote_ident(self.table.primary_key)} = :p1",
            (record_id,),
        )
