"""
============================
Fluent SQL Query Builder.
============================

This module provides ``QueryBuilder``, a chainable builder that collects
clause fragments across calls and renders them into one SELECT statement,
plus CRUD terminals (insert/update/delete/count) built on the same state.

Clause mutators (all return the builder):
- select, distinct, from_, from_raw, join
- where, or_where, where_in, where_not_in, like, or_like
- group_by, having, order_by, limit, offset, set

Terminal operations (render, execute, reset):
- get, get_where, count_all_results
- insert, insert_batch, update, delete

Direct statements (no builder state involved):
- truncate, empty_table, query

WHERE assembly:
    Conditions fall into two fixed groups. The AND-group holds where,
    where_in, where_not_in and like (in that order); the OR-group holds
    or_where and or_like. The rendered clause is always
    ``WHERE (a AND b ...) OR (c OR d ...)``, with either side omitted
    when empty.

Usage:
    from sql.factory import new_query_builder

    qb = new_query_builder()
    users = (
        qb.select(['id', 'email'])
          .where('status', 'active')
          .where_in('role', ['admin', 'editor'])
          .order_by('created_at', 'DESC')
          .limit(10)
          .get('users')
    )

    # Column-to-column comparison, value passed through unescaped
    qb.where('orders.total >', 'orders.discount', escape=False)
"""

import logging
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, TextIO, Tuple, Union

from core.config import config
from sql.result import ResultSet
from sql.service import ExecutionService, RawExpression

logger = logging.getLogger(__name__)

ORDER_DIRECTIONS = ('ASC', 'DESC')
LIKE_SIDES = ('before', 'after', 'both')

# Trailing comparison operator in a where/having key, e.g. "age >=".
OPERATOR_PATTERN = re.compile(r'^\s*(?P<column>.+?)\s*(?P<operator>!=|<>|<=|>=|=|<|>)\s*$')


@dataclass
class Condition:
    """One rendered condition plus the typed pieces it was built from.

    Attributes:
        column: Column expression on the left-hand side
        operator: Comparison operator ('=', '>', 'IN', 'LIKE', ...)
        value: Original, unescaped value
        sql: Rendered fragment used when assembling the statement
        escaped: False when the value was passed through as raw SQL
    """

    column: str
    operator: str
    value: Any
    sql: str
    escaped: bool = True

    @property
    def is_equality(self) -> bool:
        return self.operator == '=' and self.escaped

    def __str__(self):
        return self.sql


def _split_operator(key: str) -> Tuple[str, str]:
    match = OPERATOR_PATTERN.match(key)
    if match:
        return match.group('column'), match.group('operator')
    return key.strip(), '='


class QueryBuilder:
    """Chainable SELECT/INSERT/UPDATE/DELETE builder.

    One instance accumulates one query at a time. Every terminal operation
    resets the clause state, so an instance can be reused for the next
    query; only ``last_query()`` survives the reset. Instances are not safe
    to share between interleaved call sites (see ``sql.factory``).

    Attributes:
        service: Execution service used for escaping, prefixing and running SQL
        legacy_where_parse: Derive the UPDATE/DELETE WHERE map by splitting
            rendered ``key = value`` strings instead of using the typed values

    Example:
        >>> qb = QueryBuilder(service)
        >>> qb.where('id', 5).get_compiled_select('users')
        "SELECT * FROM app_users WHERE (id = 5)"
    """

    def __init__(
        self,
        service: ExecutionService,
        legacy_where_parse: bool = False,
        diagnostics: Optional[TextIO] = None
    ):
        """Initialize an empty builder.

        Args:
            service: Execution service backing this builder
            legacy_where_parse: Reproduce the string-split WHERE handling of
                update()/delete(), including its silently dropped conditions
            diagnostics: Stream for debug output (defaults to sys.stderr)
        """
        self.service = service
        self.legacy_where_parse = legacy_where_parse
        self._diagnostics = diagnostics
        self._debug_mode = False
        self._last_query = ''
        self.reset_query()

    # ------------------------------------------------------------------
    # Debug and introspection
    # ------------------------------------------------------------------

    def debug(self, enable: bool = True) -> 'QueryBuilder':
        """Toggle echoing of rendered queries and errors to the diagnostic stream."""
        self._debug_mode = enable
        return self

    def last_query(self) -> str:
        return self._last_query

    def error(self) -> Dict[str, Optional[str]]:
        """Return the service's last error message and this builder's last query."""
        return {
            'message': self.service.last_error(),
            'query': self._last_query
        }

    def print_query(self) -> 'QueryBuilder':
        self._write_diagnostic(f"Query: {self._last_query}")
        return self

    def reset_query(self) -> None:
        """Clear every clause collection. ``last_query`` is kept."""
        self._select = '*'
        self._from = ''
        self._joins: List[str] = []
        self._where: List[Condition] = []
        self._or_where: List[Condition] = []
        self._where_in: List[Condition] = []
        self._where_not_in: List[Condition] = []
        self._like: List[Condition] = []
        self._or_like: List[Condition] = []
        self._group_by: List[str] = []
        self._having: List[Condition] = []
        self._order_by: List[Tuple[str, str]] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._set: Dict[str, Any] = {}
        self._distinct = False

    # ------------------------------------------------------------------
    # Clause mutators
    # ------------------------------------------------------------------

    def select(self, select: Union[str, Iterable[str]] = '*') -> 'QueryBuilder':
        """Set the column list (string or sequence of column expressions)."""
        if not isinstance(select, str):
            select = ', '.join(select)
        self._select = select
        return self

    def distinct(self, value: bool = True) -> 'QueryBuilder':
        self._distinct = value
        return self

    def from_(self, table: str, add_prefix: bool = True) -> 'QueryBuilder':
        """Set the FROM table, prefixed unless ``add_prefix`` is False."""
        self._from = self._prefixed(table) if add_prefix else table
        return self

    def from_raw(self, table: str) -> 'QueryBuilder':
        return self.from_(table, add_prefix=False)

    def join(self, table: str, condition: str, join_type: str = 'INNER') -> 'QueryBuilder':
        """Add a JOIN clause.

        The join type is trimmed and upper-cased but not validated; an
        unknown type surfaces as a database error at execution time.
        """
        join_type = join_type.strip().upper()
        self._joins.append(f"{join_type} JOIN {self._prefixed(table)} ON {condition}")
        return self

    def where(self, key: Union[str, Mapping], value: Any = None, escape: bool = True) -> 'QueryBuilder':
        """Add an AND condition.

        Args:
            key: Column (optionally followed by an operator, e.g. 'age >'),
                or a mapping of several key/value pairs
            value: Value to compare against
            escape: When False, ``value`` is inserted as a raw SQL fragment

        Returns:
            The builder
        """
        if isinstance(key, Mapping):
            for k, v in key.items():
                self.where(k, v, escape)
            return self

        self._where.append(self._compare(key, value, escape))
        return self

    def or_where(self, key: Union[str, Mapping], value: Any = None, escape: bool = True) -> 'QueryBuilder':
        """Add a condition to the OR-group. Same arguments as ``where``."""
        if isinstance(key, Mapping):
            for k, v in key.items():
                self.or_where(k, v, escape)
            return self

        self._or_where.append(self._compare(key, value, escape))
        return self

    def where_in(self, key: str, values: Any) -> 'QueryBuilder':
        """Add ``key IN (...)``. An empty collection leaves the builder unchanged."""
        condition = self._membership(key, values, 'IN')
        if condition is not None:
            self._where_in.append(condition)
        return self

    def where_not_in(self, key: str, values: Any) -> 'QueryBuilder':
        """Add ``key NOT IN (...)``. An empty collection leaves the builder unchanged."""
        condition = self._membership(key, values, 'NOT IN')
        if condition is not None:
            self._where_not_in.append(condition)
        return self

    def like(self, field: Union[str, Mapping], match: str = '', side: str = 'both') -> 'QueryBuilder':
        """Add ``field LIKE pattern`` to the AND-group.

        ``%`` and ``_`` inside ``match`` are escaped before the wildcards
        for ``side`` ('before', 'after' or 'both') are added.
        """
        if isinstance(field, Mapping):
            for k, v in field.items():
                self.like(k, v, side)
            return self

        self._like.append(self._pattern(field, match, side))
        return self

    def or_like(self, field: Union[str, Mapping], match: str = '', side: str = 'both') -> 'QueryBuilder':
        if isinstance(field, Mapping):
            for k, v in field.items():
                self.or_like(k, v, side)
            return self

        self._or_like.append(self._pattern(field, match, side))
        return self

    def group_by(self, by: Union[str, Iterable[str]]) -> 'QueryBuilder':
        if isinstance(by, str):
            self._group_by.append(by)
        else:
            self._group_by.extend(by)
        return self

    def having(self, key: Union[str, Mapping], value: Any = None, escape: bool = True) -> 'QueryBuilder':
        """Add a HAVING condition (AND-joined). Same arguments as ``where``."""
        if isinstance(key, Mapping):
            for k, v in key.items():
                self.having(k, v, escape)
            return self

        self._having.append(self._compare(key, value, escape))
        return self

    def order_by(self, orderby: str, direction: str = 'ASC') -> 'QueryBuilder':
        """Add an ORDER BY term. Directions other than ASC/DESC become ASC."""
        direction = str(direction).strip().upper()
        if direction not in ORDER_DIRECTIONS:
            direction = 'ASC'
        self._order_by.append((orderby, direction))
        return self

    def limit(self, limit: int, offset: Optional[int] = None) -> 'QueryBuilder':
        value = self._non_negative(limit, 'limit')
        if value is not None:
            self._limit = value
        if offset is not None:
            self.offset(offset)
        return self

    def offset(self, offset: int) -> 'QueryBuilder':
        value = self._non_negative(offset, 'offset')
        if value is not None:
            self._offset = value
        return self

    def set(self, key: Union[str, Mapping], value: Any = '', escape: bool = True) -> 'QueryBuilder':
        """Stage a column value for insert()/update().

        With ``escape=False`` the value is sent as a raw SQL expression,
        e.g. ``set('views', 'views + 1', escape=False)``.
        """
        if isinstance(key, Mapping):
            for k, v in key.items():
                self.set(k, v, escape)
            return self

        self._set[key] = value if escape else RawExpression(str(value))
        return self

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def build_query(self) -> str:
        """Render the accumulated state as a SELECT statement."""
        sql = 'SELECT '

        if self._distinct:
            sql += 'DISTINCT '

        sql += self._select
        sql += f" FROM {self._from}"

        if self._joins:
            sql += ' ' + ' '.join(self._joins)

        sql += self._compile_where()

        if self._group_by:
            sql += ' GROUP BY ' + ', '.join(self._group_by)

        if self._having:
            sql += ' HAVING ' + ' AND '.join(c.sql for c in self._having)

        if self._order_by:
            sql += ' ORDER BY ' + ', '.join(f"{expr} {direction}" for expr, direction in self._order_by)

        if self._limit is not None:
            sql += f" LIMIT {self._limit}"
            if self._offset is not None:
                sql += f" OFFSET {self._offset}"

        return sql

    def get_compiled_select(self, table: Optional[str] = None, reset: bool = True) -> str:
        """Render the SELECT without executing it."""
        if table is not None:
            self.from_(table)

        sql = self.build_query()

        if reset:
            self.reset_query()

        return sql

    def _compile_where(self) -> str:
        and_group = [c.sql for c in self._where + self._where_in + self._where_not_in + self._like]
        or_group = [c.sql for c in self._or_where + self._or_like]

        if not and_group and not or_group:
            return ''

        sql = ' WHERE '

        if and_group:
            sql += '(' + ' AND '.join(and_group) + ')'

        if or_group:
            if and_group:
                sql += ' OR '
            sql += '(' + ' OR '.join(or_group) + ')'

        return sql

    # ------------------------------------------------------------------
    # Terminal operations
    # ------------------------------------------------------------------

    def get(self, table: Optional[str] = None, limit: Optional[int] = None, offset: Optional[int] = None) -> ResultSet:
        """Run the accumulated SELECT and return its rows.

        Execution errors are logged and reported, never raised; the
        result is then empty.
        """
        if table is not None:
            self.from_(table)

        if limit is not None:
            self.limit(limit, offset)

        sql = self.build_query()
        self._last_query = sql
        self._trace(sql)

        rows = self.service.execute_query(sql)
        self._report_error('Query', sql)

        self.reset_query()

        return ResultSet(rows or [])

    def get_where(
        self,
        table: str,
        where: Optional[Mapping] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None
    ) -> ResultSet:
        self.from_(table)
        if where:
            self.where(where)

        if limit is not None:
            self.limit(limit, offset)

        return self.get()

    def count_all_results(self, table: Optional[str] = None) -> int:
        """Return the number of rows the accumulated query matches (0 on failure)."""
        if table is not None:
            self.from_(table)

        self._select = 'COUNT(*) AS num_rows'
        sql = self.build_query()
        self._last_query = sql
        self._trace(sql)

        value = self.service.execute_scalar(sql)
        self._report_error('Count', sql)

        self.reset_query()

        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0

    def insert(self, table: str, data: Optional[Mapping] = None) -> bool:
        """Insert one row built from ``data`` (or the staged ``set`` values)."""
        if data:
            self._set = dict(data)

        result = self.service.insert_row(self._prefixed(table), dict(self._set))
        self._last_query = self.service.last_query()
        self._report_error('Insert', self._last_query)

        self.reset_query()

        return result is not False

    def insert_batch(self, table: str, rows: Iterable[Mapping]) -> bool:
        """Insert each row separately.

        Every row is attempted even after a failure, so a partial failure
        leaves the earlier and later rows committed. Returns True only if
        all rows succeeded.
        """
        table = self._prefixed(table)

        success = True
        for row in rows:
            result = self.service.insert_row(table, dict(row))
            if result is False:
                success = False
                self._report_error('Batch insert', self.service.last_query())

        self._last_query = self.service.last_query()
        self.reset_query()

        return success

    def update(self, table: str, data: Optional[Mapping] = None, where: Optional[Mapping] = None) -> bool:
        """Update rows matching the accumulated equality conditions.

        Args:
            table: Unprefixed table name
            data: Column values merged into the staged ``set`` values
            where: Equality conditions merged into the AND-group

        Returns:
            True unless the service reported a failure
        """
        if data:
            self._set.update(data)

        if where:
            self.where(where)

        where_map = self._mutation_where('Update')
        result = self.service.update_rows(self._prefixed(table), dict(self._set), where_map)
        self._last_query = self.service.last_query()
        self._report_error('Update', self._last_query)

        self.reset_query()

        return result is not False

    def delete(self, table: str, where: Optional[Mapping] = None) -> bool:
        """Delete rows matching the accumulated equality conditions."""
        if where:
            self.where(where)

        where_map = self._mutation_where('Delete')
        result = self.service.delete_rows(self._prefixed(table), where_map)
        self._last_query = self.service.last_query()
        self._report_error('Delete', self._last_query)

        self.reset_query()

        return result is not False

    def truncate(self, table: str) -> bool:
        return self.query(f"TRUNCATE TABLE {self._prefixed(table)}")

    def empty_table(self, table: str) -> bool:
        return self.query(f"DELETE FROM {self._prefixed(table)}")

    def query(self, sql: str) -> bool:
        """Execute a raw statement. Builder clause state is left untouched."""
        self._last_query = sql
        self._trace(sql)

        result = self.service.execute_statement(sql)
        self._report_error('Query', sql)

        return result

    def insert_id(self) -> Optional[int]:
        return self.service.insert_id()

    def affected_rows(self) -> int:
        return self.service.rows_affected()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _prefixed(self, table: str) -> str:
        return f"{self.service.table_prefix()}{table}"

    def _compare(self, key: str, value: Any, escape: bool) -> Condition:
        column, operator = _split_operator(key)

        if not escape:
            return Condition(column, operator, value, f"{column} {operator} {value}", escaped=False)

        if value is None and operator in ('=', '!=', '<>'):
            null_operator = 'IS' if operator == '=' else 'IS NOT'
            return Condition(column, operator, value, f"{column} {null_operator} NULL")

        literal = self.service.escape_literal(value)
        return Condition(column, operator, value, f"{column} {operator} {literal}")

    def _membership(self, key: str, values: Any, operator: str) -> Optional[Condition]:
        if values is None:
            return None
        if isinstance(values, (str, bytes)) or not hasattr(values, '__iter__'):
            values = [values]

        values = list(values)
        if not values:
            logger.debug(f"Skipping {key} {operator} () with an empty value list")
            return None

        escaped = ','.join(self.service.escape_literal(v) for v in values)
        return Condition(key, operator, values, f"{key} {operator} ({escaped})")

    def _pattern(self, field: str, match: Any, side: str) -> Condition:
        pattern = self.service.escape_like_wildcards(str(match))

        if side == 'before':
            pattern = f"%{pattern}"
        elif side == 'after':
            pattern = f"{pattern}%"
        else:
            pattern = f"%{pattern}%"

        return Condition(field, 'LIKE', match, f"{field} LIKE {self.service.escape_literal(pattern)}")

    def _non_negative(self, value: Any, name: str) -> Optional[int]:
        try:
            number = int(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-integer {name}: {value!r}")
            return None

        if number < 0:
            logger.warning(f"Ignoring negative {name}: {number}")
            return None

        return number

    def _mutation_where(self, action: str) -> Dict[str, Any]:
        """Equality map handed to update_rows()/delete_rows()."""
        if self.legacy_where_parse:
            return self._parse_rendered_where()

        where_map = {}
        dropped = []

        for condition in self._where:
            if condition.is_equality:
                where_map[condition.column] = condition.value
            else:
                dropped.append(condition.sql)

        for condition in self._where_in + self._where_not_in + self._like + self._or_where + self._or_like:
            dropped.append(condition.sql)

        if dropped:
            logger.warning(
                f"{action} only supports equality conditions; ignoring: {'; '.join(dropped)}"
            )

        return where_map

    def _parse_rendered_where(self) -> Dict[str, str]:
        # Conditions that do not split into exactly two parts are dropped.
        where_map = {}
        for condition in self._where:
            parts = condition.sql.split(' = ')
            if len(parts) == 2:
                where_map[parts[0].strip()] = parts[1].strip().strip("'")
        return where_map

    def _trace(self, sql: str) -> None:
        logger.debug(f"SQL: {sql}")
        if self._debug_mode:
            self._write_diagnostic(f"Query: {sql}")

    def _report_error(self, label: str, sql: str) -> bool:
        message = self.service.last_error()
        if not message:
            return False

        logger.error(f"{label} error: {message} | Query: {sql}")

        if self._debug_mode or config.debug:
            self._write_diagnostic(f"{label} error: {message}\nQuery: {sql}")

        return True

    def _write_diagnostic(self, text: str) -> None:
        print(text, file=self._diagnostics or sys.stderr)
