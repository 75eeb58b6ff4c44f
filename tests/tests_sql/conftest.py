"""
Shared fixtures and fakes for the sql package tests.

Key fixtures:
- make_service: the FakeExecutionService class, for custom instances.
- service: FakeExecutionService recording every call, no database involved.
- prefixed_service: same fake with table prefix 'wp_'.
- qb / forge: builder and forge wired to ``service`` with a StringIO
  diagnostic stream.
"""

import io
from typing import Any, Dict, List, Optional

import pytest

from sql.ddl import SchemaForge
from sql.query_builder import QueryBuilder
from sql.service import ExecutionService, RawExpression


class FakeExecutionService(ExecutionService):
    """
    In-memory ExecutionService.

    Records calls in ``calls`` as (method, args) tuples. Failures are
    injected with ``fail_on`` (method name -> error message) or, for
    insert_row, with ``fail_insert_rows`` (1-based call numbers).
    """

    def __init__(self, prefix: str = '', rows: Optional[List[Dict[str, Any]]] = None, scalar: Any = 0):
        self.prefix = prefix
        self.rows = rows if rows is not None else []
        self.scalar = scalar
        self.fail_on: Dict[str, str] = {}
        self.fail_insert_rows: List[int] = []
        self.reconcile_result = True
        self.calls: List[tuple] = []

        self._error: Optional[str] = None
        self._query = ''
        self._insert_id: Optional[int] = None
        self._inserts = 0

    def _begin(self, method: str, *args) -> bool:
        """Record the call and return True if it should fail."""
        self.calls.append((method, args))
        self._error = None
        if method in self.fail_on:
            self._error = self.fail_on[method]
            return True
        return False

    def calls_to(self, method: str) -> List[tuple]:
        return [args for name, args in self.calls if name == method]

    def execute_query(self, sql):
        self._query = sql
        if self._begin('execute_query', sql):
            return []
        return list(self.rows)

    def execute_scalar(self, sql):
        self._query = sql
        if self._begin('execute_scalar', sql):
            return None
        return self.scalar

    def execute_statement(self, sql):
        self._query = sql
        return not self._begin('execute_statement', sql)

    def insert_row(self, table, values):
        self._inserts += 1
        self._query = f"INSERT INTO {table} {sorted(values)}"
        if self._begin('insert_row', table, values):
            return False
        if self._inserts in self.fail_insert_rows:
            self._error = f"Duplicate entry for row {self._inserts}"
            return False
        self._insert_id = self._inserts
        return self._insert_id

    def update_rows(self, table, values, where):
        self._query = f"UPDATE {table}"
        if self._begin('update_rows', table, values, where):
            return False
        return 1

    def delete_rows(self, table, where):
        self._query = f"DELETE FROM {table}"
        if self._begin('delete_rows', table, where):
            return False
        return 1

    def escape_literal(self, value):
        if value is None:
            return 'NULL'
        if isinstance(value, RawExpression):
            return str(value)
        if isinstance(value, bool):
            return '1' if value else '0'
        if isinstance(value, (int, float)):
            return str(value)
        return "'" + str(value).replace("'", "''") + "'"

    def escape_like_wildcards(self, value):
        return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')

    def last_error(self):
        return self._error

    def last_query(self):
        return self._query

    def insert_id(self):
        return self._insert_id

    def rows_affected(self):
        return 1

    def table_prefix(self):
        return self.prefix

    def charset_collate(self):
        return 'DEFAULT CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci'

    def reconcile_schema(self, ddl):
        self._query = ddl
        if self._begin('reconcile_schema', ddl):
            return False
        return self.reconcile_result


@pytest.fixture
def make_service():
    """Factory for services with custom rows, scalar or prefix."""
    return FakeExecutionService


@pytest.fixture
def service():
    return FakeExecutionService()


@pytest.fixture
def prefixed_service():
    return FakeExecutionService(prefix='wp_')


@pytest.fixture
def diagnostics():
    return io.StringIO()


@pytest.fixture
def qb(service, diagnostics):
    return QueryBuilder(service, diagnostics=diagnostics)


@pytest.fixture
def forge(service, diagnostics):
    return SchemaForge(service, diagnostics=diagnostics)
