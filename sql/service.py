"""
=====================================
SQL execution service contract.
=====================================

The query builder and the schema forge never talk to a database driver
directly. Everything that touches the database (running statements,
escaping values, table prefixing, idempotent schema application) goes
through an ``ExecutionService``.

Classes:
    RawExpression: Marker for a value that must be emitted verbatim
    ExecutionService: Abstract interface implemented by database backends

Example:
    >>> from utils.database_utils import SQLAlchemyExecutionService
    >>> from sql.query_builder import QueryBuilder
    >>>
    >>> service = SQLAlchemyExecutionService(engine, table_prefix='app_')
    >>> builder = QueryBuilder(service)
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union


class RawExpression:
    """SQL fragment that bypasses escaping.

    Used for values such as ``CURRENT_TIMESTAMP`` or ``counter + 1``.
    Never wrap untrusted input in a RawExpression.
    """

    def __init__(self, expression: str):
        self.expression = expression

    def __str__(self):
        return self.expression

    def __repr__(self):
        return f"RawExpression({self.expression!r})"

    def __eq__(self, other):
        return isinstance(other, RawExpression) and other.expression == self.expression

    def __hash__(self):
        return hash(self.expression)


class ExecutionService(ABC):
    """Narrow interface between the SQL layer and a database.

    Implementations report failures through ``last_error()`` and degraded
    return values; they do not raise for execution errors.
    """

    @abstractmethod
    def execute_query(self, sql: str) -> List[Dict[str, Any]]:
        """Run a SELECT and return its rows (empty list on failure)."""

    @abstractmethod
    def execute_scalar(self, sql: str) -> Any:
        """Run a query and return the first column of the first row."""

    @abstractmethod
    def execute_statement(self, sql: str) -> bool:
        """Run a statement that returns no rows (DDL, TRUNCATE, ...)."""

    @abstractmethod
    def insert_row(self, table: str, values: Dict[str, Any]) -> Union[int, None, bool]:
        """Insert one row. Returns the new row id, or False on failure."""

    @abstractmethod
    def update_rows(
        self,
        table: str,
        values: Dict[str, Any],
        where: Dict[str, Any]
    ) -> Union[int, bool]:
        """Update rows matching an equality map. Returns affected count or False."""

    @abstractmethod
    def delete_rows(self, table: str, where: Dict[str, Any]) -> Union[int, bool]:
        """Delete rows matching an equality map. Returns affected count or False."""

    @abstractmethod
    def escape_literal(self, value: Any) -> str:
        """Render a value as a safely quoted SQL literal."""

    @abstractmethod
    def escape_like_wildcards(self, value: str) -> str:
        """Neutralize ``%`` and ``_`` so they match literally in LIKE."""

    @abstractmethod
    def last_error(self) -> Optional[str]:
        """Message of the last failed call, or None."""

    @abstractmethod
    def last_query(self) -> str:
        """SQL rendered by the service for its last call."""

    @abstractmethod
    def insert_id(self) -> Optional[int]:
        """Row id generated by the last insert."""

    @abstractmethod
    def rows_affected(self) -> int:
        """Row count touched by the last statement."""

    @abstractmethod
    def table_prefix(self) -> str:
        """Prefix prepended to every unqualified table name."""

    @abstractmethod
    def charset_collate(self) -> str:
        """Table options appended to CREATE TABLE statements."""

    @abstractmethod
    def reconcile_schema(self, ddl: str) -> bool:
        """Create the table described by ``ddl`` or bring it in line with it."""
