"""
======================================
Query result wrapper.
======================================

``ResultSet`` wraps rows that have already been fetched and offers
positional and sequential access in two shapes:

- ``'object'``: one ``SimpleNamespace`` per row (attribute access)
- ``'array'``: one plain ``dict`` per row (key access)

Both views are built lazily on first request and cached.

Example:
    >>> result = builder.where('status', 'active').get('users')
    >>> for user in result.result():
    ...     print(user.email)
    >>> result.row_array(0)
    {'id': 1, 'email': 'jane@example.com', 'status': 'active'}
"""

from collections.abc import Mapping
from types import SimpleNamespace
from typing import Any, Dict, Iterator, List, Optional

ARRAY = 'array'
OBJECT = 'object'


def _as_mapping(row: Any) -> Dict[str, Any]:
    if isinstance(row, Mapping):
        return dict(row)
    if hasattr(row, '_mapping'):
        return dict(row._mapping)
    return dict(vars(row))


class ResultSet:
    """Read-only view over a materialized row list.

    Attributes:
        _rows: Rows as handed over by the execution service
        _cursor: Position shared by next_row() and previous_row()
    """

    def __init__(self, rows: Any = None):
        if isinstance(rows, (list, tuple)):
            self._rows = list(rows)
        else:
            self._rows = []
        self._num_rows = len(self._rows)
        self._result_array: Optional[List[Dict[str, Any]]] = None
        self._result_object: Optional[List[SimpleNamespace]] = None
        self._cursor = 0

    def __len__(self):
        return self._num_rows

    def __iter__(self) -> Iterator[SimpleNamespace]:
        return iter(self.result_object())

    def __repr__(self):
        return f"ResultSet(num_rows={self._num_rows})"

    def result(self, row_type: str = OBJECT) -> list:
        """Return all rows as objects, or as dicts when row_type is 'array'."""
        if row_type == ARRAY:
            return self.result_array()
        return self.result_object()

    def result_array(self) -> List[Dict[str, Any]]:
        if self._result_array is None:
            self._result_array = [_as_mapping(row) for row in self._rows]
        return self._result_array

    def result_object(self) -> List[SimpleNamespace]:
        if self._result_object is None:
            self._result_object = [
                SimpleNamespace(**mapping) for mapping in self.result_array()
            ]
        return self._result_object

    def row(self, n: int = 0, row_type: str = OBJECT) -> Any:
        """Return row ``n`` or None when ``n`` is out of range."""
        if n < 0 or n >= self._num_rows:
            return None
        return self.result(row_type)[n]

    def row_array(self, n: int = 0) -> Optional[Dict[str, Any]]:
        return self.row(n, ARRAY)

    def first_row(self, row_type: str = OBJECT) -> Any:
        return self.row(0, row_type)

    def last_row(self, row_type: str = OBJECT) -> Any:
        return self.row(self._num_rows - 1, row_type)

    def next_row(self, row_type: str = OBJECT) -> Any:
        """Return the row at the cursor and advance.

        Running past the end returns None and rewinds the cursor to 0.
        """
        if self._cursor < self._num_rows:
            row = self.row(self._cursor, row_type)
            self._cursor += 1
            return row

        self._cursor = 0
        return None

    def previous_row(self, row_type: str = OBJECT) -> Any:
        """Step the cursor back one row and return it (None at the start)."""
        if self._cursor - 1 >= 0 and self._cursor - 1 < self._num_rows:
            self._cursor -= 1
            return self.row(self._cursor, row_type)
        return None

    def num_rows(self) -> int:
        return self._num_rows

    def num_fields(self) -> int:
        if not self._rows:
            return 0
        return len(self.result_array()[0])

    def free_result(self) -> None:
        """Drop row data and cached views."""
        self._rows = []
        self._result_array = None
        self._result_object = None
        self._num_rows = 0
        self._cursor = 0
