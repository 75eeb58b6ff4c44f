"""
=======================================================================
Data Definition Language (DDL) forge for table creation and alteration.
=======================================================================

Provides ``SchemaForge``, which accumulates a table specification (fields,
keys, foreign keys) across chained calls and renders MySQL DDL from it.

Key Features:
    - Field specs as plain dicts: type, constraint, unsigned, null,
      default, auto_increment
    - 'id' shorthand for a BIGINT UNSIGNED AUTO_INCREMENT primary key
    - Composite primary keys, secondary keys and foreign keys
    - Idempotent create_table through the service's schema reconciliation
    - Direct ALTER/DROP/RENAME statements that leave accumulated state alone

Field spec:
    {
        'type': 'VARCHAR',          # required
        'constraint': 100,          # length, or a list of ENUM/SET values
        'unsigned': False,
        'null': False,              # NOT NULL unless explicitly nullable
        'default': 'pending',       # quoted; RawExpression emitted verbatim
        'auto_increment': False,
    }

Example:
    >>> from sql.factory import new_forge
    >>>
    >>> forge = new_forge()
    >>> forge.add_field('id')
    >>> forge.add_field({
    ...     'email': {'type': 'VARCHAR', 'constraint': 191},
    ...     'status': {'type': 'ENUM', 'constraint': ['active', 'banned'], 'default': 'active'},
    ... })
    >>> forge.add_key('email')
    >>> forge.create_table('users', if_not_exists=True)
    True
"""

import logging
import sys
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, TextIO, Union

from core.config import config
from sql.service import ExecutionService, RawExpression

logger = logging.getLogger(__name__)

ID_FIELD = {
    'type': 'BIGINT',
    'constraint': 20,
    'unsigned': True,
    'auto_increment': True
}


class SchemaForge:
    """Accumulates a table definition and renders DDL from it.

    Only ``create_table`` consumes (and then resets) the accumulated
    fields and keys. ``add_column``/``modify_column`` take their field
    specs as arguments.

    Attributes:
        service: Execution service used for prefixing, escaping and running DDL
        fields: Ordered mapping of field name to attribute spec
        keys: Secondary index columns
        primary_keys: Primary key columns
        foreign_keys: Foreign key records
    """

    def __init__(self, service: ExecutionService, diagnostics: Optional[TextIO] = None):
        self.service = service
        self._diagnostics = diagnostics
        self._debug_mode = False
        self._last_query = ''
        self.reset()

    def reset(self) -> None:
        self.fields: Dict[str, Dict[str, Any]] = {}
        self.keys: List[str] = []
        self.primary_keys: List[str] = []
        self.foreign_keys: List[Dict[str, str]] = []

    def debug(self, enable: bool = True) -> 'SchemaForge':
        self._debug_mode = enable
        return self

    def last_query(self) -> str:
        return self._last_query

    def error(self) -> Dict[str, Optional[str]]:
        return {
            'message': self.service.last_error(),
            'query': self._last_query
        }

    # ------------------------------------------------------------------
    # Specification
    # ------------------------------------------------------------------

    def add_field(self, field: Union[str, Mapping]) -> 'SchemaForge':
        """Add fields to the pending table.

        Args:
            field: 'id' for an auto-incrementing primary key, or a mapping
                of field name to attribute spec

        Returns:
            The forge
        """
        if isinstance(field, str):
            if field == 'id':
                self.fields['id'] = dict(ID_FIELD)
                self.primary_keys.append('id')
            else:
                logger.warning(f"Ignoring unsupported field shorthand: {field!r}")
            return self

        self.fields.update(self._valid_fields(field))
        return self

    def add_key(self, key: Union[str, List[str]], primary: bool = False) -> 'SchemaForge':
        target = self.primary_keys if primary else self.keys
        if isinstance(key, str):
            target.append(key)
        else:
            target.extend(key)
        return self

    def add_foreign_key(
        self,
        field: str,
        reference_table: str,
        reference_field: str,
        on_delete: str = 'CASCADE',
        on_update: str = 'CASCADE'
    ) -> 'SchemaForge':
        self.foreign_keys.append({
            'field': field,
            'reference_table': self._prefixed(reference_table),
            'reference_field': reference_field,
            'on_delete': on_delete,
            'on_update': on_update
        })
        return self

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def build_field_definition(self, field: str, attributes: Mapping) -> str:
        """Render one column definition.

        NOT NULL is emitted unless the attributes set ``null`` to a true value.

        Example:
            >>> forge.build_field_definition('name', {'type': 'varchar', 'constraint': 100})
            '`name` VARCHAR(100) NOT NULL'
        """
        sql = f"`{field}` "

        column_type = str(attributes['type']).upper()
        constraint = attributes.get('constraint')

        if constraint is not None:
            sql += f"{column_type}({self._render_constraint(constraint)})"
        else:
            sql += column_type

        if attributes.get('unsigned'):
            sql += ' UNSIGNED'

        if attributes.get('null'):
            sql += ' NULL'
        else:
            sql += ' NOT NULL'

        if attributes.get('default') is not None:
            sql += f" DEFAULT {self._render_default(attributes['default'])}"

        if attributes.get('auto_increment'):
            sql += ' AUTO_INCREMENT'

        return sql

    def build_create_table(self, table: str, if_not_exists: bool = False) -> str:
        """Render CREATE TABLE for the accumulated specification."""
        sql = 'CREATE TABLE '

        if if_not_exists:
            sql += 'IF NOT EXISTS '

        sql += f"`{self._prefixed(table)}` ("

        sql += ', '.join(
            self.build_field_definition(name, attributes)
            for name, attributes in self.fields.items()
        )

        if self.primary_keys:
            columns = ', '.join(f"`{key}`" for key in self.primary_keys)
            sql += f", PRIMARY KEY ({columns})"

        for key in self.keys:
            sql += f", KEY `{key}` (`{key}`)"

        for fk in self.foreign_keys:
            sql += (
                f", FOREIGN KEY (`{fk['field']}`) REFERENCES `{fk['reference_table']}` "
                f"(`{fk['reference_field']}`) ON DELETE {fk['on_delete']} ON UPDATE {fk['on_update']}"
            )

        sql += ')'

        options = self.service.charset_collate()
        if options:
            sql += f" {options}"

        return sql + ';'

    # ------------------------------------------------------------------
    # DDL operations
    # ------------------------------------------------------------------

    def create_table(self, table: str, if_not_exists: bool = False) -> bool:
        """Create the table, or reconcile an existing one with the pending definition.

        An existing compatible table also reports success. The accumulated
        specification is reset afterwards in both cases.
        """
        if not self.fields:
            logger.warning(f"create_table('{table}') called without any fields")

        sql = self.build_create_table(table, if_not_exists)
        self._last_query = sql
        self._trace(sql)

        result = self.service.reconcile_schema(sql)
        self._report_error('Create table', sql)

        self.reset()

        if result:
            logger.info(f"Table '{self._prefixed(table)}' is up to date")

        return result

    def drop_table(self, table: str, if_exists: bool = False) -> bool:
        sql = 'DROP TABLE '

        if if_exists:
            sql += 'IF EXISTS '

        sql += f"`{self._prefixed(table)}`"

        return self._execute('Drop table', sql)

    def rename_table(self, old_name: str, new_name: str) -> bool:
        sql = f"RENAME TABLE `{self._prefixed(old_name)}` TO `{self._prefixed(new_name)}`"
        return self._execute('Rename table', sql)

    def add_column(self, table: str, field: Mapping, after_field: str = '') -> bool:
        """Add a column. ``field`` maps one field name to its attribute spec."""
        sql = f"ALTER TABLE `{self._prefixed(table)}` ADD "

        sql += ', ADD '.join(
            self.build_field_definition(name, attributes)
            for name, attributes in self._valid_fields(field).items()
        )

        if after_field:
            sql += f" AFTER `{after_field}`"

        return self._execute('Add column', sql)

    def drop_column(self, table: str, column: str) -> bool:
        sql = f"ALTER TABLE `{self._prefixed(table)}` DROP COLUMN `{column}`"
        return self._execute('Drop column', sql)

    def modify_column(self, table: str, field: Mapping) -> bool:
        sql = f"ALTER TABLE `{self._prefixed(table)}` MODIFY "

        sql += ', MODIFY '.join(
            self.build_field_definition(name, attributes)
            for name, attributes in self._valid_fields(field).items()
        )

        return self._execute('Modify column', sql)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _prefixed(self, table: str) -> str:
        return f"{self.service.table_prefix()}{table}"

    def _valid_fields(self, field: Mapping) -> Dict[str, Dict[str, Any]]:
        valid = {}
        for name, attributes in field.items():
            if not isinstance(attributes, Mapping) or not attributes.get('type'):
                logger.warning(f"Ignoring field '{name}' without a type")
                continue
            valid[name] = dict(attributes)
        return valid

    def _render_constraint(self, constraint: Any) -> str:
        if isinstance(constraint, (list, tuple)):
            return ','.join(self.service.escape_literal(str(value)) for value in constraint)
        return str(constraint)

    def _render_default(self, default: Any) -> str:
        if isinstance(default, RawExpression):
            return str(default)
        if isinstance(default, bool):
            default = int(default)
        return self.service.escape_literal(str(default))

    def _execute(self, label: str, sql: str) -> bool:
        self._last_query = sql
        self._trace(sql)

        result = self.service.execute_statement(sql)
        self._report_error(label, sql)

        return result

    def _trace(self, sql: str) -> None:
        logger.debug(f"DDL: {sql}")
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
