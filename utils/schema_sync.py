"""
==================================================
Idempotent CREATE TABLE reconciliation.
==================================================

Applies a CREATE TABLE statement so that running it repeatedly is safe:

- the table does not exist: the statement is executed as is
- the table exists: only the differences are applied as ALTER TABLE
  statements (missing columns, columns whose base type changed, missing
  keys and foreign keys)

Nothing is ever dropped, and an existing table that already matches the
statement is left untouched.

Example:
    >>> from utils.schema_sync import SchemaReconciler
    >>>
    >>> reconciler = SchemaReconciler(engine)
    >>> reconciler.plan("CREATE TABLE `app_users` (`id` INT NOT NULL, `email` VARCHAR(100) NOT NULL);")
    ['ALTER TABLE `app_users` ADD COLUMN `email` VARCHAR(100) NOT NULL']
    >>> reconciler.apply(ddl)
    True
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Run driver SQL without a parameter collection so format-style drivers
# (PyMySQL) leave literal % signs alone.
DRIVER_SQL_OPTIONS = {'no_parameters': True}

CREATE_TABLE_PATTERN = re.compile(
    r'^\s*CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?`?(?P<table>[^`\s(]+)`?\s*'
    r'\((?P<body>.*)\)(?P<options>[^)]*?);?\s*$',
    re.IGNORECASE | re.DOTALL
)
IDENTIFIER_PATTERN = re.compile(r'`([^`]+)`')
BASE_TYPE_PATTERN = re.compile(r'^\s*([A-Za-z]+)')

# Reflected type names that differ from the DDL spelling
TYPE_ALIASES = {
    'INT': 'INTEGER',
    'BOOL': 'TINYINT',
    'BOOLEAN': 'TINYINT',
    'DEC': 'DECIMAL',
    'NUMERIC': 'DECIMAL',
}


class SchemaSyncError(Exception):
    """Raised when a statement is not a CREATE TABLE statement."""
    pass


@dataclass
class TableDefinition:
    """Parsed CREATE TABLE statement.

    Attributes:
        name: Table name
        columns: Column name to full column definition
        primary_key: Primary key clause, if any
        keys: Index name to index clause
        foreign_keys: Foreign key clauses in declaration order
    """

    name: str
    columns: Dict[str, str] = field(default_factory=dict)
    primary_key: Optional[str] = None
    keys: Dict[str, str] = field(default_factory=dict)
    foreign_keys: List[str] = field(default_factory=list)


def split_definitions(body: str) -> List[str]:
    """Split a CREATE TABLE body on top-level commas.

    Commas inside parentheses, quotes or backticks do not split.
    """
    parts = []
    current = []
    depth = 0
    quote = None
    escaped = False

    for char in body:
        if quote:
            current.append(char)
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char in ("'", '"', '`'):
            quote = char
        elif char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
        elif char == ',' and depth == 0:
            parts.append(''.join(current).strip())
            current = []
            continue

        current.append(char)

    tail = ''.join(current).strip()
    if tail:
        parts.append(tail)

    return parts


def parse_create_table(ddl: str) -> TableDefinition:
    """Parse a CREATE TABLE statement into a TableDefinition."""
    match = CREATE_TABLE_PATTERN.match(ddl)
    if not match:
        raise SchemaSyncError(f"Not a CREATE TABLE statement: {ddl[:80]}")

    definition = TableDefinition(name=match.group('table'))

    for part in split_definitions(match.group('body')):
        upper = part.upper()

        if upper.startswith('PRIMARY KEY'):
            definition.primary_key = part
        elif upper.startswith(('KEY', 'INDEX', 'UNIQUE', 'FULLTEXT')):
            names = IDENTIFIER_PATTERN.findall(part)
            if names:
                definition.keys[names[0]] = part
        elif upper.startswith(('FOREIGN KEY', 'CONSTRAINT')):
            definition.foreign_keys.append(part)
        else:
            names = IDENTIFIER_PATTERN.findall(part)
            name = names[0] if names else part.split()[0]
            definition.columns[name] = part

    return definition


def _base_type(type_name: str) -> str:
    match = BASE_TYPE_PATTERN.match(type_name)
    base = match.group(1).upper() if match else type_name.upper()
    return TYPE_ALIASES.get(base, base)


def _column_type(column_definition: str) -> str:
    remainder = IDENTIFIER_PATTERN.sub('', column_definition, count=1)
    return _base_type(remainder)


class SchemaReconciler:
    """Create or update a table to match a CREATE TABLE statement.

    Attributes:
        engine: SQLAlchemy engine the statements run against
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def plan(self, ddl: str) -> List[str]:
        """Return the statements needed to make the database match ``ddl``."""
        definition = parse_create_table(ddl)
        inspector = inspect(self.engine)

        if not inspector.has_table(definition.name):
            return [ddl]

        table = f"`{definition.name}`"
        statements = []

        existing_columns = {
            column['name'].lower(): column for column in inspector.get_columns(definition.name)
        }
        for name, column_definition in definition.columns.items():
            existing = existing_columns.get(name.lower())
            if existing is None:
                statements.append(f"ALTER TABLE {table} ADD COLUMN {column_definition}")
            elif _base_type(str(existing['type'])) != _column_type(column_definition):
                statements.append(f"ALTER TABLE {table} MODIFY {column_definition}")

        existing_keys = {
            index['name'].lower() for index in inspector.get_indexes(definition.name) if index.get('name')
        }
        for name, key_definition in definition.keys.items():
            if name.lower() not in existing_keys:
                statements.append(f"ALTER TABLE {table} ADD {key_definition}")

        existing_fk_columns = {
            tuple(fk['constrained_columns']) for fk in inspector.get_foreign_keys(definition.name)
        }
        for fk_definition in definition.foreign_keys:
            columns = tuple(IDENTIFIER_PATTERN.findall(fk_definition.split('REFERENCES')[0]))
            if columns not in existing_fk_columns:
                statements.append(f"ALTER TABLE {table} ADD {fk_definition}")

        return statements

    def apply(self, ddl: str) -> bool:
        """Execute the planned statements in one transaction."""
        statements = self.plan(ddl)

        if not statements:
            logger.debug(f"Schema already up to date for: {ddl[:80]}")
            return True

        with self.engine.begin() as conn:
            for statement in statements:
                logger.info(f"Applying schema change: {statement}")
                conn.exec_driver_sql(statement, execution_options=DRIVER_SQL_OPTIONS)

        return True
