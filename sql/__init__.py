"""
====================================================
Fluent SQL query builder and schema forge.
====================================================

This package turns chained method calls into SQL strings and hands them to
an execution service that owns the database connection and escaping.

The package follows a clear organization:
    - service.py: ExecutionService contract and RawExpression marker
    - query_builder.py: QueryBuilder (SELECT assembly and CRUD terminals)
    - result.py: ResultSet (positional and cursor access to fetched rows)
    - ddl.py: SchemaForge (CREATE/ALTER/DROP/RENAME TABLE)
    - factory.py: per-call instances and opt-in shared instances

Architecture:
    - Builders never import a database driver; utils.database_utils
      provides the SQLAlchemy-backed service
    - Every terminal operation resets the builder's clause state
    - Execution errors are logged and reported, never raised

Example:
    >>> from sql import new_query_builder, new_forge
    >>>
    >>> forge = new_forge()
    >>> forge.add_field('id').add_field({'name': {'type': 'VARCHAR', 'constraint': 100}})
    >>> forge.create_table('people', if_not_exists=True)
    >>>
    >>> qb = new_query_builder()
    >>> qb.insert('people', {'name': 'Ada'})
    >>> qb.like('name', 'Ad', 'after').get('people').row_array()
"""

__version__ = "1.0.0"
__all__ = [
    # Core classes
    'QueryBuilder', 'Condition', 'ResultSet', 'SchemaForge',
    'ExecutionService', 'RawExpression',
    # Factories
    'new_query_builder', 'new_forge', 'shared_query_builder', 'shared_forge',
    'default_service', 'set_default_service', 'reset_shared_instances'
]

from .ddl import SchemaForge
from .factory import (
    default_service,
    new_forge,
    new_query_builder,
    reset_shared_instances,
    set_default_service,
    shared_forge,
    shared_query_builder,
)
from .query_builder import Condition, QueryBuilder
from .result import ResultSet
from .service import ExecutionService, RawExpression
