"""
=========================================
Builder and forge instance factories.
=========================================

Two access patterns are offered:

- ``new_query_builder()`` / ``new_forge()``: an independent instance per
  call site. This is the default and the only safe choice when call
  sites may interleave chained calls.
- ``shared_query_builder()`` / ``shared_forge()``: one process-wide
  instance. Convenient for scripts, but two call sites that chain
  mutators before either reaches a terminal operation will mix their
  clauses.

Both use ``default_service()`` unless a service is passed explicitly.

Example:
    >>> from sql.factory import new_query_builder, shared_query_builder
    >>>
    >>> qb = new_query_builder()
    >>> qb.where('id', 1).get('users')
    >>>
    >>> shared_query_builder().count_all_results('users')
"""

import logging
from typing import Optional

from sql.ddl import SchemaForge
from sql.query_builder import QueryBuilder
from sql.service import ExecutionService

logger = logging.getLogger(__name__)

_default_service: Optional[ExecutionService] = None
_shared_builder: Optional[QueryBuilder] = None
_shared_forge: Optional[SchemaForge] = None


def default_service() -> ExecutionService:
    """Return the lazily created SQLAlchemy service configured from core.config."""
    global _default_service

    if _default_service is None:
        # Imported here: utils.database_utils imports sql.service.
        from utils.database_utils import build_default_service

        _default_service = build_default_service()
        logger.debug("Created default execution service")

    return _default_service


def new_query_builder(service: Optional[ExecutionService] = None, **options) -> QueryBuilder:
    """Create an independent QueryBuilder."""
    return QueryBuilder(service or default_service(), **options)


def new_forge(service: Optional[ExecutionService] = None, **options) -> SchemaForge:
    """Create an independent SchemaForge."""
    return SchemaForge(service or default_service(), **options)


def shared_query_builder() -> QueryBuilder:
    """Return the process-wide QueryBuilder, creating it on first use."""
    global _shared_builder

    if _shared_builder is None:
        _shared_builder = new_query_builder()

    return _shared_builder


def shared_forge() -> SchemaForge:
    """Return the process-wide SchemaForge, creating it on first use."""
    global _shared_forge

    if _shared_forge is None:
        _shared_forge = new_forge()

    return _shared_forge


def set_default_service(service: Optional[ExecutionService]) -> None:
    """Replace the default service and drop the shared instances bound to the old one."""
    global _default_service

    _default_service = service
    reset_shared_instances()


def reset_shared_instances() -> None:
    global _shared_builder, _shared_forge

    _shared_builder = None
    _shared_forge = None
