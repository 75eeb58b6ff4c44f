"""
==========================
Utility Functions Package.
==========================

Database connectivity and schema helpers behind the sql package.

Modules:
    database_utils: SQLAlchemy execution service and connectivity checks
    schema_sync: Idempotent CREATE TABLE reconciliation
"""

__version__ = "1.0.0"
__all__ = [
    'SQLAlchemyExecutionService',
    'build_default_service',
    'check_database_available',
    'get_connection_string',
    'create_sqlalchemy_engine',
    'verify_connection',
    'wait_for_database',
    'SchemaReconciler'
]

from .database_utils import (
    SQLAlchemyExecutionService,
    build_default_service,
    check_database_available,
    create_sqlalchemy_engine,
    get_connection_string,
    verify_connection,
    wait_for_database,
)
from .schema_sync import SchemaReconciler
