"""
=========================================================
Command-line entry point for the SQL query builder.
=========================================================

Thin CLI over the sql package. Three operations are offered:

    - --verify:   check that the configured MySQL server accepts connections
    - --show-sql: render an example SELECT without touching the database
    - --example:  run the example workflow (create ``example_table`` through
                  the forge, insert a row, read it back)

Connection settings come from core.config (environment / .env file).

Usage:
    # Check connectivity
    python main.py --verify

    # Wait for a starting server (up to 5 attempts)
    python main.py --verify --retries 5

    # Print the example query
    python main.py --show-sql

    # Run the example workflow with diagnostic output
    python main.py --example --debug --verbose

Example:
    >>> from main import QueryBuilderCLI
    >>>
    >>> cli = QueryBuilderCLI()
    >>> print(cli.render_example_query())
    SELECT id, name FROM example_table WHERE (status = 'active') ORDER BY name ASC LIMIT 10
"""

import argparse
import logging
import sys
from typing import Any, Dict, Optional

from core.logger import get_logger
from sql.ddl import SchemaForge
from sql.factory import default_service, new_forge, new_query_builder
from sql.query_builder import QueryBuilder
from sql.service import ExecutionService, RawExpression
from utils.database_utils import (
    DatabaseConnectionError,
    get_database_connection_info,
    verify_connection,
    wait_for_database,
)

logger = get_logger(__name__)

EXAMPLE_TABLE = 'example_table'


class CommandError(Exception):
    """Exception raised when a CLI operation fails."""
    pass


class QueryBuilderCLI:
    """
    Runs the CLI operations against one execution service.

    Attributes:
        service: Execution service shared by the builder and forge
        debug: Echo rendered SQL and errors to stderr

    Example:
        >>> cli = QueryBuilderCLI(debug=True)
        >>> cli.run_example()
        {'created': True, 'inserted': True, 'row': {'id': 1, 'name': 'Example', ...}}
    """

    def __init__(self, service: Optional[ExecutionService] = None, debug: bool = False):
        self.service = service or default_service()
        self.debug = debug

    def builder(self) -> QueryBuilder:
        return new_query_builder(self.service).debug(self.debug)

    def forge(self) -> SchemaForge:
        return new_forge(self.service).debug(self.debug)

    def verify(self, retries: int = 1) -> str:
        """
        Check database connectivity.

        Args:
            retries: Total connection attempts before giving up

        Returns:
            Success message

        Raises:
            CommandError: If the server is unreachable
        """
        info = get_database_connection_info()
        logger.info(f"📍 MySQL Server: {info['host']}:{info['port']}")
        logger.info(f"👤 User: {info['user']}")
        logger.info(f"🗄️  Database: {info['database']} (prefix {info['table_prefix']!r})")

        engine = getattr(self.service, 'engine', None)
        success, message = verify_connection(engine)
        if not success and retries > 1:
            try:
                wait_for_database(engine, max_retries=retries - 1, retry_delay=2)
            except DatabaseConnectionError as e:
                raise CommandError(str(e)) from e
            success, message = verify_connection(engine)

        if not success:
            raise CommandError(message)

        logger.info(f"✅ {message}")
        return message

    def render_example_query(self) -> str:
        """Render the example SELECT without executing it."""
        return (
            self.builder()
            .select(['id', 'name'])
            .where('status', 'active')
            .order_by('name')
            .limit(10)
            .get_compiled_select(EXAMPLE_TABLE)
        )

    def run_example(self) -> Dict[str, Any]:
        """
        Create the example table, insert one row and read it back.

        Returns:
            Dictionary with 'created', 'inserted' and 'row'

        Raises:
            CommandError: If table creation or the insert fails
        """
        logger.info(f"\n🔧 Ensuring table '{EXAMPLE_TABLE}' exists...")

        forge = self.forge()
        forge.add_field('id')
        forge.add_field({
            'name': {'type': 'VARCHAR', 'constraint': 100},
            'status': {'type': 'ENUM', 'constraint': ['active', 'inactive'], 'default': 'active'},
            'created_at': {'type': 'DATETIME', 'default': RawExpression('CURRENT_TIMESTAMP')},
        })
        forge.add_key('status')

        if not forge.create_table(EXAMPLE_TABLE, if_not_exists=True):
            raise CommandError(f"Could not create {EXAMPLE_TABLE}: {forge.error()['message']}")

        qb = self.builder()
        if not qb.insert(EXAMPLE_TABLE, {'name': 'Example', 'status': 'active'}):
            raise CommandError(f"Insert failed: {qb.error()['message']}")

        row_id = qb.insert_id()
        logger.info(f"✅ Inserted row id={row_id}")

        row = qb.get_where(EXAMPLE_TABLE, {'id': row_id}).row_array()
        logger.info(f"📄 Read back: {row}")

        return {'created': True, 'inserted': True, 'row': row}


def main():
    """
    Command-line interface for the query builder.

    Exit Codes:
        0: Success
        1: Error
        130: User interrupt (Ctrl+C)
    """
    parser = argparse.ArgumentParser(
        description="Fluent SQL query builder - connectivity check and examples",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check the configured MySQL server
  python main.py --verify

  # Print the example SELECT (no database needed)
  python main.py --show-sql

  # Create example_table, insert a row and read it back
  python main.py --example --debug
        """
    )

    operation = parser.add_mutually_exclusive_group()
    operation.add_argument(
        '--verify',
        action='store_true',
        help='Check database connectivity'
    )
    operation.add_argument(
        '--show-sql',
        action='store_true',
        help='Render the example SELECT without executing it'
    )
    operation.add_argument(
        '--example',
        action='store_true',
        help='Run the example table workflow'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging (DEBUG level)'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Echo rendered SQL and errors to stderr'
    )
    parser.add_argument(
        '--retries',
        type=int,
        default=1,
        help='Connection attempts for --verify (default: 1)'
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        if args.verify:
            QueryBuilderCLI(debug=args.debug).verify(retries=args.retries)
            return 0

        elif args.show_sql:
            print(QueryBuilderCLI(debug=args.debug).render_example_query())
            return 0

        elif args.example:
            QueryBuilderCLI(debug=args.debug).run_example()
            logger.info("\n🎉 Example completed successfully!")
            return 0

        else:
            parser.print_help()
            logger.warning("\n⚠️  No operation specified. Use --verify, --show-sql or --example.")
            return 1

    except CommandError as e:
        logger.error(f"\n❌ Command failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("\n⚠️  Operation interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"\n❌ Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
