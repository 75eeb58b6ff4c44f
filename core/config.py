"""
================================================
Configuration management for the query builder.
================================================

Loads all configuration from environment variables (.env file) and provides
a centralized Config singleton for application-wide access.

The configuration system ensures:
- Single source of truth for connection and builder settings
- Type conversion for ports and boolean switches
- A table prefix applied to every unqualified table name
- A global debug switch for diagnostic error output

Example:
    >>> from core.config import config
    >>>
    >>> # Database connection
    >>> engine_url = config.get_connection_string()
    >>>
    >>> # Access individual settings
    >>> print(f"Host: {config.db_host}, prefix: {config.table_prefix!r}")
"""

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote_plus

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


@dataclass
class DatabaseConfig:
    """Database configuration settings.

    Attributes:
        driver: SQLAlchemy driver name (e.g. 'mysql+pymysql')
        host: MySQL server hostname or IP address
        port: MySQL server port number
        user: Database username
        password: Database password
        database: Database name
        charset: Default character set for new tables
        collate: Default collation for new tables
    """

    driver: str
    host: str
    port: int
    user: str
    password: str
    database: str
    charset: str
    collate: str

    def get_connection_string(self) -> str:
        """Get the SQLAlchemy connection string (password URL-quoted)."""
        return (
            f"{self.driver}://{self.user}:{quote_plus(self.password)}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    def get_connection_params(self) -> dict:
        """Get connection parameters as dictionary.

        Returns:
            Dictionary with keys: host, port, user, password, database
        """
        return {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database
        }


@dataclass
class BuilderConfig:
    """Query builder settings.

    Attributes:
        table_prefix: Prepended to every unqualified table name
        debug: Report execution errors on the diagnostic stream for all
            builders and forges, not only those with debug() enabled
        log_level: Default logging level
    """

    table_prefix: str
    debug: bool
    log_level: str


class Config:
    """Centralized configuration manager.

    Attributes:
        db: DatabaseConfig instance with database connection settings
        builder: BuilderConfig instance with query builder settings

    Example:
        >>> config = Config()
        >>> conn_str = config.get_connection_string()
        >>> print(f"Connecting to {config.db_host}:{config.db_port}")
    """

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.db = DatabaseConfig(
            driver=os.getenv('DB_DRIVER', 'mysql+pymysql'),
            host=os.getenv('DB_HOST', 'localhost'),
            port=int(os.getenv('DB_PORT', '3306')),
            user=os.getenv('DB_USER', 'root'),
            password=os.getenv('DB_PASSWORD', ''),
            database=os.getenv('DB_NAME', 'app'),
            charset=os.getenv('DB_CHARSET', 'utf8mb4'),
            collate=os.getenv('DB_COLLATE', 'utf8mb4_unicode_ci')
        )

        self.builder = BuilderConfig(
            table_prefix=os.getenv('DB_TABLE_PREFIX', ''),
            debug=_env_bool('QB_DEBUG'),
            log_level=os.getenv('LOG_LEVEL', 'INFO')
        )

    @property
    def db_host(self) -> str:
        return self.db.host

    @property
    def db_port(self) -> int:
        return self.db.port

    @property
    def db_user(self) -> str:
        return self.db.user

    @property
    def db_password(self) -> str:
        return self.db.password

    @property
    def db_name(self) -> str:
        return self.db.database

    @property
    def table_prefix(self) -> str:
        return self.builder.table_prefix

    @property
    def debug(self) -> bool:
        return self.builder.debug

    @property
    def log_level(self) -> str:
        return self.builder.log_level

    def get_connection_string(self) -> str:
        return self.db.get_connection_string()

    def get_connection_params(self) -> dict:
        return self.db.get_connection_params()


# Global configuration instance
config = Config()
