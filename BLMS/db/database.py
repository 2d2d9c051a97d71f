"""
Database Configuration and Connection Management
Handles MySQL connection pooling and configuration for ChargeLedger Billing
"""

import mysql.connector
from mysql.connector import pooling, errorcode, Error
from mysql.connector.errors import InterfaceError, OperationalError, PoolError
import os
import threading
from typing import Optional
import logging
from contextlib import contextmanager

from utils.exceptions import (
    DatabaseException, ConcurrentModificationException, StoreUnavailableException
)

# Configure logging
logging.basicConfig(level=os.getenv('BILLING_LOG_LEVEL', 'INFO').upper())
logger = logging.getLogger(__name__)

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), 'schema.sql')

_CONFLICT_ERRNOS = {errorcode.ER_LOCK_DEADLOCK}
_UNAVAILABLE_ERRNOS = {
    errorcode.ER_LOCK_WAIT_TIMEOUT,
    errorcode.CR_CONN_HOST_ERROR,
    errorcode.CR_CONNECTION_ERROR,
    errorcode.CR_SERVER_GONE_ERROR,
    errorcode.CR_SERVER_LOST,
}


def translate_error(error: Error) -> DatabaseException:
    """Map a mysql-connector error onto the billing error taxonomy"""
    errno = getattr(error, 'errno', None)
    if errno in _CONFLICT_ERRNOS:
        return ConcurrentModificationException(
            f"Concurrent update detected, retry with fresh data: {error}")
    if isinstance(error, (PoolError, InterfaceError, OperationalError)) or errno in _UNAVAILABLE_ERRNOS:
        return StoreUnavailableException(f"Record store unavailable: {error}")
    return DatabaseException(f"Database operation failed: {error}")


class DatabaseConfig:
    """Database configuration management"""

    def __init__(self):
        self.config = {
            'host': os.getenv('DB_HOST', 'localhost'),
            'port': int(os.getenv('DB_PORT', 3306)),
            'database': os.getenv('DB_NAME', 'chargeledger_db'),
            'user': os.getenv('DB_USER', 'root'),
            'password': os.getenv('DB_PASSWORD', ''),
            'charset': 'utf8mb4',
            'collation': 'utf8mb4_unicode_ci',
            'autocommit': False,
            'pool_name': 'chargeledger_pool',
            'pool_size': int(os.getenv('DB_POOL_SIZE', 10)),
            'pool_reset_session': True
        }

        self.connection_pool = None
        self._lock = threading.Lock()

    def _initialize_pool(self):
        """Initialize connection pool on first use"""
        with self._lock:
            if self.connection_pool is not None:
                return
            try:
                self.connection_pool = pooling.MySQLConnectionPool(**self.config)
                logger.info("Database connection pool initialized successfully")
            except Error as e:
                logger.error(f"Error creating connection pool: {e}")
                raise translate_error(e) from e

    def get_connection(self):
        """Get connection from pool"""
        if self.connection_pool is None:
            self._initialize_pool()
        try:
            return self.connection_pool.get_connection()
        except Error as e:
            logger.error(f"Error getting connection from pool: {e}")
            raise translate_error(e) from e

    def test_connection(self) -> bool:
        """Test database connection"""
        try:
            connection = self.get_connection()
            try:
                cursor = connection.cursor()
                cursor.execute("SELECT 1")
                result = cursor.fetchone()
                cursor.close()
                return result[0] == 1
            finally:
                connection.close()
        except (Error, DatabaseException) as e:
            logger.error(f"Database connection test failed: {e}")
            return False


class DatabaseManager:
    """Database operations manager

    Repositories share the connection of the transaction opened on the
    current thread, so a service can wrap several repository calls in one
    ``get_transaction()`` block and have them commit or roll back together.
    """

    def __init__(self, db_config: DatabaseConfig = None):
        self.db_config = db_config or DatabaseConfig()
        self._local = threading.local()

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, 'connection', None) is not None

    @contextmanager
    def get_connection(self):
        """Context manager for database connections"""
        if self.in_transaction:
            yield self._local.connection
            return

        connection = None
        try:
            connection = self.db_config.get_connection()
            yield connection
        except Error as e:
            if connection:
                connection.rollback()
            logger.error(f"Database error: {e}")
            raise translate_error(e) from e
        finally:
            if connection and connection.is_connected():
                connection.close()

    @contextmanager
    def get_transaction(self):
        """Context manager for database transactions (joins an open one)"""
        if self.in_transaction:
            yield self._local.connection
            return

        connection = None
        try:
            connection = self.db_config.get_connection()
            connection.start_transaction()
            self._local.connection = connection
            yield connection
            connection.commit()
        except Error as e:
            if connection:
                connection.rollback()
            logger.error(f"Transaction error: {e}")
            raise translate_error(e) from e
        except Exception:
            if connection:
                connection.rollback()
            raise
        finally:
            self._local.connection = None
            if connection and connection.is_connected():
                connection.close()

    def execute_query(self, query: str, params: tuple = None, fetch_one: bool = False, fetch_all: bool = False):
        """Execute a query and return results"""
        with self.get_connection() as connection:
            cursor = connection.cursor(dictionary=True)
            try:
                cursor.execute(query, params or ())

                if fetch_one:
                    return cursor.fetchone()
                elif fetch_all:
                    return cursor.fetchall()
                else:
                    if not self.in_transaction:
                        connection.commit()
                    return cursor.lastrowid
            finally:
                cursor.close()

    def execute_update(self, query: str, params: tuple = None) -> int:
        """Execute a write and return the number of affected rows"""
        with self.get_connection() as connection:
            cursor = connection.cursor()
            try:
                cursor.execute(query, params or ())
                if not self.in_transaction:
                    connection.commit()
                return cursor.rowcount
            finally:
                cursor.close()

    def execute_many(self, query: str, params_list: list):
        """Execute query with multiple parameter sets"""
        with self.get_transaction() as connection:
            cursor = connection.cursor()
            try:
                cursor.executemany(query, params_list)
                return cursor.rowcount
            finally:
                cursor.close()

    def init_schema(self, schema_path: Optional[str] = None):
        """Create billing tables if they do not exist"""
        with open(schema_path or SCHEMA_PATH, encoding='utf-8') as handle:
            statements = [s.strip() for s in handle.read().split(';') if s.strip()]

        with self.get_transaction() as connection:
            cursor = connection.cursor()
            try:
                for statement in statements:
                    cursor.execute(statement)
            finally:
                cursor.close()
        logger.info(f"Billing schema initialized ({len(statements)} statements)")

# Global database manager instance (pool opens on first connection)
db_manager = DatabaseManager()
