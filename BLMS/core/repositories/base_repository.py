"""
Base Repository Class
Provides common database operations for all repositories
"""

from abc import ABC
from typing import List, Optional, Dict, Any
import logging

from db.database import db_manager, DatabaseManager
from utils.exceptions import DatabaseException, ValidationException

logger = logging.getLogger(__name__)

class BaseRepository(ABC):
    """Base repository with common CRUD operations"""

    def __init__(self, table_name: str, primary_key: str = 'id', auto_increment: bool = True,
                 db: DatabaseManager = None):
        self.table_name = table_name
        self.primary_key = primary_key
        self.auto_increment = auto_increment
        self.db = db or db_manager

    def create(self, data: Dict[str, Any], ignore_duplicates: bool = False) -> int:
        """Create a new record"""
        # Remove None values and skip primary key ONLY if it's auto-incremented
        clean_data = {
            k: v for k, v in data.items()
            if v is not None and (not self.auto_increment or k != self.primary_key)
        }

        if not clean_data:
            raise ValidationException("No data provided for creation")

        columns = ', '.join(clean_data.keys())
        placeholders = ', '.join(['%s'] * len(clean_data))
        values = tuple(clean_data.values())

        verb = "INSERT IGNORE" if ignore_duplicates else "INSERT"
        query = f"{verb} INTO {self.table_name} ({columns}) VALUES ({placeholders})"

        try:
            result = self.db.execute_query(query, values)
        except DatabaseException as e:
            logger.error(f"Error creating record in {self.table_name}: {e}")
            raise
        logger.info(f"Created record in {self.table_name} with ID: {result}")
        return result

    def create_many(self, rows: List[Dict[str, Any]], ignore_duplicates: bool = False) -> int:
        """Insert several records sharing the same columns; returns affected rows"""
        if not rows:
            return 0

        columns = list(rows[0].keys())
        placeholders = ', '.join(['%s'] * len(columns))
        verb = "INSERT IGNORE" if ignore_duplicates else "INSERT"
        query = f"{verb} INTO {self.table_name} ({', '.join(columns)}) VALUES ({placeholders})"

        try:
            inserted = self.db.execute_many(query, [tuple(row[c] for c in columns) for row in rows])
        except DatabaseException as e:
            logger.error(f"Error bulk inserting into {self.table_name}: {e}")
            raise
        logger.info(f"Inserted {inserted} record(s) into {self.table_name}")
        return inserted

    def find_by_id(self, record_id: int, for_update: bool = False) -> Optional[Dict[str, Any]]:
        """Find record by primary key (optionally locking the row)"""
        query = f"SELECT * FROM {self.table_name} WHERE {self.primary_key} = %s"
        if for_update:
            query += " FOR UPDATE"
        return self.db.execute_query(query, (record_id,), fetch_one=True)

    def update(self, record_id: int, data: Dict[str, Any]) -> bool:
        """Update record by primary key"""
        # Remove primary key; None is written as NULL
        clean_data = {k: v for k, v in data.items() if k != self.primary_key}

        if not clean_data:
            return False

        set_clause = ', '.join([f"{k} = %s" for k in clean_data.keys()])
        values = tuple(clean_data.values()) + (record_id,)

        query = f"UPDATE {self.table_name} SET {set_clause} WHERE {self.primary_key} = %s"

        try:
            affected = self.db.execute_update(query, values)
        except DatabaseException as e:
            logger.error(f"Error updating record in {self.table_name}: {e}")
            raise
        logger.info(f"Updated record in {self.table_name} with ID: {record_id}")
        return affected > 0

    def find_by_field(self, field_name: str, field_value: Any, order_by: str = None) -> List[Dict[str, Any]]:
        """Find records by specific field"""
        query = f"SELECT * FROM {self.table_name} WHERE {field_name} = %s"
        if order_by:
            query += f" ORDER BY {order_by}"
        result = self.db.execute_query(query, (field_value,), fetch_all=True)
        return result or []

    def count(self, where_clause: str = None, params: tuple = None) -> int:
        """Count records with optional where clause"""
        query = f"SELECT COUNT(*) as count FROM {self.table_name}"
        if where_clause:
            query += f" WHERE {where_clause}"

        result = self.db.execute_query(query, params, fetch_one=True)
        return result['count'] if result else 0

    def exists(self, record_id: int) -> bool:
        """Check if record exists"""
        query = f"SELECT 1 FROM {self.table_name} WHERE {self.primary_key} = %s LIMIT 1"
        result = self.db.execute_query(query, (record_id,), fetch_one=True)
        return result is not None
