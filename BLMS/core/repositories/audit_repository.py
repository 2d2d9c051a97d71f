"""
Audit Repository
Handles database operations for audit_logs table
"""
from typing import List, Dict, Any, Optional
from core.repositories.base_repository import BaseRepository

class AuditRepository(BaseRepository):
    """Repository for audit_logs table operations"""

    def __init__(self, db=None):
        super().__init__('audit_logs', 'audit_id', db=db)

    def log_action(self, actor_id: Optional[int], role: str, action: str, details: str = None) -> int:
        """Create a new audit log entry"""
        return self.create({
            'actor_id': actor_id,
            'role': role,
            'action': action,
            'details': details
        })

    def get_recent_logs(self, limit: int = 20, action: str = None) -> List[Dict[str, Any]]:
        """Recent billing audit rows, optionally for one action"""
        if action:
            query = f"SELECT * FROM {self.table_name} WHERE action = %s ORDER BY created_at DESC LIMIT %s"
            return self.db.execute_query(query, (action, limit), fetch_all=True) or []
        query = f"SELECT * FROM {self.table_name} ORDER BY created_at DESC LIMIT %s"
        return self.db.execute_query(query, (limit,), fetch_all=True) or []
