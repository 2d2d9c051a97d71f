"""
Audit Service
Records billing actions (payments, scheduling runs, reconciliations)
"""
import json
from typing import Any, Optional
from core.repositories.audit_repository import AuditRepository

class AuditService:
    """Service class for auditing billing actions"""

    PAYMENT_COMMIT = 'PAYMENT_COMMIT'
    SCHEDULE_EMI = 'SCHEDULE_EMI'
    SCHEDULE_RENT = 'SCHEDULE_RENT'
    RENT_GENERATION = 'RENT_GENERATION'
    OVERDUE_RECONCILE = 'OVERDUE_RECONCILE'

    def __init__(self, repo: AuditRepository = None):
        self.repo = repo or AuditRepository()

    def log(self, action: str, actor_id: Optional[int] = None, role: str = 'system', details: Any = None):
        """Log a billing action with optional structured details"""
        details_str = json.dumps(details, default=str) if details else None
        return self.repo.log_action(actor_id, role, action, details_str)

    def get_latest_activity(self, count: int = 15, action: str = None):
        """Fetch latest billing activity for the admin scheduler page"""
        return self.repo.get_recent_logs(count, action)
