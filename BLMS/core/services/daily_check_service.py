"""
Daily Check Service
Runs overdue reconciliation followed by monthly rent generation
"""
from datetime import date
from typing import Dict, Any

from core.services.overdue_service import OverdueService
from core.services.scheduling_service import SchedulingService
from utils.helpers import LoggingUtils


class DailyCheckService:
    """Composite daily job; safe to run any number of times per day"""

    def __init__(self, overdue_svc: OverdueService = None, scheduling_svc: SchedulingService = None):
        self.overdue_svc = overdue_svc or OverdueService()
        self.scheduling_svc = scheduling_svc or SchedulingService()

    def run(self, today: date) -> Dict[str, Any]:
        overdue = self.overdue_svc.reconcile_overdue(today)
        rents = self.scheduling_svc.generate_monthly_rents(today)

        LoggingUtils.log_business_event(
            "daily_check_completed", "daily_check", 0,
            details={'date': str(today), 'overdue_customers': overdue.affected_customers,
                     'rents_created': len(rents['created']), 'rent_errors': len(rents['errors'])}
        )
        return {'date': today, 'overdue': overdue, 'rents': rents}
