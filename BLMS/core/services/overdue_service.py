"""
Overdue Service
Moves elapsed, unpaid obligations to overdue
"""
from datetime import datetime, date, timedelta
from typing import Union

from core.models.entities import OverdueReport, ZERO
from core.repositories.emi_repository import EMIRepository
from core.repositories.rent_repository import RentRepository
from core.services.audit_service import AuditService
from db.database import db_manager
from utils.helpers import LoggingUtils
from utils.settings import BillingSettings


class OverdueService:
    """Service class for overdue reconciliation"""

    def __init__(self, db=None, emi_repo: EMIRepository = None, rent_repo: RentRepository = None,
                 audit_svc: AuditService = None, settings: BillingSettings = None):
        self.db = db or db_manager
        self.emi_repo = emi_repo or EMIRepository()
        self.rent_repo = rent_repo or RentRepository()
        self.audit_svc = audit_svc or AuditService()
        self.settings = settings or BillingSettings.from_env()

    def reconcile_overdue(self, now: Union[datetime, date]) -> OverdueReport:
        """Mark due/partial obligations whose due date passed as overdue.

        Only statuses change; amounts are never touched and overdue rows stay
        overdue, so running this twice for the same moment is a no-op.
        """
        today = now.date() if isinstance(now, datetime) else now
        cutoff = today - timedelta(days=self.settings.overdue_grace_days)
        report = OverdueReport(cutoff=cutoff)

        with self.db.get_transaction():
            emis = self.emi_repo.mark_overdue(cutoff)
            rents = self.rent_repo.mark_overdue(cutoff)

            report.overdue_emis = len(emis)
            report.overdue_rents = len(rents)
            for bucket, obligations in (('emis', emis), ('rents', rents)):
                for obligation in obligations:
                    amounts = report.customers.setdefault(
                        obligation.customer_id, {'emis': ZERO, 'rents': ZERO, 'total': ZERO})
                    amounts[bucket] += obligation.remaining_amount
                    amounts['total'] += obligation.remaining_amount

            if report.customers:
                self.audit_svc.log(AuditService.OVERDUE_RECONCILE, details={
                    'cutoff': cutoff,
                    'overdue_emis': report.overdue_emis,
                    'overdue_rents': report.overdue_rents,
                    'customers': sorted(report.customers),
                })

        LoggingUtils.log_business_event(
            "overdue_reconciled", "overdue_run", 0,
            details={'cutoff': str(cutoff), 'emis': report.overdue_emis,
                     'rents': report.overdue_rents, 'customers': report.affected_customers}
        )
        return report
