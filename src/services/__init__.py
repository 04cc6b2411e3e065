"""Services for the donation tracker write path.

Every state-changing service method runs inside a TransactionContext, so
project totals, notification drafts and audit entries commit together.
"""

from src.services.access_scope import AccessScope, scope_for, scope_predicate
from src.services.audit_service import AuditService
from src.services.dashboard_service import DashboardService, DashboardSummary, MonthlyDonationPoint
from src.services.db import create_db_engine, create_session_factory, init_schema
from src.services.donation_service import DonationRequest, DonationService
from src.services.identity import ANONYMOUS, DELIVERY_WORKER, CallerIdentity, RoleName, identity_scope
from src.services.notification_service import NotificationService, synthesize_donation_notifications
from src.services.project_service import ProjectService, ProjectUpdate
from src.services.report_service import ReportService
from src.services.unit_of_work import TransactionContext

__all__ = [
    "ANONYMOUS",
    "AccessScope",
    "AuditService",
    "CallerIdentity",
    "DELIVERY_WORKER",
    "DashboardService",
    "DashboardSummary",
    "DonationRequest",
    "DonationService",
    "MonthlyDonationPoint",
    "NotificationService",
    "ProjectService",
    "ProjectUpdate",
    "ReportService",
    "RoleName",
    "TransactionContext",
    "create_db_engine",
    "create_session_factory",
    "identity_scope",
    "init_schema",
    "scope_for",
    "scope_predicate",
    "synthesize_donation_notifications",
]
