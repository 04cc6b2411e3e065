"""Dashboard summary computed over the caller's in-scope projects."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.models import Donation, Project, ProjectStatus, utcnow
from src.services.access_scope import scope_for
from src.services.aggregate_service import CENT, ZERO
from src.services.identity import CallerIdentity, current_identity

logger = logging.getLogger(__name__)

SERIES_MONTHS = 6


@dataclass(frozen=True)
class MonthlyDonationPoint:
    year: int
    month: int
    amount: Decimal


@dataclass
class DashboardSummary:
    total_projects: int
    active_projects: int
    completed_projects: int
    cancelled_projects: int
    total_raised: Decimal
    raised_this_month: Decimal
    success_rate: Decimal
    monthly_donations: list[MonthlyDonationPoint] = field(default_factory=list)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_start(now: datetime) -> datetime:
    """First instant of now's month, in UTC."""
    now = _as_utc(now)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def success_rate(completed: int, total: int) -> Decimal:
    """Completed projects as a percentage of all projects, 2 places."""
    if total == 0:
        return ZERO
    rate = Decimal(completed) * Decimal(100) / Decimal(total)
    return rate.quantize(CENT, rounding=ROUND_HALF_UP)


class DashboardService:
    """Aggregates for the dashboard.

    Counts and sums only ever include projects the caller may see; a
    caller with no scope gets an all-zero summary.
    """

    def __init__(self, db: Session, identity: CallerIdentity | None = None):
        self.db = db
        self.identity = identity or current_identity()
        self.scope = scope_for(self.identity)

    def _status_counts(self) -> dict[ProjectStatus, int]:
        stmt = self.scope.apply(select(Project.status, func.count(Project.id)), Project).group_by(Project.status)
        return {status: count for status, count in self.db.execute(stmt).all()}

    def _monthly_series(self, now: datetime) -> list[MonthlyDonationPoint]:
        start = month_start(now)
        first_year, first_month = shift_month(start.year, start.month, -(SERIES_MONTHS - 1))
        series_start = start.replace(year=first_year, month=first_month)

        buckets: dict[tuple[int, int], Decimal] = {}
        for offset in range(SERIES_MONTHS):
            buckets[shift_month(first_year, first_month, offset)] = ZERO

        stmt = self.scope.apply(
            select(Donation.donated_at, Donation.amount).where(Donation.donated_at >= series_start), Donation
        )
        for donated_at, amount in self.db.execute(stmt).all():
            donated_at = _as_utc(donated_at)
            key = (donated_at.year, donated_at.month)
            if key in buckets:
                buckets[key] += amount

        return [MonthlyDonationPoint(year, month, amount) for (year, month), amount in buckets.items()]

    def get_summary(self, now: datetime | None = None) -> DashboardSummary:
        now = now or utcnow()

        counts = self._status_counts()
        total = sum(counts.values())
        completed = counts.get(ProjectStatus.COMPLETED, 0)

        total_raised = self.db.scalar(
            self.scope.apply(select(func.coalesce(func.sum(Project.collected_amount), 0)), Project)
        )
        raised_this_month = self.db.scalar(
            self.scope.apply(
                select(func.coalesce(func.sum(Donation.amount), 0)).where(
                    Donation.donated_at >= month_start(now)
                ),
                Donation,
            )
        )

        summary = DashboardSummary(
            total_projects=total,
            active_projects=counts.get(ProjectStatus.ACTIVE, 0),
            completed_projects=completed,
            cancelled_projects=counts.get(ProjectStatus.CANCELLED, 0),
            total_raised=Decimal(str(total_raised)).quantize(CENT, rounding=ROUND_HALF_UP),
            raised_this_month=Decimal(str(raised_this_month)).quantize(CENT, rounding=ROUND_HALF_UP),
            success_rate=success_rate(completed, total),
            monthly_donations=self._monthly_series(now),
        )
        logger.debug("Dashboard summary for %s: %s projects", self.identity.display_name, total)
        return summary


__all__ = ["DashboardService", "DashboardSummary", "MonthlyDonationPoint", "success_rate"]
