"""Collected-amount maintenance for projects.

Project.collected_amount is kept equal to the sum of its donations by O(1)
deltas applied inside the same transaction as the donation insert/delete.
The donation set is never re-read on the write path.

Known gap: rows edited outside these functions (manual data repair, bulk
SQL) desynchronize the total. There is no reconciliation job.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from src.models.project import Project
from src.services.errors import ValidationError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def normalize_amount(amount: Decimal | int | float | str) -> Decimal:
    """Round to 2 decimal places, halves away from zero (2.345 -> 2.35, -2.345 -> -2.35).

    Raises:
        ValidationError: Value is not a number, or is NaN or infinite
    """
    if not isinstance(amount, Decimal):
        try:
            amount = Decimal(str(amount))
        except InvalidOperation as e:
            raise ValidationError(f"Amount {amount!r} is not a number") from e
    if not amount.is_finite():
        raise ValidationError(f"Amount must be a finite number, got {amount}")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValidationError(f"Amount {amount} is out of range") from e


class CollectedAmountService:
    """Applies donation deltas to a project's collected amount."""

    @staticmethod
    def apply_donation_created(project: Project, amount: Decimal) -> Decimal:
        """Add an already-normalized donation amount to the project total.

        Non-positive amounts leave the total unchanged.

        Returns:
            The new collected amount
        """
        current = project.collected_amount or ZERO
        if amount > 0:
            project.collected_amount = (current + amount).quantize(CENT)
        return project.collected_amount

    @staticmethod
    def apply_donation_deleted(project: Project, amount: Decimal) -> Decimal:
        """Subtract a deleted donation from the project total, clamped at zero.

        Returns:
            The new collected amount
        """
        current = project.collected_amount or ZERO
        remaining = current - amount
        if remaining < 0:
            logger.warning(
                "Collected amount underflow on project %s: total %s, deleted donation %s; clamping to 0",
                project.id,
                current,
                amount,
            )
            remaining = ZERO
        project.collected_amount = remaining.quantize(CENT)
        return project.collected_amount


__all__ = ["CENT", "CollectedAmountService", "normalize_amount"]
