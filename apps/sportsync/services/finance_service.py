"""
Per-match ledger and participant payments.

All amounts are integers in minor currency units. "overdue" is derived on read
for pending payments whose due date has passed.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sportsync.database.models import (
    ConfirmationStatus,
    FinanceType,
    NotificationType,
    PaymentStatus,
)
from sportsync.models.schemas import (
    UserRecord,
    MatchResponse,
    FinanceEntryCreate,
    FinanceEntryResponse,
    FinancialReportResponse,
    CategoryTotals,
    PaymentSummary,
    PaymentCreate,
    PaymentResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import auth_service, notification_service
from sportsync.services.errors import ForbiddenError, NotFoundError, ValidationFailedError
from sportsync.services.match_service import get_match, can_manage_match
from sportsync.utils.datetime_utils import utcnow, ensure_utc

logger = logging.getLogger(__name__)


def _validate_amount(amount: int):
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationFailedError("Amount must be a positive integer (minor currency units)")


async def _ensure_can_view(repo: Repository, user: UserRecord, match: MatchResponse):
    if can_manage_match(user, match) or auth_service.is_staff(user):
        return
    confirmation = await repo.get_confirmation(user.id, match.id)
    if confirmation is None or confirmation.status == ConfirmationStatus.REJECTED:
        raise ForbiddenError("Only participants can view this match's finances")


def effective_status(payment: PaymentResponse, now: Optional[datetime] = None) -> PaymentStatus:
    """Pending payments past their due date read as overdue."""
    now = now or utcnow()
    if (
        payment.status == PaymentStatus.PENDING
        and payment.due_date is not None
        and ensure_utc(payment.due_date) < now
    ):
        return PaymentStatus.OVERDUE
    return payment.status


def _with_effective_status(payments: List[PaymentResponse]) -> List[PaymentResponse]:
    now = utcnow()
    return [p.model_copy(update={"status": effective_status(p, now)}) for p in payments]


# ============================================================================
# Ledger
# ============================================================================


async def add_finance_entry(
    repo: Repository, user: UserRecord, match_id: int, data: FinanceEntryCreate
) -> FinanceEntryResponse:
    """
    Raises:
        NotFoundError: unknown match
        ForbiddenError: caller is neither the creator nor an admin
        ValidationFailedError: blank category or non-positive amount
    """
    match = await get_match(repo, match_id)
    if not can_manage_match(user, match):
        raise ForbiddenError("Only the match creator or an admin can manage finances")
    category = data.category.strip()
    if not category:
        raise ValidationFailedError("Category is required")
    _validate_amount(data.amount)
    return await repo.create_finance_entry(
        match_id=match_id,
        type=data.type,
        category=category,
        description=data.description,
        amount=data.amount,
        created_by=user.id,
    )


async def list_finance_entries(
    repo: Repository, user: UserRecord, match_id: int
) -> List[FinanceEntryResponse]:
    match = await get_match(repo, match_id)
    await _ensure_can_view(repo, user, match)
    return await repo.list_finance_entries_by_match(match_id)


async def get_financial_report(
    repo: Repository, user: UserRecord, match_id: int
) -> FinancialReportResponse:
    """Revenue/expense totals, per-category breakdown and payment summary."""
    match = await get_match(repo, match_id)
    await _ensure_can_view(repo, user, match)

    entries = await repo.list_finance_entries_by_match(match_id)
    total_revenue = sum(e.amount for e in entries if e.type == FinanceType.REVENUE)
    total_expenses = sum(e.amount for e in entries if e.type == FinanceType.EXPENSE)

    by_category = {}
    for entry in entries:
        totals = by_category.setdefault(entry.category, CategoryTotals())
        if entry.type == FinanceType.REVENUE:
            totals.revenue += entry.amount
        else:
            totals.expense += entry.amount

    summary = PaymentSummary()
    for payment in _with_effective_status(await repo.list_payments_by_match(match_id)):
        summary.count += 1
        if payment.status == PaymentStatus.PAID:
            summary.paid += payment.amount
        elif payment.status == PaymentStatus.OVERDUE:
            summary.overdue += payment.amount
        else:
            summary.pending += payment.amount

    return FinancialReportResponse(
        match_id=match_id,
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        balance=total_revenue - total_expenses,
        by_category=by_category,
        payments=summary,
    )


# ============================================================================
# Payments
# ============================================================================


async def create_payment(
    repo: Repository, user: UserRecord, match_id: int, data: PaymentCreate
) -> PaymentResponse:
    """
    Charge a user for a match and notify them.

    Raises:
        NotFoundError: unknown match or payer
        ForbiddenError: caller is neither the creator nor an admin
        ValidationFailedError: non-positive amount
    """
    match = await get_match(repo, match_id)
    if not can_manage_match(user, match):
        raise ForbiddenError("Only the match creator or an admin can request payments")
    _validate_amount(data.amount)
    if await repo.get_user(data.user_id) is None:
        raise NotFoundError("User not found")

    payment = await repo.create_payment(
        user_id=data.user_id,
        match_id=match_id,
        amount=data.amount,
        due_date=ensure_utc(data.due_date),
    )
    await notification_service.notify(
        repo,
        data.user_id,
        NotificationType.PAYMENT_DUE,
        "Payment due",
        f"You owe {data.amount} for {match.title}",
        related_id=payment.id,
    )
    return payment


async def list_user_payments(repo: Repository, user: UserRecord) -> List[PaymentResponse]:
    return _with_effective_status(await repo.list_payments_by_user(user.id))


async def list_match_payments(
    repo: Repository, user: UserRecord, match_id: int
) -> List[PaymentResponse]:
    match = await get_match(repo, match_id)
    if not can_manage_match(user, match):
        raise ForbiddenError("Only the match creator or an admin can view all payments")
    return _with_effective_status(await repo.list_payments_by_match(match_id))


async def update_payment_status(
    repo: Repository, user: UserRecord, payment_id: int, status: PaymentStatus
) -> PaymentResponse:
    """
    The payer may mark their payment paid; the match creator or an admin may
    set any status. Entering "paid" stamps paid_at, leaving it clears it.

    Raises:
        NotFoundError: unknown payment
        ForbiddenError: caller may not make this change
    """
    payment = await repo.get_payment(payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    match = await get_match(repo, payment.match_id)

    if not can_manage_match(user, match):
        if payment.user_id != user.id:
            raise ForbiddenError("Not authorized to update this payment")
        if status != PaymentStatus.PAID:
            raise ForbiddenError("You can only mark your own payment as paid")

    paid_at = utcnow() if status == PaymentStatus.PAID else None
    if status == PaymentStatus.PAID and payment.status == PaymentStatus.PAID:
        paid_at = payment.paid_at
    updated = await repo.update_payment(payment_id, status=status, paid_at=paid_at)
    logger.info(f"Payment {payment_id} set to {status.value} by user {user.id}")
    return updated.model_copy(update={"status": effective_status(updated)})
