"""
Unit tests for match finances and payments.
"""

import pytest
import pytest_asyncio
from datetime import timedelta

from sportsync.database.models import FinanceType, NotificationType, PaymentStatus
from sportsync.models.schemas import (
    FinanceEntryCreate,
    MatchCreate,
    PaymentCreate,
)
from sportsync.services import finance_service, match_service
from sportsync.services.errors import ForbiddenError, NotFoundError, ValidationFailedError
from sportsync.utils.datetime_utils import utcnow


@pytest_asyncio.fixture
async def match(repo, users):
    """A match organised by org with alice taking part."""
    created = await match_service.create_match(
        repo,
        users["org"],
        MatchCreate(title="Cup Night", location="Astro 3", date=utcnow() + timedelta(days=4)),
    )
    await match_service.join_by_code(repo, users["alice"], created.invite_code)
    return created


def _entry(type, category, amount, description=None):
    return FinanceEntryCreate(type=type, category=category, amount=amount, description=description)


@pytest.mark.asyncio
async def test_add_finance_entry_permissions(repo, users, match):
    with pytest.raises(ForbiddenError):
        await finance_service.add_finance_entry(
            repo, users["alice"], match.id, _entry(FinanceType.EXPENSE, "pitch", 6000)
        )

    entry = await finance_service.add_finance_entry(
        repo, users["org"], match.id, _entry(FinanceType.EXPENSE, "  pitch ", 6000)
    )
    assert entry.category == "pitch"
    assert entry.created_by == users["org"].id

    by_admin = await finance_service.add_finance_entry(
        repo, users["admin"], match.id, _entry(FinanceType.REVENUE, "fees", 1000)
    )
    assert by_admin.type == FinanceType.REVENUE


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -100])
async def test_amount_must_be_positive(repo, users, match, amount):
    with pytest.raises(ValidationFailedError):
        await finance_service.add_finance_entry(
            repo, users["org"], match.id, _entry(FinanceType.EXPENSE, "balls", amount)
        )


@pytest.mark.asyncio
async def test_unknown_match(repo, users):
    with pytest.raises(NotFoundError):
        await finance_service.add_finance_entry(
            repo, users["org"], 404, _entry(FinanceType.EXPENSE, "pitch", 100)
        )


@pytest.mark.asyncio
async def test_only_participants_can_view_ledger(repo, users, match):
    await finance_service.add_finance_entry(
        repo, users["org"], match.id, _entry(FinanceType.EXPENSE, "pitch", 6000)
    )

    assert len(await finance_service.list_finance_entries(repo, users["alice"], match.id)) == 1
    assert len(await finance_service.list_finance_entries(repo, users["mod"], match.id)) == 1
    with pytest.raises(ForbiddenError):
        await finance_service.list_finance_entries(repo, users["bob"], match.id)


@pytest.mark.asyncio
async def test_financial_report(repo, users, match):
    org = users["org"]
    for entry in (
        _entry(FinanceType.EXPENSE, "pitch", 6000),
        _entry(FinanceType.EXPENSE, "bibs", 1500),
        _entry(FinanceType.REVENUE, "pitch", 2000),
        _entry(FinanceType.REVENUE, "fees", 8000),
    ):
        await finance_service.add_finance_entry(repo, org, match.id, entry)

    past_due = utcnow() - timedelta(days=1)
    future_due = utcnow() + timedelta(days=7)
    overdue = await finance_service.create_payment(
        repo, org, match.id, PaymentCreate(user_id=users["alice"].id, amount=700, due_date=past_due)
    )
    await finance_service.create_payment(
        repo, org, match.id, PaymentCreate(user_id=users["bob"].id, amount=500, due_date=future_due)
    )
    paid = await finance_service.create_payment(
        repo, org, match.id, PaymentCreate(user_id=users["mod"].id, amount=300)
    )
    await finance_service.update_payment_status(repo, users["mod"], paid.id, PaymentStatus.PAID)

    report = await finance_service.get_financial_report(repo, users["alice"], match.id)

    assert report.total_revenue == 10000
    assert report.total_expenses == 7500
    assert report.balance == 2500
    assert report.by_category["pitch"].revenue == 2000
    assert report.by_category["pitch"].expense == 6000
    assert report.by_category["fees"].expense == 0
    assert report.payments.overdue == 700
    assert report.payments.pending == 500
    assert report.payments.paid == 300
    assert report.payments.count == 3
    assert overdue.status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_empty_report(repo, users, match):
    report = await finance_service.get_financial_report(repo, users["org"], match.id)

    assert report.balance == 0
    assert report.by_category == {}
    assert report.payments.count == 0


@pytest.mark.asyncio
async def test_create_payment_notifies_payer(repo, users, match):
    alice = users["alice"]

    payment = await finance_service.create_payment(
        repo, users["org"], match.id, PaymentCreate(user_id=alice.id, amount=750)
    )

    assert payment.status == PaymentStatus.PENDING
    notifications = await repo.list_notifications_by_user(alice.id)
    assert notifications[0].type == NotificationType.PAYMENT_DUE
    assert notifications[0].related_id == payment.id


@pytest.mark.asyncio
async def test_create_payment_permissions_and_validation(repo, users, match):
    with pytest.raises(ForbiddenError):
        await finance_service.create_payment(
            repo, users["alice"], match.id, PaymentCreate(user_id=users["bob"].id, amount=100)
        )
    with pytest.raises(NotFoundError):
        await finance_service.create_payment(
            repo, users["org"], match.id, PaymentCreate(user_id=9999, amount=100)
        )
    with pytest.raises(ValidationFailedError):
        await finance_service.create_payment(
            repo, users["org"], match.id, PaymentCreate(user_id=users["bob"].id, amount=0)
        )


@pytest.mark.asyncio
async def test_overdue_is_derived_on_read(repo, users, match):
    alice = users["alice"]
    await finance_service.create_payment(
        repo,
        users["org"],
        match.id,
        PaymentCreate(user_id=alice.id, amount=400, due_date=utcnow() - timedelta(hours=1)),
    )

    payments = await finance_service.list_user_payments(repo, alice)

    assert [p.status for p in payments] == [PaymentStatus.OVERDUE]
    # Stored status is unchanged
    assert (await repo.list_payments_by_user(alice.id))[0].status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_payer_may_only_mark_paid(repo, users, match):
    alice = users["alice"]
    payment = await finance_service.create_payment(
        repo, users["org"], match.id, PaymentCreate(user_id=alice.id, amount=400)
    )

    with pytest.raises(ForbiddenError):
        await finance_service.update_payment_status(repo, alice, payment.id, PaymentStatus.OVERDUE)
    with pytest.raises(ForbiddenError):
        await finance_service.update_payment_status(repo, users["bob"], payment.id, PaymentStatus.PAID)

    paid = await finance_service.update_payment_status(repo, alice, payment.id, PaymentStatus.PAID)
    assert paid.status == PaymentStatus.PAID
    assert paid.paid_at is not None


@pytest.mark.asyncio
async def test_leaving_paid_clears_paid_at(repo, users, match):
    org, alice = users["org"], users["alice"]
    payment = await finance_service.create_payment(
        repo, org, match.id, PaymentCreate(user_id=alice.id, amount=400)
    )
    await finance_service.update_payment_status(repo, alice, payment.id, PaymentStatus.PAID)

    reopened = await finance_service.update_payment_status(repo, org, payment.id, PaymentStatus.PENDING)

    assert reopened.status == PaymentStatus.PENDING
    assert reopened.paid_at is None


@pytest.mark.asyncio
async def test_list_match_payments_restricted_to_managers(repo, users, match):
    await finance_service.create_payment(
        repo, users["org"], match.id, PaymentCreate(user_id=users["alice"].id, amount=400)
    )

    assert len(await finance_service.list_match_payments(repo, users["org"], match.id)) == 1
    with pytest.raises(ForbiddenError):
        await finance_service.list_match_payments(repo, users["alice"], match.id)
