"""Match ledger, financial report and payment route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from sportsync.api.routes import service_error_response, internal_error
from sportsync.api.auth_dependencies import get_repository, get_current_user
from sportsync.models.schemas import (
    UserRecord,
    FinanceEntryCreate,
    FinanceEntryResponse,
    FinancialReportResponse,
    PaymentCreate,
    PaymentUpdate,
    PaymentResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import finance_service
from sportsync.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches/{match_id}/finances", response_model=List[FinanceEntryResponse])
async def get_finances(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Ledger lines of a match. Participants, creator and admins."""
    try:
        return await finance_service.list_finance_entries(repo, current_user, match_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching finances", e)


@router.post("/api/matches/{match_id}/finances", response_model=FinanceEntryResponse)
async def add_finance_entry(
    match_id: int,
    payload: FinanceEntryCreate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Add an expense or revenue line. Creator or admin."""
    try:
        return await finance_service.add_finance_entry(repo, current_user, match_id, payload)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("adding finance entry", e)


@router.get("/api/matches/{match_id}/financial-report", response_model=FinancialReportResponse)
async def get_financial_report(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Totals, balance, per-category breakdown and payment summary."""
    try:
        return await finance_service.get_financial_report(repo, current_user, match_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("building financial report", e)


@router.get("/api/matches/{match_id}/payments", response_model=List[PaymentResponse])
async def get_match_payments(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    try:
        return await finance_service.list_match_payments(repo, current_user, match_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching payments", e)


@router.post("/api/matches/{match_id}/payments", response_model=PaymentResponse)
async def create_payment(
    match_id: int,
    payload: PaymentCreate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Charge a user for a match. The payer is notified."""
    try:
        return await finance_service.create_payment(repo, current_user, match_id, payload)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("creating payment", e)


@router.put("/api/payments/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: int,
    payload: PaymentUpdate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """
    The payer may mark their payment paid; the match creator or an admin may
    set any status.
    """
    try:
        return await finance_service.update_payment_status(
            repo, current_user, payment_id, payload.status
        )
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("updating payment", e)
