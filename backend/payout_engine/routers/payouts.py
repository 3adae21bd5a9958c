"""Payout API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from payout_engine.core.auth import require_operator
from payout_engine.core.database import get_db
from payout_engine.core.errors import VendorNotFoundError
from payout_engine.models.ledger_entry import LedgerSource
from payout_engine.models.payout_batch import PayoutBatch, PayoutBatchKind
from payout_engine.repositories.payout_batch_repository import PayoutBatchRepository
from payout_engine.schemas.payout import (
    BackfillRequest,
    PayoutBatchResponse,
    PayoutRunRequest,
    PayoutRunResponse,
    ReconcileRequest,
    ReconciliationResponse,
    ReminderRequest,
    ReminderResponse,
    RetryRequest,
    RetryResponse,
    UpcomingPayoutResponse,
)
from payout_engine.services.ledger_service import LedgerService
from payout_engine.services.payout_notifier import PayoutNotifier
from payout_engine.services.payout_service import PayoutService
from payout_engine.services.reconciliation_service import ReconciliationService

router = APIRouter()


@router.post(
    "/run",
    response_model=PayoutRunResponse,
    summary="Run payout batch",
    responses={
        400: {"description": "Invalid batch parameters"},
        401: {"description": "Unauthorized – invalid or missing API key"},
    },
)
async def run_payout_batch(
    data: PayoutRunRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> PayoutRunResponse:
    """Pay every vendor with credits due by the next weekly cutoff."""
    service = PayoutService(db)
    try:
        result = service.run_payout_batch(
            test_mode=data.test_mode,
            dry_run=data.dry_run,
            source=data.source,
            batch_id=data.batch_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    if not result.dry_run and not result.replayed:
        await PayoutNotifier(db).notify_batch(result.batch_id, result.results)
    return result


@router.post(
    "/reminders",
    response_model=ReminderResponse,
    summary="Send payout reminders",
    responses={401: {"description": "Unauthorized – invalid or missing API key"}},
)
async def send_payout_reminders(
    data: ReminderRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> ReminderResponse:
    """Email vendors with money due but no verified bank details."""
    return await PayoutNotifier(db).send_payout_reminders(dry_run=data.dry_run)


@router.post(
    "/retry",
    response_model=RetryResponse,
    summary="Retry failed payouts",
    responses={401: {"description": "Unauthorized – invalid or missing API key"}},
)
async def retry_failed_payouts(
    data: RetryRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> RetryResponse:
    """Re-attempt vendors that failed in batches not yet retried."""
    service = PayoutService(db)
    result = service.retry_failed_payouts(dry_run=data.dry_run, test_mode=data.test_mode)
    if not result.dry_run and result.batch_id and result.results:
        await PayoutNotifier(db).notify_batch(result.batch_id, result.results)
    return result


@router.get(
    "/upcoming/{vendor_id}",
    response_model=UpcomingPayoutResponse,
    summary="Get upcoming payout",
    responses={
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def get_upcoming_payout(
    vendor_id: str,
    source: LedgerSource | None = None,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> UpcomingPayoutResponse:
    """Amount due at the next cutoff, with breakdowns and future credits."""
    try:
        return LedgerService(db).get_upcoming_payout(vendor_id, source=source)
    except VendorNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.post(
    "/reconcile",
    response_model=ReconciliationResponse,
    summary="Reconcile manual payout",
    responses={401: {"description": "Unauthorized – invalid or missing API key"}},
)
async def reconcile_manual_payout(
    data: ReconcileRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> ReconciliationResponse:
    """Settle the ledger for a payout that was made outside the batch path."""
    return ReconciliationService(db).reconcile_manual_payout(
        data.vendor_id, data.amount_minor, dry_run=data.dry_run, created_by=actor
    )


@router.post(
    "/backfill",
    response_model=ReconciliationResponse,
    summary="Backfill payout batch",
    responses={401: {"description": "Unauthorized – invalid or missing API key"}},
)
async def backfill_payout_batch(
    data: BackfillRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> ReconciliationResponse:
    """Write a missing one-vendor batch record."""
    return ReconciliationService(db).backfill_payout_batch(
        data.vendor_id,
        data.amount_minor,
        data.batch_id,
        confirm_overwrite=data.confirm_overwrite,
    )


@router.get(
    "/batches",
    response_model=list[PayoutBatchResponse],
    summary="List payout batches",
    responses={401: {"description": "Unauthorized – invalid or missing API key"}},
)
async def list_payout_batches(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    kind: PayoutBatchKind | None = None,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> list[PayoutBatch]:
    """List payout batches, newest first."""
    repo = PayoutBatchRepository(db)
    response.headers["X-Total-Count"] = str(repo.count(kind))
    return repo.get_all(skip=skip, limit=limit, kind=kind)


@router.get(
    "/batches/{batch_id}",
    response_model=PayoutBatchResponse,
    summary="Get payout batch",
    responses={
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Payout batch not found"},
    },
)
async def get_payout_batch(
    batch_id: str,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> PayoutBatch:
    """Get a payout batch by ID."""
    batch = PayoutBatchRepository(db).get_by_batch_id(batch_id)
    if not batch:
        raise HTTPException(status_code=404, detail="Payout batch not found")
    return batch
