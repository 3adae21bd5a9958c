"""Ledger API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from payout_engine.core.auth import require_operator
from payout_engine.core.database import get_db
from payout_engine.core.errors import VendorNotFoundError
from payout_engine.models.ledger_entry import LedgerEntry, LedgerEntryType, LedgerSource
from payout_engine.schemas.ledger_entry import (
    CreditCreate,
    HoldCreate,
    LedgerEntryResponse,
    LedgerFilter,
    RefundCreate,
    WalletSummaryResponse,
)
from payout_engine.services.ledger_service import LedgerService

router = APIRouter()


@router.post(
    "/credits",
    response_model=LedgerEntryResponse,
    status_code=201,
    summary="Record credit",
    responses={
        400: {"description": "Invalid amount or currency mismatch"},
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def record_credit(
    data: CreditCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> LedgerEntry:
    """Record money owed to a vendor for a paid order."""
    service = LedgerService(db)
    try:
        return service.record_credit(
            vendor_id=data.vendor_id,
            amount_minor=data.amount_minor,
            order_ref=data.order_ref,
            source=data.source,
            currency=data.currency,
            event_id=data.event_id,
            note=data.note,
        )
    except VendorNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post(
    "/holds",
    response_model=LedgerEntryResponse,
    status_code=201,
    summary="Place hold",
    responses={
        400: {"description": "Invalid amount"},
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def record_hold(
    data: HoldCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> LedgerEntry:
    service = LedgerService(db)
    try:
        return service.record_hold(
            data.vendor_id,
            data.amount_minor,
            source=data.source,
            order_ref=data.order_ref,
            note=data.note,
            created_by=actor,
        )
    except VendorNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post(
    "/releases",
    response_model=LedgerEntryResponse,
    status_code=201,
    summary="Release hold",
    responses={
        400: {"description": "Release exceeds the amount on hold"},
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def release_hold(
    data: HoldCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> LedgerEntry:
    service = LedgerService(db)
    try:
        return service.release_hold(
            data.vendor_id,
            data.amount_minor,
            source=data.source,
            order_ref=data.order_ref,
            note=data.note,
            created_by=actor,
        )
    except VendorNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post(
    "/refunds",
    response_model=LedgerEntryResponse,
    status_code=201,
    summary="Record refund",
    responses={
        400: {"description": "Invalid amount"},
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def record_refund(
    data: RefundCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> LedgerEntry:
    service = LedgerService(db)
    try:
        return service.record_refund(
            data.vendor_id,
            data.amount_minor,
            source=data.source,
            order_ref=data.order_ref,
            note=data.note,
            created_by=actor,
        )
    except VendorNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get(
    "/{vendor_id}",
    response_model=list[LedgerEntryResponse],
    summary="List ledger entries",
    responses={
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def list_ledger_entries(
    vendor_id: str,
    type: list[LedgerEntryType] | None = Query(default=None),
    source: LedgerSource | None = None,
    settled: bool | None = None,
    payout_batch_id: str | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> list[LedgerEntry]:
    """List a vendor's ledger entries, newest first."""
    service = LedgerService(db)
    if not service.vendor_repo.get_vendor(vendor_id):
        raise HTTPException(status_code=404, detail="Vendor not found")
    return service.list_entries(
        vendor_id,
        LedgerFilter(
            types=type,
            source=source,
            settled=settled,
            payout_batch_id=payout_batch_id,
            limit=limit,
        ),
    )


@router.get(
    "/{vendor_id}/summary",
    response_model=WalletSummaryResponse,
    summary="Get wallet summary",
    responses={
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def get_wallet_summary(
    vendor_id: str,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> WalletSummaryResponse:
    """Balance projection and earnings split by source."""
    try:
        return LedgerService(db).get_wallet_summary(vendor_id)
    except VendorNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
