"""Vendor API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from payout_engine.core.auth import require_operator
from payout_engine.core.database import get_db
from payout_engine.models.vendor import Vendor
from payout_engine.repositories.vendor_repository import VendorRepository
from payout_engine.schemas.vendor import (
    BankDetails,
    PayoutScheduleUpdate,
    VendorCreate,
    VendorResponse,
    VendorUpdate,
)

router = APIRouter()


@router.post(
    "/",
    response_model=VendorResponse,
    status_code=201,
    summary="Create vendor",
    responses={
        400: {"description": "Vendor already exists"},
        401: {"description": "Unauthorized – invalid or missing API key"},
        422: {"description": "Validation error"},
    },
)
async def create_vendor(
    data: VendorCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> Vendor:
    repo = VendorRepository(db)
    if repo.get_by_id(data.id):
        raise HTTPException(status_code=400, detail=f"Vendor {data.id} already exists")
    return repo.create(data)


@router.get(
    "/",
    response_model=list[VendorResponse],
    summary="List vendors",
    responses={401: {"description": "Unauthorized – invalid or missing API key"}},
)
async def list_vendors(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> list[Vendor]:
    repo = VendorRepository(db)
    response.headers["X-Total-Count"] = str(repo.count())
    return repo.get_all(skip=skip, limit=limit)


@router.get(
    "/{vendor_id}",
    response_model=VendorResponse,
    summary="Get vendor",
    responses={
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def get_vendor(
    vendor_id: str,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> Vendor:
    vendor = VendorRepository(db).get_by_id(vendor_id)
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return vendor


@router.put(
    "/{vendor_id}",
    response_model=VendorResponse,
    summary="Update vendor",
    responses={
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def update_vendor(
    vendor_id: str,
    data: VendorUpdate,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> Vendor:
    vendor = VendorRepository(db).update(vendor_id, data)
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return vendor


@router.put(
    "/{vendor_id}/bank",
    response_model=VendorResponse,
    summary="Set bank details",
    responses={
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def set_bank_details(
    vendor_id: str,
    data: BankDetails,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> Vendor:
    """Replace the vendor's payout destination."""
    vendor = VendorRepository(db).set_bank_details(vendor_id, data)
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return vendor


@router.put(
    "/{vendor_id}/payout-schedule",
    response_model=VendorResponse,
    summary="Set payout schedule",
    responses={
        401: {"description": "Unauthorized – invalid or missing API key"},
        404: {"description": "Vendor not found"},
    },
)
async def set_payout_schedule(
    vendor_id: str,
    data: PayoutScheduleUpdate,
    db: Session = Depends(get_db),
    actor: str = Depends(require_operator),
) -> Vendor:
    """Change the schedule used for credits recorded from now on."""
    vendor = VendorRepository(db).set_payout_schedule(vendor_id, data.schedule)
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return vendor
