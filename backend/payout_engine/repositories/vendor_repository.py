"""Vendor repository for data access."""

from datetime import datetime

from sqlalchemy.orm import Session

from payout_engine.models.shared import ensure_utc, utc_now
from payout_engine.models.vendor import PayoutScheduleType, Vendor
from payout_engine.schemas.vendor import BankDetails, VendorCreate, VendorUpdate


class VendorRepository:
    """Repository for Vendor model; also serves as the vendor profile lookup."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, vendor_id: str) -> Vendor | None:
        return self.db.query(Vendor).filter(Vendor.id == vendor_id).first()

    get_vendor = get_by_id

    def get_many(self, vendor_ids: list[str]) -> dict[str, Vendor]:
        if not vendor_ids:
            return {}
        vendors = self.db.query(Vendor).filter(Vendor.id.in_(vendor_ids)).all()
        return {str(v.id): v for v in vendors}

    def get_all(self, skip: int = 0, limit: int = 100) -> list[Vendor]:
        return self.db.query(Vendor).order_by(Vendor.id.asc()).offset(skip).limit(limit).all()

    def count(self) -> int:
        return self.db.query(Vendor).count()

    def create(self, data: VendorCreate) -> Vendor:
        vendor = Vendor(
            id=data.id,
            display_name=data.display_name,
            username=data.username,
            email=data.email,
            currency=data.currency.upper(),
            payout_schedule=data.payout_schedule.value,
        )
        self.db.add(vendor)
        self.db.commit()
        self.db.refresh(vendor)
        return vendor

    def update(self, vendor_id: str, data: VendorUpdate) -> Vendor | None:
        vendor = self.get_by_id(vendor_id)
        if not vendor:
            return None
        update_data = data.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            setattr(vendor, key, value)
        self.db.commit()
        self.db.refresh(vendor)
        return vendor

    def set_bank_details(self, vendor_id: str, bank: BankDetails) -> Vendor | None:
        vendor = self.get_by_id(vendor_id)
        if not vendor:
            return None
        vendor.bank_name = bank.bank_name  # type: ignore[assignment]
        vendor.bank_code = bank.bank_code  # type: ignore[assignment]
        vendor.account_number = bank.account_number  # type: ignore[assignment]
        vendor.account_name = bank.account_name  # type: ignore[assignment]
        vendor.bank_verified = bank.is_verified  # type: ignore[assignment]
        vendor.transfer_recipient_code = bank.transfer_recipient_code  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(vendor)
        return vendor

    def set_transfer_recipient(self, vendor_id: str, recipient_code: str) -> None:
        vendor = self.get_by_id(vendor_id)
        if vendor:
            vendor.transfer_recipient_code = recipient_code  # type: ignore[assignment]
            self.db.commit()

    def set_payout_schedule(self, vendor_id: str, schedule: PayoutScheduleType) -> Vendor | None:
        vendor = self.get_by_id(vendor_id)
        if not vendor:
            return None
        vendor.payout_schedule = schedule.value  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(vendor)
        return vendor

    def update_balance_projection(
        self,
        vendor_id: str,
        eligible_balance_minor: int,
        on_hold_minor: int,
        paid_at: datetime | None = None,
    ) -> None:
        """Store the derived balance figures. Missing vendors are ignored."""
        vendor = self.get_by_id(vendor_id)
        if not vendor:
            return
        vendor.eligible_balance_minor = eligible_balance_minor  # type: ignore[assignment]
        vendor.on_hold_minor = on_hold_minor  # type: ignore[assignment]
        vendor.balance_updated_at = utc_now()  # type: ignore[assignment]
        if paid_at is not None:
            vendor.last_payout_at = ensure_utc(paid_at)  # type: ignore[assignment]
        self.db.commit()
