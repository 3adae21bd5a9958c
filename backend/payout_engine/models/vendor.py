"""Vendor model: local projection of the vendor profile used by payouts."""

from enum import Enum

from sqlalchemy import BigInteger, Boolean, Column, DateTime, String, func

from payout_engine.core.database import Base


class PayoutScheduleType(str, Enum):
    WEEKLY = "weekly"
    FIVE_DAYS = "5days"
    THREE_DAYS = "3days"
    TWO_DAYS = "2days"
    ONE_DAY = "1day"


class Vendor(Base):
    """Vendor (brand or event organizer) that receives payouts."""

    __tablename__ = "vendors"

    id = Column(String(128), primary_key=True)
    display_name = Column(String(255), nullable=True)
    username = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    currency = Column(String(3), nullable=False, default="NGN")

    bank_name = Column(String(255), nullable=True)
    bank_code = Column(String(32), nullable=True)
    account_number = Column(String(32), nullable=True)
    account_name = Column(String(255), nullable=True)
    bank_verified = Column(Boolean, nullable=False, default=False)
    transfer_recipient_code = Column(String(128), nullable=True)

    payout_schedule = Column(String(10), nullable=False, default=PayoutScheduleType.WEEKLY.value)

    # Derived from the ledger; never used as the source of truth
    eligible_balance_minor = Column(BigInteger, nullable=False, default=0)
    on_hold_minor = Column(BigInteger, nullable=False, default=0)
    balance_updated_at = Column(DateTime(timezone=True), nullable=True)
    last_payout_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def name(self) -> str:
        return str(self.display_name or self.username or "Unknown Vendor")

    @property
    def has_payout_destination(self) -> bool:
        return bool(self.bank_verified and self.account_number and self.bank_code)
