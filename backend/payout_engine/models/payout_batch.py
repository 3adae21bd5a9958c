"""PayoutBatch model: one auditable record per disbursement run."""

from enum import Enum

from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, Integer, String, Text

from payout_engine.core.database import Base
from payout_engine.models.shared import utc_now


class PayoutBatchStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class PayoutBatchKind(str, Enum):
    SCHEDULED = "scheduled"
    RETRY = "retry"
    MANUAL = "manual"
    BACKFILL = "backfill"


class VendorPayoutStatus(str, Enum):
    PAID = "paid"
    FAILED = "failed"
    SKIPPED = "skipped"
    PENDING = "pending"


class PayoutBatch(Base):
    """PayoutBatch model - immutable summary of a payout run."""

    __tablename__ = "payout_batches"

    batch_id = Column(String(128), primary_key=True)
    kind = Column(String(20), nullable=False, default=PayoutBatchKind.SCHEDULED.value, index=True)
    source = Column(String(10), nullable=True)
    status = Column(String(20), nullable=False, default=PayoutBatchStatus.COMPLETED.value)
    test_mode = Column(Boolean, nullable=False, default=False)
    # Comma-separated ids of the batches whose failures this batch re-attempted
    retry_of = Column(Text, nullable=True)

    total_vendors = Column(Integer, nullable=False, default=0)
    successful = Column(Integer, nullable=False, default=0)
    failed = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    total_amount_minor = Column(BigInteger, nullable=False, default=0)
    currency = Column(String(3), nullable=True)
    cutoff_at = Column(DateTime(timezone=True), nullable=True)

    results = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
