"""PayoutBatch repository for data access."""

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from payout_engine.core.errors import BatchExistsError
from payout_engine.models.payout_batch import PayoutBatch, PayoutBatchKind
from payout_engine.models.shared import ensure_utc, utc_now


class PayoutBatchRepository:
    """Repository for PayoutBatch model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_batch_id(self, batch_id: str) -> PayoutBatch | None:
        return self.db.query(PayoutBatch).filter(PayoutBatch.batch_id == batch_id).first()

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        kind: PayoutBatchKind | None = None,
    ) -> list[PayoutBatch]:
        query = self.db.query(PayoutBatch)
        if kind:
            query = query.filter(PayoutBatch.kind == kind.value)
        return query.order_by(PayoutBatch.created_at.desc()).offset(skip).limit(limit).all()

    def count(self, kind: PayoutBatchKind | None = None) -> int:
        query = self.db.query(PayoutBatch)
        if kind:
            query = query.filter(PayoutBatch.kind == kind.value)
        return query.count()

    def _apply(self, batch: PayoutBatch, fields: dict[str, Any]) -> None:
        for key, value in fields.items():
            if isinstance(value, datetime):
                value = ensure_utc(value)
            setattr(batch, key, value)

    def create(self, batch_id: str, **fields: Any) -> PayoutBatch:
        """Insert a new batch; an existing id raises ``BatchExistsError``."""
        if self.get_by_batch_id(batch_id) is not None:
            raise BatchExistsError(batch_id)
        batch = PayoutBatch(batch_id=batch_id)
        fields.setdefault("created_at", utc_now())
        self._apply(batch, fields)
        self.db.add(batch)
        self.db.commit()
        self.db.refresh(batch)
        return batch

    def overwrite(self, batch_id: str, **fields: Any) -> tuple[PayoutBatch, bool]:
        """Insert or fully replace a batch. Returns (batch, replaced_existing)."""
        batch = self.get_by_batch_id(batch_id)
        replaced = batch is not None
        if batch is None:
            batch = PayoutBatch(batch_id=batch_id)
            self.db.add(batch)
        fields.setdefault("created_at", utc_now())
        fields.setdefault("retry_of", None)
        fields.setdefault("source", None)
        fields.setdefault("cutoff_at", None)
        self._apply(batch, fields)
        self.db.commit()
        self.db.refresh(batch)
        return batch, replaced

    def retried_batch_ids(self) -> set[str]:
        rows = (
            self.db.query(PayoutBatch.retry_of)
            .filter(PayoutBatch.retry_of.isnot(None))
            .distinct()
            .all()
        )
        retried: set[str] = set()
        for row in rows:
            retried.update(part for part in str(row.retry_of).split(",") if part)
        return retried

    def get_unretried_with_failures(self) -> list[PayoutBatch]:
        """Scheduled and retry batches with failed vendors that no retry has covered yet.

        Ordered oldest first so later results for the same vendor win.
        """
        retried = self.retried_batch_ids()
        query = self.db.query(PayoutBatch).filter(
            PayoutBatch.failed > 0,
            PayoutBatch.kind.in_([PayoutBatchKind.SCHEDULED.value, PayoutBatchKind.RETRY.value]),
        )
        if retried:
            query = query.filter(PayoutBatch.batch_id.notin_(retried))
        return query.order_by(PayoutBatch.created_at.asc()).all()
