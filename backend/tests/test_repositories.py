"""Tests for ledger, payout batch and vendor repositories."""

import uuid
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from payout_engine.core.errors import BatchExistsError
from payout_engine.models.ledger_entry import LedgerEntryType, LedgerSource
from payout_engine.models.payout_batch import PayoutBatchKind
from payout_engine.models.shared import UUIDType, ensure_utc
from payout_engine.repositories.ledger_entry_repository import LedgerEntryRepository
from payout_engine.repositories.payout_batch_repository import PayoutBatchRepository
from payout_engine.repositories.vendor_repository import VendorRepository
from payout_engine.schemas.ledger_entry import LedgerEntryCreate
from tests.conftest import CUTOFF, NOW


@pytest.fixture
def ledger_repo(db_session):
    return LedgerEntryRepository(db_session)


@pytest.fixture
def batch_repo(db_session):
    return PayoutBatchRepository(db_session)


class TestLedgerEntryRepository:
    def test_append_normalizes_timestamps(self, ledger_repo, make_vendor):
        make_vendor("vendor-1")
        entry = ledger_repo.append(
            LedgerEntryCreate(
                vendor_id="vendor-1",
                amount_minor=100,
                type=LedgerEntryType.CREDIT_ELIGIBLE,
                currency="ngn",
                target_payout_at=datetime(2025, 9, 12, 13, 0),
            )
        )
        assert entry.currency == "NGN"
        assert ensure_utc(entry.target_payout_at) == CUTOFF
        assert entry.created_at is not None
        assert entry.entry_type is LedgerEntryType.CREDIT_ELIGIBLE
        assert entry.is_settled is False

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            LedgerEntryCreate(
                vendor_id="vendor-1",
                amount_minor=100,
                type="credit_bonus",
                currency="NGN",
                target_payout_at=CUTOFF,
            )

    def test_zero_amount_rejected(self):
        with pytest.raises(ValidationError):
            LedgerEntryCreate(
                vendor_id="vendor-1",
                amount_minor=0,
                type=LedgerEntryType.DEBIT_HOLD,
                currency="NGN",
                target_payout_at=CUTOFF,
            )

    def test_due_totals_by_vendor(self, ledger_repo, add_credit):
        add_credit("vendor-b", 300)
        add_credit("vendor-a", 100)
        add_credit("vendor-a", 200, source=LedgerSource.STORE)
        add_credit("vendor-a", 999, target_payout_at=datetime(2025, 9, 19, 13, 0, tzinfo=UTC))

        totals = ledger_repo.due_totals_by_vendor(CUTOFF)
        assert totals == [("vendor-a", "NGN", 300, 2), ("vendor-b", "NGN", 300, 1)]

        store = ledger_repo.due_totals_by_vendor(CUTOFF, LedgerSource.STORE)
        assert store == [("vendor-a", "NGN", 200, 1)]

        assert ledger_repo.due_total("vendor-a", CUTOFF) == 300
        assert ledger_repo.due_total("vendor-z", CUTOFF) == 0

    def test_cutoff_is_inclusive(self, ledger_repo, add_credit):
        add_credit("vendor-a", 100, target_payout_at=CUTOFF)
        assert ledger_repo.due_total("vendor-a", CUTOFF) == 100

    def test_unsettled_credits_tie_break(self, ledger_repo, add_credit):
        same_time = datetime(2025, 9, 1, tzinfo=UTC)
        entries = [add_credit("vendor-a", 100 * n, created_at=same_time) for n in range(1, 6)]

        ordered = ledger_repo.unsettled_credits("vendor-a")
        assert [e.id for e in ordered] == [e.id for e in entries]
        assert [e.seq for e in ordered] == sorted(e.seq for e in entries)

        newest_first = ledger_repo.query("vendor-a")
        assert [e.id for e in newest_first] == [e.id for e in reversed(entries)]

    def test_totals_by_type_separates_remainders(self, ledger_repo, add_credit):
        parent = add_credit("vendor-a", 1000)
        ledger_repo.append(
            LedgerEntryCreate(
                vendor_id="vendor-a",
                amount_minor=400,
                type=LedgerEntryType.CREDIT_ELIGIBLE,
                currency="NGN",
                target_payout_at=CUTOFF,
                split_from_entry_id=parent.id,
            )
        )

        totals = ledger_repo.totals_by_type("vendor-a")
        assert totals["credit_eligible"] == 1000
        assert totals["remainder"] == 400
        assert totals["debit_payout"] == 0
        assert ledger_repo.unsettled_credit_total("vendor-a") == 1400

    def test_settled_vendor_ids(self, ledger_repo):
        ledger_repo.append(
            LedgerEntryCreate(
                vendor_id="vendor-a",
                amount_minor=100,
                type=LedgerEntryType.DEBIT_PAYOUT,
                currency="NGN",
                target_payout_at=NOW,
                payout_batch_id="payout_b1",
                paid_at=NOW,
            )
        )
        assert ledger_repo.settled_vendor_ids("payout_b1") == {"vendor-a"}
        assert ledger_repo.settled_vendor_ids("payout_b2") == set()

    def test_vendor_currency(self, ledger_repo, add_credit):
        assert ledger_repo.vendor_currency("vendor-a") is None
        add_credit("vendor-a", 100)
        assert ledger_repo.vendor_currency("vendor-a") == "NGN"


class TestPayoutBatchRepository:
    def test_create_and_duplicate(self, batch_repo):
        batch = batch_repo.create("payout_b1", status="completed", created_at=NOW)
        assert batch.kind == PayoutBatchKind.SCHEDULED.value
        assert ensure_utc(batch.created_at) == NOW
        assert batch.results == []

        with pytest.raises(BatchExistsError, match="payout_b1"):
            batch_repo.create("payout_b1")

    def test_overwrite(self, batch_repo):
        _, replaced = batch_repo.overwrite("payout_b1", status="completed", total_amount_minor=5)
        assert replaced is False

        batch, replaced = batch_repo.overwrite(
            "payout_b1", status="partial", total_amount_minor=9, kind="backfill"
        )
        assert replaced is True
        assert batch.total_amount_minor == 9
        assert batch.kind == "backfill"
        assert batch_repo.count() == 1

    def test_list_and_count_by_kind(self, batch_repo):
        batch_repo.create("b1", kind="scheduled", created_at=datetime(2025, 9, 5, tzinfo=UTC))
        batch_repo.create("b2", kind="manual", created_at=datetime(2025, 9, 6, tzinfo=UTC))
        batch_repo.create("b3", kind="scheduled", created_at=datetime(2025, 9, 12, tzinfo=UTC))

        assert [b.batch_id for b in batch_repo.get_all()] == ["b3", "b2", "b1"]
        assert [b.batch_id for b in batch_repo.get_all(kind=PayoutBatchKind.SCHEDULED)] == [
            "b3",
            "b1",
        ]
        assert batch_repo.count(PayoutBatchKind.MANUAL) == 1
        assert [b.batch_id for b in batch_repo.get_all(skip=1, limit=1)] == ["b2"]

    def test_unretried_with_failures(self, batch_repo):
        batch_repo.create("b1", failed=1, created_at=datetime(2025, 9, 5, tzinfo=UTC))
        batch_repo.create("b2", failed=0, created_at=datetime(2025, 9, 6, tzinfo=UTC))
        batch_repo.create("b3", failed=2, created_at=datetime(2025, 9, 7, tzinfo=UTC))
        batch_repo.create("m1", kind="manual", failed=1)

        assert [b.batch_id for b in batch_repo.get_unretried_with_failures()] == ["b1", "b3"]

        batch_repo.create("r1", kind="retry", retry_of="b1,b3", failed=0)
        assert batch_repo.retried_batch_ids() == {"b1", "b3"}
        assert batch_repo.get_unretried_with_failures() == []


class TestVendorRepository:
    def test_get_many(self, db_session, make_vendor):
        make_vendor("a")
        make_vendor("b")
        repo = VendorRepository(db_session)
        assert set(repo.get_many(["a", "b", "ghost"])) == {"a", "b"}
        assert repo.get_many([]) == {}

    def test_payout_destination(self, make_vendor):
        assert make_vendor("a").has_payout_destination is True
        assert make_vendor("b", bank=False).has_payout_destination is False

    def test_name_fallbacks(self, make_vendor):
        assert make_vendor("a", display_name=None, username="abeats").name == "abeats"
        assert make_vendor("b", display_name=None).name == "Unknown Vendor"

    def test_update_balance_projection(self, db_session, make_vendor):
        make_vendor("a")
        repo = VendorRepository(db_session)
        repo.update_balance_projection("a", 700, 300, paid_at=NOW)
        vendor = repo.get_by_id("a")
        assert vendor.eligible_balance_minor == 700
        assert vendor.on_hold_minor == 300
        assert ensure_utc(vendor.last_payout_at) == NOW
        # Missing vendors are ignored
        repo.update_balance_projection("ghost", 1, 1)

    def test_set_transfer_recipient(self, db_session, make_vendor):
        make_vendor("a")
        repo = VendorRepository(db_session)
        repo.set_transfer_recipient("a", "RCP_1")
        assert repo.get_by_id("a").transfer_recipient_code == "RCP_1"


class TestUUIDType:
    def test_bind_and_result(self):
        value = uuid.uuid4()
        col = UUIDType()
        assert col.process_bind_param(value, None) == str(value)
        assert col.process_bind_param(str(value), None) == str(value)
        assert col.process_bind_param(None, None) is None
        assert col.process_result_value(str(value), None) == value
        assert col.process_result_value(None, None) is None
