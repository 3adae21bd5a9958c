"""Shared test fixtures for all test modules."""

import contextlib
from datetime import UTC, datetime

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from payout_engine.core import database as db_module
from payout_engine.core.database import Base, get_db
from payout_engine.models.ledger_entry import LedgerEntryType, LedgerSource
from payout_engine.models.vendor import PayoutScheduleType, Vendor
from payout_engine.repositories.ledger_entry_repository import LedgerEntryRepository
from payout_engine.repositories.vendor_repository import VendorRepository
from payout_engine.schemas.ledger_entry import LedgerEntryCreate, OrderRef
from payout_engine.schemas.vendor import BankDetails, VendorCreate

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

# Wednesday; the next weekly anchor is Friday 2025-09-12 13:00 UTC
NOW = datetime(2025, 9, 10, 12, 0, tzinfo=UTC)
CUTOFF = datetime(2025, 9, 12, 13, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct service testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def make_vendor(db_session):
    """Factory creating a vendor, with verified bank details unless ``bank=False``."""

    def _make(
        vendor_id: str = "vendor-1",
        bank: bool = True,
        schedule: PayoutScheduleType = PayoutScheduleType.WEEKLY,
        **fields,
    ) -> Vendor:
        repo = VendorRepository(db_session)
        fields.setdefault("display_name", f"Vendor {vendor_id}")
        fields.setdefault("email", f"{vendor_id}@example.com")
        vendor = repo.create(VendorCreate(id=vendor_id, payout_schedule=schedule, **fields))
        if bank:
            vendor = repo.set_bank_details(
                vendor_id,
                BankDetails(
                    bank_name="Test Bank",
                    bank_code="058",
                    account_number="0123456789",
                    account_name=f"Vendor {vendor_id}",
                    is_verified=True,
                ),
            )
        return vendor

    return _make


@pytest.fixture
def add_credit(db_session):
    """Factory appending a ``credit_eligible`` entry with explicit timestamps."""

    def _add(
        vendor_id: str,
        amount_minor: int,
        created_at: datetime = datetime(2025, 9, 1, 10, 0, tzinfo=UTC),
        target_payout_at: datetime = datetime(2025, 9, 5, 13, 0, tzinfo=UTC),
        source: LedgerSource = LedgerSource.EVENT,
        event_id: str | None = None,
        order_id: str = "order-1",
    ):
        return LedgerEntryRepository(db_session).append(
            LedgerEntryCreate(
                vendor_id=vendor_id,
                amount_minor=amount_minor,
                type=LedgerEntryType.CREDIT_ELIGIBLE,
                source=source,
                currency="NGN",
                target_payout_at=target_payout_at,
                target_payout_key=target_payout_at.date().isoformat(),
                order_ref=OrderRef(id=order_id),
                event_id=event_id,
                created_at=created_at,
            )
        )

    return _add
