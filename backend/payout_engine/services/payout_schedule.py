"""Weekly payout window calculation and payout schedule fees."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from payout_engine.core.config import settings
from payout_engine.models.ledger_entry import LedgerEntry
from payout_engine.models.shared import ensure_utc
from payout_engine.models.vendor import PayoutScheduleType


@dataclass(frozen=True)
class PayoutScheduleConfig:
    type: PayoutScheduleType
    fee_percent: Decimal
    fee_cap_minor: int
    timeline_days: int
    label: str


PAYOUT_SCHEDULE_CONFIGS: dict[PayoutScheduleType, PayoutScheduleConfig] = {
    PayoutScheduleType.WEEKLY: PayoutScheduleConfig(
        PayoutScheduleType.WEEKLY, Decimal("0"), 0, 7, "Standard"
    ),
    PayoutScheduleType.FIVE_DAYS: PayoutScheduleConfig(
        PayoutScheduleType.FIVE_DAYS, Decimal("1"), 250000, 5, "Early"
    ),
    PayoutScheduleType.THREE_DAYS: PayoutScheduleConfig(
        PayoutScheduleType.THREE_DAYS, Decimal("2.5"), 400000, 3, "Priority"
    ),
    PayoutScheduleType.TWO_DAYS: PayoutScheduleConfig(
        PayoutScheduleType.TWO_DAYS, Decimal("4"), 500000, 2, "Fast"
    ),
    PayoutScheduleType.ONE_DAY: PayoutScheduleConfig(
        PayoutScheduleType.ONE_DAY, Decimal("8"), 500000, 1, "Instant"
    ),
}


@dataclass
class PayoutFeeCalculation:
    schedule: PayoutScheduleType
    estimated_earnings_minor: int
    fee_minor: int
    net_minor: int
    fee_percent: Decimal
    fee_cap_minor: int


def next_payout_cutoff(
    now: datetime,
    weekday: int | None = None,
    hour: int | None = None,
    minute: int | None = None,
) -> datetime:
    """Next weekly payout anchor strictly after ``now``.

    The anchor is ``weekday`` (``datetime.weekday()`` numbering) at
    ``hour:minute`` UTC. A ``now`` that falls exactly on an anchor returns the
    following week's anchor. Naive datetimes are read as UTC.
    """
    weekday = settings.PAYOUT_WEEKDAY if weekday is None else weekday
    hour = settings.PAYOUT_HOUR_UTC if hour is None else hour
    minute = settings.PAYOUT_MINUTE if minute is None else minute
    if not 0 <= weekday <= 6:
        raise ValueError(f"Invalid payout weekday: {weekday}")

    now = ensure_utc(now)
    days_ahead = (weekday - now.weekday()) % 7
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0) + timedelta(
        days=days_ahead
    )
    if candidate <= now:
        candidate += timedelta(weeks=1)
    return candidate


def is_due(entry: LedgerEntry, cutoff: datetime) -> bool:
    """Whether a credit belongs to the cycle closing at ``cutoff``."""
    return ensure_utc(entry.target_payout_at) <= ensure_utc(cutoff)  # type: ignore[arg-type]


def payout_key(target: datetime) -> str:
    """Display key of a payout instant, e.g. ``"2025-09-12"``."""
    return ensure_utc(target).date().isoformat()


def get_payout_schedule_config(schedule: PayoutScheduleType | str) -> PayoutScheduleConfig:
    return PAYOUT_SCHEDULE_CONFIGS[PayoutScheduleType(schedule)]


def target_payout_for(
    created_at: datetime,
    schedule: PayoutScheduleType | str = PayoutScheduleType.WEEKLY,
) -> datetime:
    """Earliest cutoff at or after which a credit created at ``created_at`` is payable.

    Weekly credits wait for the next weekly anchor. Faster schedules become
    payable ``timeline_days`` after creation, so any batch whose cutoff lies at
    or beyond that instant includes them.
    """
    config = get_payout_schedule_config(schedule)
    created_at = ensure_utc(created_at)
    if config.type == PayoutScheduleType.WEEKLY:
        return next_payout_cutoff(created_at)
    return created_at + timedelta(days=config.timeline_days)


def calculate_payout_fee(
    earnings_minor: int, schedule: PayoutScheduleType | str
) -> PayoutFeeCalculation:
    """Fee for an earnings amount under a payout schedule (rounded half up, capped)."""
    config = get_payout_schedule_config(schedule)
    percentage_fee = int(
        (Decimal(earnings_minor) * config.fee_percent / Decimal("100")).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )
    fee = min(percentage_fee, config.fee_cap_minor) if config.fee_cap_minor > 0 else percentage_fee
    return PayoutFeeCalculation(
        schedule=config.type,
        estimated_earnings_minor=earnings_minor,
        fee_minor=fee,
        net_minor=earnings_minor - fee,
        fee_percent=config.fee_percent,
        fee_cap_minor=config.fee_cap_minor,
    )
