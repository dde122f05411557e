"""Statistics Aggregator - read-only rollups over the submission set.

All figures come from one SELECT (a single snapshot of the rows) and are
computed in Python. The read runs in a worker thread with its own session and
can be bounded by a timeout; aborting is always safe because nothing is
written.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Iterable, NamedTuple, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.submissions.errors import AggregationTimeout, PersistenceFailure
from ..domain.submissions.status import SubmissionStatus
from ..domain.submissions.validator import calculate_age
from ..models.submission import Submission, ensure_utc
from .registry import utc_now

logger = logging.getLogger(__name__)

# (label, min_age, max_age); max_age None means open-ended
AGE_BUCKETS = (
    ("16-17", 16, 17),
    ("18-24", 18, 24),
    ("25-34", 25, 34),
    ("35-44", 35, 44),
    ("45-59", 45, 59),
    ("60+", 60, None),
)

GROUP_FIELDS = ("state", "course_name")

_CENTS = Decimal("0.01")


class SnapshotRow(NamedTuple):
    status: str
    kind: str
    state: Optional[str]
    course_name: Optional[str]
    investment_amount: Optional[Decimal]
    created_at: datetime
    date_of_birth: date


@dataclass
class InvestmentSummary:
    count: int = 0
    total: Decimal = Decimal("0")

    @property
    def average(self) -> Decimal:
        if not self.count:
            return Decimal("0.00")
        return (self.total / self.count).quantize(_CENTS, rounding=ROUND_HALF_UP)

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "sum": str(self.total.quantize(_CENTS)),
            "average": str(self.average),
        }


@dataclass
class GroupSummary:
    group: str
    count: int = 0
    investment_sum: Decimal = Decimal("0")
    pending: int = 0
    approved: int = 0
    rejected: int = 0

    @property
    def approval_rate(self) -> float:
        return _rate(self.approved, self.count)

    def to_dict(self) -> dict[str, Any]:
        return {
            "group": self.group,
            "count": self.count,
            "investment_sum": str(self.investment_sum.quantize(_CENTS)),
            "pending": self.pending,
            "approved": self.approved,
            "rejected": self.rejected,
            "approval_rate": self.approval_rate,
        }


@dataclass
class SubmissionStatistics:
    """Aggregates over one snapshot.

    ``by_status`` always lists every status (zero counts included), so its
    values sum to ``total``.
    """
    total: int
    by_status: dict[str, int]
    investment_by_status: dict[str, InvestmentSummary]
    recent_window_days: int
    recent_count: int
    created_this_month: int
    approval_rate: float
    top_groups: dict[str, list[GroupSummary]]
    age_distribution: list[dict[str, Any]]
    generated_at: datetime
    by_kind: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "by_status": dict(self.by_status),
            "by_kind": dict(self.by_kind),
            "investment_by_status": {
                status: summary.to_dict()
                for status, summary in self.investment_by_status.items()
            },
            "recent_window_days": self.recent_window_days,
            "recent_count": self.recent_count,
            "created_this_month": self.created_this_month,
            "approval_rate": self.approval_rate,
            "top_groups": {
                name: [group.to_dict() for group in groups]
                for name, groups in self.top_groups.items()
            },
            "age_distribution": [dict(bucket) for bucket in self.age_distribution],
            "generated_at": self.generated_at.isoformat(),
        }


def _rate(part: int, whole: int) -> float:
    """Percentage with 2 decimals; 0.0 for an empty set."""
    if not whole:
        return 0.0
    return round(part * 100.0 / whole, 2)


def _value(raw: Any) -> str:
    return getattr(raw, "value", raw)


def age_bucket(age: int) -> Optional[str]:
    """Label of the histogram bucket for an age, or None if outside all buckets.

    Example:
        >>> age_bucket(17), age_bucket(60), age_bucket(12)
        ('16-17', '60+', None)
    """
    for label, low, high in AGE_BUCKETS:
        if age >= low and (high is None or age <= high):
            return label
    return None


def compute_statistics(
    rows: Iterable[SnapshotRow],
    now: datetime,
    recent_window_days: int = 7,
    top_k: int = 5,
    group_fields: Sequence[str] = GROUP_FIELDS,
) -> SubmissionStatistics:
    """Aggregate a snapshot of submission rows.

    Args:
        rows: Snapshot rows (see SnapshotRow)
        now: Reference time for the recent window, month and ages
        recent_window_days: Trailing window for recent_count
        top_k: Number of groups kept per group field
        group_fields: Categorical fields to group by

    Returns:
        SubmissionStatistics
    """
    now = ensure_utc(now)
    today = now.date()
    window_start = now - timedelta(days=recent_window_days)

    by_status = {status.value: 0 for status in SubmissionStatus}
    by_kind: Counter = Counter()
    investment = {status.value: InvestmentSummary() for status in SubmissionStatus}
    ages = {label: 0 for label, _, _ in AGE_BUCKETS}
    groups: dict[str, dict[str, GroupSummary]] = {name: {} for name in group_fields}
    total = recent = this_month = 0

    for row in rows:
        status = _value(row.status)
        total += 1
        by_status[status] = by_status.get(status, 0) + 1
        by_kind[_value(row.kind)] += 1

        if row.investment_amount is not None:
            summary = investment.setdefault(status, InvestmentSummary())
            summary.count += 1
            summary.total += Decimal(row.investment_amount)

        created_at = ensure_utc(row.created_at)
        if created_at >= window_start:
            recent += 1
        if (created_at.year, created_at.month) == (now.year, now.month):
            this_month += 1

        bucket = age_bucket(calculate_age(row.date_of_birth, today))
        if bucket:
            ages[bucket] += 1

        for name in group_fields:
            key = getattr(row, name)
            if key is None or not str(key).strip():
                continue
            key = str(key).strip()
            group = groups[name].setdefault(key, GroupSummary(group=key))
            group.count += 1
            if row.investment_amount is not None:
                group.investment_sum += Decimal(row.investment_amount)
            if status == SubmissionStatus.APPROVED.value:
                group.approved += 1
            elif status == SubmissionStatus.REJECTED.value:
                group.rejected += 1
            else:
                group.pending += 1

    top_groups = {
        name: sorted(entries.values(), key=lambda g: (-g.count, g.group))[:top_k]
        for name, entries in groups.items()
    }

    return SubmissionStatistics(
        total=total,
        by_status=by_status,
        by_kind=dict(by_kind),
        investment_by_status=investment,
        recent_window_days=recent_window_days,
        recent_count=recent,
        created_this_month=this_month,
        approval_rate=_rate(by_status[SubmissionStatus.APPROVED.value], total),
        top_groups=top_groups,
        age_distribution=[{"bucket": label, "count": count} for label, count in ages.items()],
        generated_at=now,
    )


def read_snapshot(db: Session) -> list[SnapshotRow]:
    """One SELECT over the columns the aggregates need."""
    rows = db.query(
        Submission.status,
        Submission.kind,
        Submission.state,
        Submission.course_name,
        Submission.investment_amount,
        Submission.created_at,
        Submission.date_of_birth,
    ).all()
    return [SnapshotRow(*row) for row in rows]


class StatisticsAggregator:
    """Computes SubmissionStatistics off the event loop.

    Args:
        session_factory: Callable returning a new Session (e.g. SessionLocal)
        clock: Returns the current UTC time
        recent_window_days: Trailing window for recent_count
        top_k: Groups kept per group field
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Callable[[], datetime] = utc_now,
        recent_window_days: int = 7,
        top_k: int = 5,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.recent_window_days = recent_window_days
        self.top_k = top_k

    def _snapshot(self) -> list[SnapshotRow]:
        session = self.session_factory()
        try:
            return read_snapshot(session)
        finally:
            session.close()

    async def aggregate(self, timeout: Optional[float] = None) -> SubmissionStatistics:
        """Read one snapshot and aggregate it.

        Args:
            timeout: Seconds before the read is abandoned (None: no limit)

        Raises:
            AggregationTimeout: The snapshot read exceeded ``timeout``
            PersistenceFailure: The read failed
        """
        loop = asyncio.get_running_loop()
        try:
            rows = await asyncio.wait_for(
                loop.run_in_executor(None, self._snapshot),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Statistics snapshot timed out after {timeout}s")
            raise AggregationTimeout(timeout)
        except SQLAlchemyError as e:
            logger.error(f"Statistics snapshot failed: {e}", exc_info=True)
            raise PersistenceFailure("Could not read submissions for statistics")

        stats = compute_statistics(
            rows,
            now=self.clock(),
            recent_window_days=self.recent_window_days,
            top_k=self.top_k,
        )
        logger.info(f"Computed statistics: total={stats.total}")
        return stats
