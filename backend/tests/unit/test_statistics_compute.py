"""Unit tests for the pure statistics computation"""

from datetime import date, datetime, timezone
from decimal import Decimal

from kycdesk.domain.submissions.status import SubmissionStatus
from kycdesk.submissions.statistics import SnapshotRow, age_bucket, compute_statistics

NOW = datetime(2024, 6, 15, 10, 0, tzinfo=timezone.utc)


def row(status="pending_review", kind="registration", state="Maharashtra", course="Options 101",
        amount=None, created=datetime(2024, 6, 14, tzinfo=timezone.utc), dob=date(2000, 1, 1)):
    return SnapshotRow(status, kind, state, course, amount, created, dob)


class TestAgeBucket:

    def test_boundaries(self):
        assert age_bucket(16) == "16-17"
        assert age_bucket(17) == "16-17"
        assert age_bucket(18) == "18-24"
        assert age_bucket(59) == "45-59"
        assert age_bucket(60) == "60+"
        assert age_bucket(100) == "60+"

    def test_outside_buckets(self):
        assert age_bucket(15) is None


class TestComputeStatistics:

    def test_empty_snapshot(self):
        stats = compute_statistics([], now=NOW)

        assert stats.total == 0
        assert set(stats.by_status) == {s.value for s in SubmissionStatus}
        assert sum(stats.by_status.values()) == 0
        assert stats.approval_rate == 0.0
        assert stats.recent_count == 0
        assert stats.top_groups == {"state": [], "course_name": []}

    def test_status_counts_sum_to_total(self):
        rows = [
            row(status="pending_review"),
            row(status="approved"),
            row(status="approved"),
            row(status="rejected"),
            row(status=SubmissionStatus.UNDER_REVIEW),
        ]

        stats = compute_statistics(rows, now=NOW)

        assert stats.total == 5
        assert sum(stats.by_status.values()) == stats.total
        assert stats.by_status["approved"] == 2
        assert stats.by_status["under_review"] == 1
        assert stats.by_status["documents_required"] == 0
        assert stats.approval_rate == 40.0

    def test_investment_sum_and_average_per_status(self):
        rows = [
            row(kind="trading_application", course=None, status="approved", amount=Decimal("10000")),
            row(kind="trading_application", course=None, status="approved", amount=Decimal("25000.50")),
            row(kind="registration", status="approved"),
        ]

        stats = compute_statistics(rows, now=NOW)
        approved = stats.investment_by_status["approved"]

        assert approved.count == 2
        assert approved.total == Decimal("35000.50")
        assert approved.average == Decimal("17500.25")
        assert stats.investment_by_status["rejected"].to_dict() == {"count": 0, "sum": "0.00", "average": "0.00"}
        assert stats.by_kind == {"trading_application": 2, "registration": 1}

    def test_recent_window_and_current_month(self):
        rows = [
            row(created=datetime(2024, 6, 14, tzinfo=timezone.utc)),   # recent, this month
            row(created=datetime(2024, 6, 8, 10, 0, tzinfo=timezone.utc)),  # exactly 7 days: recent
            row(created=datetime(2024, 6, 1, tzinfo=timezone.utc)),    # this month only
            row(created=datetime(2024, 5, 31, tzinfo=timezone.utc)),   # neither
            row(created=datetime(2024, 6, 10)),                        # naive, treated as UTC
        ]

        stats = compute_statistics(rows, now=NOW, recent_window_days=7)

        assert stats.recent_count == 3
        assert stats.created_this_month == 4

    def test_top_groups_ordered_and_limited(self):
        rows = (
            [row(state="Karnataka", status="approved")] * 3
            + [row(state="Maharashtra", status="rejected")] * 3
            + [row(state="Goa")] * 2
            + [row(state="Kerala")]
            + [row(state=None), row(state="  ")]
        )

        stats = compute_statistics(rows, now=NOW, top_k=2)
        states = stats.top_groups["state"]

        # Ties broken by name
        assert [g.group for g in states] == ["Karnataka", "Maharashtra"]
        assert states[0].approved == 3
        assert states[0].approval_rate == 100.0
        assert states[1].rejected == 3
        assert states[1].approval_rate == 0.0

    def test_group_investment_and_pending(self):
        rows = [
            row(kind="trading_application", course=None, state="Delhi", amount=Decimal("50000")),
            row(kind="trading_application", course=None, state="Delhi", amount=Decimal("70000"), status="under_review"),
        ]

        stats = compute_statistics(rows, now=NOW)
        delhi = stats.top_groups["state"][0]

        assert delhi.pending == 2
        assert delhi.investment_sum == Decimal("120000")
        assert stats.top_groups["course_name"] == []

    def test_age_distribution(self):
        rows = [
            row(dob=date(2007, 6, 15)),  # 17
            row(dob=date(2006, 6, 15)),  # 18
            row(dob=date(1960, 1, 1)),   # 64
        ]

        stats = compute_statistics(rows, now=NOW)
        histogram = {bucket["bucket"]: bucket["count"] for bucket in stats.age_distribution}

        assert histogram == {"16-17": 1, "18-24": 1, "25-34": 0, "35-44": 0, "45-59": 0, "60+": 1}

    def test_to_dict_is_json_ready(self):
        stats = compute_statistics([row(status="approved", amount=Decimal("12345.6"))], now=NOW)
        data = stats.to_dict()

        assert data["total"] == 1
        assert data["investment_by_status"]["approved"]["sum"] == "12345.60"
        assert data["generated_at"] == "2024-06-15T10:00:00+00:00"
        assert data["top_groups"]["state"][0]["group"] == "Maharashtra"
