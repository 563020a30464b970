"""
Tests for the Balance Audit Engine.

Covers:
- Balances with and without passes
- Reason codes for every lesson disposition
- First-match allocation in purchase order
- Capacity exhaustion
- Auto-consumption of unmarked lessons under consecutive passes
- Expired and archived passes relative to the reference day
- Cross-group summaries
"""

from datetime import date, timedelta
from decimal import Decimal

from studio_engines.balance_audit import (
    AuditReason,
    BalanceAuditEngine,
    EntryStatus,
    summarize_student_balance,
)
from studio_kernel.domain.policy import LedgerPolicy
from studio_kernel.domain.values import (
    AttendanceMark,
    AttendanceStatus,
    Lesson,
    LessonStatus,
    Pass,
    PassStatus,
)

AS_OF = date(2025, 3, 1)
PRESENT = AttendanceStatus.PRESENT
VALID = AttendanceStatus.ABSENCE_VALID
INVALID = AttendanceStatus.ABSENCE_INVALID


def _pass(
    pass_id: str,
    purchase: str,
    *,
    total=8,
    price="280",
    consecutive: bool = False,
    expiry: str | None = None,
    status: PassStatus = PassStatus.ACTIVE,
    student: str = "stu-1",
    group: str = "grp-1",
) -> Pass:
    return Pass(
        id=pass_id,
        student_id=student,
        group_id=group,
        purchase_date=date.fromisoformat(purchase),
        lessons_total=total,
        price=Decimal(price),
        is_consecutive=consecutive,
        expiry_date=date.fromisoformat(expiry) if expiry else None,
        status=status,
    )


def _lesson(lesson_id: str, day: str, *, group: str = "grp-1", cancelled: bool = False) -> Lesson:
    return Lesson(
        id=lesson_id,
        group_id=group,
        date=date.fromisoformat(day),
        time="18:00",
        status=LessonStatus.CANCELLED if cancelled else LessonStatus.UPCOMING,
    )


def _mark(lesson_id: str, status: AttendanceStatus, student: str = "stu-1") -> AttendanceMark:
    return AttendanceMark(lesson_id=lesson_id, student_id=student, status=status)


def _weekly(count: int, start: str = "2025-01-06") -> list[Lesson]:
    first = date.fromisoformat(start)
    return [
        _lesson(f"l-{i + 1}", (first + timedelta(weeks=i)).isoformat())
        for i in range(count)
    ]


class TestWithoutPasses:
    """Students who never bought a pass."""

    def setup_method(self):
        self.engine = BalanceAuditEngine()

    def test_attended_lesson_is_debt(self):
        """One attended lesson and no pass leaves the student one lesson in debt."""
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[],
            attendance=[_mark("l-1", PRESENT)],
            lessons=[_lesson("l-1", "2025-01-06")],
            as_of=AS_OF,
        )

        assert result.balance == -1
        assert result.lessons_owed == 1
        assert result.lessons_covered == 0
        assert len(result.audit_entries) == 1
        entry = result.audit_entries[0]
        assert entry.reason == AuditReason.UNCOVERED_NO_MATCHING_PASS
        assert entry.status == EntryStatus.COUNTED
        assert entry.is_uncovered
        assert [u.lesson_id for u in result.uncovered_lessons] == ["l-1"]
        assert result.uncovered_lessons[0].group_id == "grp-1"
        assert result.pass_usage == ()

    def test_skips_cost_nothing(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[],
            attendance=[_mark("l-1", INVALID), _mark("l-2", VALID), _mark("l-3", PRESENT)],
            lessons=_weekly(3),
            as_of=AS_OF,
        )

        assert result.balance == -1
        assert result.entry_for("l-1").reason == AuditReason.NOT_COUNTED_NO_ATTENDANCE
        assert result.entry_for("l-2").reason == AuditReason.NOT_COUNTED_VALID_SKIP
        assert not result.entry_for("l-1").is_counted

    def test_cancelled_lesson_not_counted(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[],
            attendance=[_mark("l-1", PRESENT)],
            lessons=[_lesson("l-1", "2025-01-06", cancelled=True)],
            as_of=AS_OF,
        )

        assert result.balance == 0
        assert result.entry_for("l-1").reason == AuditReason.NOT_COUNTED_CANCELLED

    def test_unmarked_lessons_produce_no_entries(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[],
            attendance=[],
            lessons=_weekly(4),
            as_of=AS_OF,
        )

        assert result.balance == 0
        assert result.audit_entries == ()


class TestConsecutivePass:
    """Fixed-rate passes that also absorb invalid skips."""

    def setup_method(self):
        self.engine = BalanceAuditEngine()

    def test_fully_used_pass_balances_to_zero(self):
        """Eight attended lessons on an eight-lesson pass."""
        lessons = _weekly(8)
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", consecutive=True)],
            attendance=[_mark(lesson.id, PRESENT) for lesson in lessons],
            lessons=lessons,
            as_of=AS_OF,
        )

        assert result.balance == 0
        assert result.lessons_owed == 8
        assert result.lessons_covered == 8
        assert all(e.reason == AuditReason.COUNTED_PRESENT for e in result.audit_entries)
        assert all(e.covered_by_pass_id == "p1" for e in result.audit_entries)
        usage = result.usage_for("p1")
        assert usage.lessons_used == 8
        assert usage.lessons_remaining == 0

    def test_invalid_skip_consumes_credit(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=4, consecutive=True)],
            attendance=[_mark("l-1", PRESENT), _mark("l-2", INVALID)],
            lessons=_weekly(2),
            as_of=date(2025, 1, 14),
        )

        assert result.balance == 2
        entry = result.entry_for("l-2")
        assert entry.reason == AuditReason.COUNTED_ABSENCE_INVALID
        assert entry.covered_by_pass_id == "p1"

    def test_valid_skip_keeps_credit(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=4, consecutive=True)],
            attendance=[_mark("l-1", VALID), _mark("l-2", PRESENT)],
            lessons=_weekly(2),
            as_of=date(2025, 1, 14),
        )

        assert result.balance == 3
        assert result.entry_for("l-1").reason == AuditReason.NOT_COUNTED_VALID_SKIP
        assert result.usage_for("p1").lessons_used == 1

    def test_depleted_pass(self):
        """Lessons beyond capacity are debt, flagged as depleted."""
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=2, consecutive=True)],
            attendance=[_mark(f"l-{i}", PRESENT) for i in (1, 2, 3)],
            lessons=_weekly(3),
            as_of=AS_OF,
        )

        assert result.balance == -1
        assert result.lessons_covered == 2
        third = result.entry_for("l-3")
        assert third.reason == AuditReason.UNCOVERED_PASS_DEPLETED
        assert third.is_uncovered
        assert result.usage_for("p1").lessons_used == 2

    def test_invalid_skip_after_depletion_is_debt(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=1, consecutive=True)],
            attendance=[_mark("l-1", PRESENT), _mark("l-2", INVALID)],
            lessons=_weekly(2),
            as_of=AS_OF,
        )

        assert result.balance == -1
        assert result.entry_for("l-2").reason == AuditReason.UNCOVERED_PASS_DEPLETED


class TestNonConsecutivePass:
    """Passes whose windows are truncated by the next purchase."""

    def setup_method(self):
        self.engine = BalanceAuditEngine()

    def test_invalid_skip_does_not_burn_credit(self):
        lessons = _weekly(5)
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", price="320", expiry="2025-01-31")],
            attendance=[
                _mark("l-1", PRESENT),
                _mark("l-2", PRESENT),
                _mark("l-3", PRESENT),
                _mark("l-4", INVALID),
                _mark("l-5", VALID),
            ],
            lessons=lessons,
            as_of=AS_OF,
        )

        assert result.balance == 5
        skip = result.entry_for("l-4")
        assert skip.reason == AuditReason.NOT_COUNTED_NO_ATTENDANCE
        assert skip.status == EntryStatus.NOT_COUNTED
        assert skip.covered_by_pass_id is None
        assert result.usage_for("p1").lessons_used == 3

    def test_lesson_resolves_to_earlier_pass(self):
        """A mid-January lesson is charged to the January pass."""
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("feb", "2025-02-01"), _pass("jan", "2025-01-01")],
            attendance=[_mark("l-1", PRESENT)],
            lessons=[_lesson("l-1", "2025-01-15")],
            as_of=AS_OF,
        )

        assert result.entry_for("l-1").covered_by_pass_id == "jan"
        assert result.usage_for("feb").lessons_used == 0

    def test_lesson_outside_every_window(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-02-01", total=4)],
            attendance=[_mark("l-1", PRESENT)],
            lessons=[_lesson("l-1", "2025-01-15")],
            as_of=AS_OF,
        )

        assert result.entry_for("l-1").reason == AuditReason.UNCOVERED_NO_MATCHING_PASS
        assert result.balance == 3

    def test_invalid_skip_outside_every_window(self):
        """An invalid skip before the only pass was bought is not debt."""
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-02-01", total=4)],
            attendance=[_mark("l-1", INVALID)],
            lessons=[_lesson("l-1", "2025-01-15")],
            as_of=AS_OF,
        )

        entry = result.entry_for("l-1")
        assert entry.reason == AuditReason.NOT_COUNTED_NO_ATTENDANCE
        assert entry.status == EntryStatus.NOT_COUNTED
        assert entry.covered_by_pass_id is None
        assert result.balance == 4
        assert result.lessons_owed == 0
        assert result.uncovered_lessons == ()
        assert result.usage_for("p1").lessons_used == 0

    def test_invalid_skip_falls_through_to_consecutive_pass(self):
        """The older flexible pass is skipped; the consecutive one takes the credit."""
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[
                _pass("flex", "2025-01-01", total=4),
                _pass("consec", "2025-01-10", total=4, consecutive=True, expiry="2025-02-28"),
            ],
            attendance=[_mark("l-1", INVALID)],
            lessons=[_lesson("l-1", "2025-01-15")],
            as_of=AS_OF,
        )

        entry = result.entry_for("l-1")
        assert entry.reason == AuditReason.COUNTED_ABSENCE_INVALID
        assert entry.covered_by_pass_id == "consec"
        assert result.usage_for("flex").lessons_used == 0
        assert result.usage_for("consec").lessons_used == 1
        assert result.balance == 7

    def test_unmarked_lessons_never_auto_consumed(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=4)],
            attendance=[],
            lessons=_weekly(3),
            as_of=AS_OF,
        )

        assert result.balance == 4
        assert result.audit_entries == ()


class TestAllocationOrder:
    """First matching pass in purchase order wins."""

    def setup_method(self):
        self.engine = BalanceAuditEngine()

    def test_older_pass_used_first(self):
        lessons = [_lesson(f"l-{i}", f"2025-01-{14 + i}") for i in (1, 2, 3)]
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[
                _pass("newer", "2025-01-10", total=2, consecutive=True),
                _pass("older", "2025-01-01", total=2, consecutive=True),
            ],
            attendance=[_mark(lesson.id, PRESENT) for lesson in lessons],
            lessons=lessons,
            as_of=AS_OF,
        )

        assert [e.covered_by_pass_id for e in result.audit_entries] == ["older", "older", "newer"]
        assert result.balance == 1

    def test_input_order_does_not_matter(self):
        lessons = _weekly(4)
        marks = [_mark(lesson.id, PRESENT) for lesson in lessons]
        passes = [
            _pass("a", "2025-01-01", total=2, consecutive=True),
            _pass("b", "2025-01-02", total=3),
        ]

        forward = self.engine.audit(
            student_id="stu-1", group_id="grp-1", passes=passes,
            attendance=marks, lessons=lessons, as_of=AS_OF,
        )
        backward = self.engine.audit(
            student_id="stu-1", group_id="grp-1", passes=list(reversed(passes)),
            attendance=list(reversed(marks)), lessons=list(reversed(lessons)), as_of=AS_OF,
        )

        assert forward == backward


class TestAutoConsumption:
    """
    Unmarked past lessons inside a consecutive pass window count as attended.

    This is the studio's established rule, kept literally: a lesson nobody
    marked is assumed attended once its date is before the reference day.
    """

    def setup_method(self):
        self.engine = BalanceAuditEngine()

    def test_unmarked_past_lesson_consumes_credit(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=4, consecutive=True)],
            attendance=[_mark("l-2", PRESENT)],
            lessons=_weekly(2),
            as_of=AS_OF,
        )

        assert result.balance == 2
        entry = result.entry_for("l-1")
        assert entry.reason == AuditReason.COUNTED_NO_ATTENDANCE_CONSECUTIVE
        assert entry.attendance_status is None
        assert entry.covered_by_pass_id == "p1"

    def test_future_lesson_not_consumed(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=4, consecutive=True)],
            attendance=[],
            lessons=[_lesson("l-1", "2025-03-01"), _lesson("l-2", "2025-03-08")],
            as_of=AS_OF,
        )

        assert result.balance == 4
        assert result.audit_entries == ()

    def test_lesson_becomes_consumed_once_in_the_past(self):
        """The same unmarked lesson flips to consumed when as_of moves past it."""
        kwargs = dict(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=4, consecutive=True)],
            attendance=[],
            lessons=[_lesson("l-1", "2025-01-20")],
        )

        before = self.engine.audit(**kwargs, as_of=date(2025, 1, 20))
        after = self.engine.audit(**kwargs, as_of=date(2025, 1, 21))

        assert before.balance == 4
        assert after.balance == 3

    def test_skips_non_consecutive_passes(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[
                _pass("a-flex", "2025-01-01", total=4),
                _pass("b-block", "2025-01-01", total=4, consecutive=True),
            ],
            attendance=[],
            lessons=[_lesson("l-1", "2025-01-06")],
            as_of=AS_OF,
        )

        assert result.entry_for("l-1").covered_by_pass_id == "b-block"
        assert result.usage_for("a-flex").lessons_used == 0

    def test_cancelled_unmarked_lesson_not_counted(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=4, consecutive=True)],
            attendance=[],
            lessons=[_lesson("l-1", "2025-01-06", cancelled=True)],
            as_of=AS_OF,
        )

        assert result.balance == 4
        assert result.entry_for("l-1").reason == AuditReason.NOT_COUNTED_CANCELLED

    def test_disabled_by_policy(self):
        engine = BalanceAuditEngine(LedgerPolicy(auto_consume_unmarked=False))
        result = engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=4, consecutive=True)],
            attendance=[],
            lessons=_weekly(2),
            as_of=AS_OF,
        )

        assert result.balance == 4
        assert result.audit_entries == ()


class TestExpiredAndArchived:
    """Passes expired relative to the reference day."""

    def setup_method(self):
        self.engine = BalanceAuditEngine()

    def test_archived_pass_covers_past_lesson(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=4, status=PassStatus.ARCHIVED)],
            attendance=[_mark("l-1", PRESENT)],
            lessons=[_lesson("l-1", "2025-02-01")],
            as_of=AS_OF,
        )

        assert result.entry_for("l-1").covered_by_pass_id == "p1"
        # Used archived passes keep their capacity
        assert result.balance == 3

    def test_archived_pass_does_not_cover_today(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=4, status=PassStatus.ARCHIVED)],
            attendance=[_mark("l-1", PRESENT)],
            lessons=[_lesson("l-1", "2025-03-01")],
            as_of=AS_OF,
        )

        entry = result.entry_for("l-1")
        assert entry.reason == AuditReason.UNCOVERED_NO_MATCHING_PASS
        assert result.balance == -1

    def test_unused_archived_pass_adds_no_capacity(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[
                _pass("old", "2025-01-01", total=4, expiry="2025-01-31", status=PassStatus.ARCHIVED),
                _pass("new", "2025-02-01", total=2),
            ],
            attendance=[],
            lessons=[],
            as_of=AS_OF,
        )

        assert result.balance == 2

    def test_expired_consecutive_window_ends_at_expiry(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=8, consecutive=True, expiry="2025-01-31")],
            attendance=[_mark("l-1", PRESENT)],
            lessons=[_lesson("l-1", "2025-02-10")],
            as_of=AS_OF,
        )

        assert result.entry_for("l-1").reason == AuditReason.UNCOVERED_NO_MATCHING_PASS


class TestInconsistentData:
    """The audit filters bad data instead of raising."""

    def setup_method(self):
        self.engine = BalanceAuditEngine()

    def test_missing_lessons_total_is_zero_capacity(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[_pass("p1", "2025-01-01", total=None)],
            attendance=[_mark("l-1", PRESENT)],
            lessons=[_lesson("l-1", "2025-01-06")],
            as_of=AS_OF,
        )

        assert result.balance == -1
        assert result.entry_for("l-1").reason == AuditReason.UNCOVERED_PASS_DEPLETED
        assert result.usage_for("p1").lessons_total == 0

    def test_foreign_records_ignored(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[
                _pass("p1", "2025-01-01", total=4),
                _pass("other-student", "2025-01-01", student="stu-2"),
                _pass("other-group", "2025-01-01", group="grp-2"),
            ],
            attendance=[
                _mark("l-1", PRESENT),
                _mark("l-1", PRESENT, student="stu-2"),
                _mark("ghost", PRESENT),
                _mark("l-elsewhere", PRESENT),
            ],
            lessons=[_lesson("l-1", "2025-01-06"), _lesson("l-elsewhere", "2025-01-06", group="grp-2")],
            as_of=AS_OF,
        )

        assert result.balance == 3
        assert [e.lesson_id for e in result.audit_entries] == ["l-1"]
        assert [u.pass_id for u in result.pass_usage] == ["p1"]

    def test_last_mark_wins(self):
        result = self.engine.audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[],
            attendance=[_mark("l-1", INVALID), _mark("l-1", PRESENT)],
            lessons=[_lesson("l-1", "2025-01-06")],
            as_of=AS_OF,
        )

        assert result.balance == -1
        assert result.entry_for("l-1").attendance_status == PRESENT


class TestStudentSummary:
    """Balances rolled up across groups."""

    def test_credit_and_debt_do_not_cancel(self):
        lessons = [
            _lesson("a-1", "2025-01-06", group="grp-a"),
            _lesson("b-1", "2025-01-07", group="grp-b"),
        ]
        summary = summarize_student_balance(
            "stu-1",
            passes=[_pass("p1", "2025-01-01", total=3, group="grp-a")],
            attendance=[_mark("a-1", PRESENT), _mark("b-1", PRESENT)],
            lessons=lessons,
            as_of=AS_OF,
        )

        assert summary.surplus == 2
        assert summary.debt == 1
        assert summary.group_balances == {"grp-a": 2, "grp-b": -1}
        assert [u.lesson_id for u in summary.uncovered_lessons] == ["b-1"]
        assert summary.uncovered_lessons[0].group_id == "grp-b"

    def test_student_without_records(self):
        summary = summarize_student_balance("nobody", [], [], [], AS_OF)

        assert summary.surplus == 0
        assert summary.debt == 0
        assert summary.group_balances == {}


class TestAuditLogging:
    """Structured log records emitted by the audit."""

    def test_started_completed_and_trace(self, captured_logs):
        BalanceAuditEngine().audit(
            student_id="stu-1",
            group_id="grp-1",
            passes=[],
            attendance=[_mark("l-1", PRESENT)],
            lessons=[_lesson("l-1", "2025-01-06")],
            as_of=AS_OF,
        )

        logs = captured_logs()
        messages = [r["message"] for r in logs]
        assert "balance_audit_started" in messages
        completed = next(r for r in logs if r["message"] == "balance_audit_completed")
        assert completed["balance"] == -1
        assert completed["student_id"] == "stu-1"
        assert "duration_ms" in completed
        trace = next(r for r in logs if r["message"] == "STUDIO_ENGINE_TRACE")
        assert trace["engine_name"] == "balance_audit"
        assert len(trace["input_fingerprint"]) == 16
