"""
studio_services.ledger_service -- Balance, revenue and preview orchestration.

Responsibility:
    Load the records a ledger computation needs through LedgerSelector,
    resolve "today" from the injected Clock, and hand both to the pure
    engines.  Also owns the one ledger mutation: archiving passes.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes BalanceAuditEngine, RevenueAllocationEngine, the preview and
    payment helpers, and LedgerSelector.

Invariants enforced:
    - Balances and revenue are never stored; every call recomputes them
      from the current rows.
    - The reference day comes from ``clock.today()``; engines never see a
      wall clock.
    - Archiving is one-way (ACTIVE -> ARCHIVED) and idempotent.
    - The service flushes but never commits; the caller owns the
      transaction (``session_scope``).

Failure modes:
    - LessonNotFoundError from preview_attendance / lesson_totals when the
      lesson id is unknown or malformed.
    - PassNotFoundError from archive_pass when the pass id is unknown.

Audit relevance:
    Every operation logs started/completed events bound to the student,
    group or lesson it concerns.  Archiving logs each archived pass id.

Usage:
    from studio_kernel.db import session_scope
    from studio_kernel.domain.clock import SystemClock
    from studio_services import LedgerService

    with session_scope() as session:
        service = LedgerService(session, SystemClock())
        result = service.audit_student_group("stu-1", "grp-1")
        result.balance
"""

from __future__ import annotations

import time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from studio_engines.balance_audit import (
    BalanceAuditEngine,
    BalanceAuditResult,
    StudentBalanceSummary,
    summarize_student_balance,
)
from studio_engines.coverage import find_expired_passes
from studio_engines.payments import (
    AttendancePayment,
    LessonTotals,
    attendance_payments,
    summarize_lesson_totals,
)
from studio_engines.preview import AttendancePreview, preview_attendance
from studio_engines.revenue import LessonRevenue, RevenueAllocationEngine
from studio_kernel.domain.clock import Clock
from studio_kernel.domain.policy import DEFAULT_LEDGER_POLICY, LedgerPolicy
from studio_kernel.domain.values import PassStatus
from studio_kernel.exceptions import LessonNotFoundError, PassNotFoundError
from studio_kernel.logging_config import LogContext, get_logger
from studio_kernel.models.subscription import SubscriptionModel
from studio_kernel.selectors.ledger_selector import LedgerSelector

logger = get_logger("services.ledger")


class LedgerService:
    """
    Studio ledger operations for one session.

    Contract:
        Receives Session and Clock via constructor injection; the policy
        defaults to DEFAULT_LEDGER_POLICY.
    Guarantees:
        - Read operations never modify the session.
        - ``archive_expired_passes`` and ``archive_pass`` only change
          subscription status.
    Non-goals:
        - Does not record attendance or sell passes; those writes belong
          to the studio's CRUD surface.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        policy: LedgerPolicy | None = None,
    ):
        self.session = session
        self.clock = clock
        self.policy = policy or DEFAULT_LEDGER_POLICY
        self.selector = LedgerSelector(session)
        self.audit_engine = BalanceAuditEngine(self.policy)
        self.revenue_engine = RevenueAllocationEngine(self.policy)

    # =========================================================================
    # Balance
    # =========================================================================

    def audit_student_group(self, student_id: str, group_id: str) -> BalanceAuditResult:
        """Balance audit of one student in one group as of today."""
        with LogContext.bind(student_id=student_id, group_id=group_id):
            snapshot = self.selector.snapshot(student_id, group_id)
            return self.audit_engine.audit(
                student_id=str(student_id),
                group_id=str(group_id),
                passes=snapshot.passes,
                attendance=snapshot.attendance,
                lessons=snapshot.lessons,
                as_of=self.clock.today(),
            )

    def student_summary(self, student_id: str) -> StudentBalanceSummary:
        """Surplus, debt and uncovered lessons across every group."""
        with LogContext.bind(student_id=student_id):
            t0 = time.monotonic()
            snapshot = self.selector.student_snapshot(student_id)
            summary = summarize_student_balance(
                str(student_id),
                snapshot.passes,
                snapshot.attendance,
                snapshot.lessons,
                self.clock.today(),
                engine=self.audit_engine,
            )
            logger.info("student_summary_completed", extra={
                "surplus": summary.surplus,
                "debt": summary.debt,
                "group_count": len(summary.group_balances),
                "uncovered_count": len(summary.uncovered_lessons),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
            return summary

    # =========================================================================
    # Revenue
    # =========================================================================

    def allocate_revenue(self, student_id: str, group_id: str) -> dict[str, LessonRevenue]:
        """Value of each of the student's lessons in the group."""
        with LogContext.bind(student_id=student_id, group_id=group_id):
            snapshot = self.selector.snapshot(student_id, group_id)
            return self.revenue_engine.allocate(
                student_id=str(student_id),
                group_id=str(group_id),
                passes=snapshot.passes,
                lessons=snapshot.lessons,
                attendance=snapshot.attendance,
                as_of=self.clock.today(),
            )

    # =========================================================================
    # Attendance
    # =========================================================================

    def preview_attendance(self, student_id: str, lesson_id: str) -> AttendancePreview:
        """
        Project marking the student present / as an invalid skip.

        Raises:
            LessonNotFoundError: If the lesson does not exist.
        """
        with LogContext.bind(student_id=student_id, lesson_id=lesson_id):
            lesson = self.selector.get_lesson(lesson_id)
            if lesson is None:
                logger.warning("preview_lesson_not_found")
                raise LessonNotFoundError(lesson_id)

            snapshot = self.selector.snapshot(student_id, lesson.group_id)
            preview = preview_attendance(
                student_id=str(student_id),
                lesson=lesson,
                passes=snapshot.passes,
                attendance=snapshot.attendance,
                lessons=snapshot.lessons,
                as_of=self.clock.today(),
                engine=self.audit_engine,
            )
            logger.info("attendance_preview_completed", extra={
                "has_active_pass": preview.has_active_pass,
                "is_uncovered_present": preview.is_uncovered_present,
                "is_uncovered_skip": preview.is_uncovered_skip,
            })
            return preview

    def lesson_totals(self, lesson_id: str) -> LessonTotals:
        """
        Earned amount and uncovered attendee count of one lesson.

        Each marked student is audited in the lesson's group; the lesson's
        payment lines are then summed across students.

        Raises:
            LessonNotFoundError: If the lesson does not exist.
        """
        with LogContext.bind(lesson_id=lesson_id):
            lesson = self.selector.get_lesson(lesson_id)
            if lesson is None:
                raise LessonNotFoundError(lesson_id)

            as_of = self.clock.today()
            payments_by_student: dict[str, dict[str, AttendancePayment]] = {}
            for mark in self.selector.attendance_for_lesson(lesson.id):
                snapshot = self.selector.snapshot(mark.student_id, lesson.group_id)
                audit = self.audit_engine.audit(
                    student_id=mark.student_id,
                    group_id=lesson.group_id,
                    passes=snapshot.passes,
                    attendance=snapshot.attendance,
                    lessons=snapshot.lessons,
                    as_of=as_of,
                )
                payments = attendance_payments(audit, snapshot.passes)
                if lesson.id in payments:
                    payments_by_student[mark.student_id] = {lesson.id: payments[lesson.id]}

            totals = summarize_lesson_totals(payments_by_student).get(lesson.id)
            if totals is None:
                totals = LessonTotals(
                    lesson_id=lesson.id,
                    total_amount=Decimal("0"),
                    uncovered_count=0,
                )
            logger.info("lesson_totals_completed", extra={
                "student_count": len(payments_by_student),
                "total_amount": totals.total_amount,
                "uncovered_count": totals.uncovered_count,
            })
            return totals

    # =========================================================================
    # Archiving
    # =========================================================================

    def archive_expired_passes(self) -> list[str]:
        """
        Archive every active pass whose expiry date is before today.

        Returns:
            Ids of the passes archived by this call, in purchase order.
        """
        as_of = self.clock.today()
        logger.info("archive_expired_passes_started", extra={"as_of": as_of})

        stmt = select(SubscriptionModel).where(
            SubscriptionModel.status == PassStatus.ACTIVE.value,
            SubscriptionModel.expiry_date.is_not(None),
            SubscriptionModel.expiry_date < as_of,
        )
        rows = {str(row.id): row for row in self.session.scalars(stmt)}
        expired = find_expired_passes([row.to_domain() for row in rows.values()], as_of)

        archived: list[str] = []
        for p in expired:
            rows[p.id].archive()
            archived.append(p.id)
            with LogContext.bind(pass_id=p.id, student_id=p.student_id, group_id=p.group_id):
                logger.info("pass_archived", extra={"expiry_date": p.expiry_date})
        self.session.flush()

        logger.info("archive_expired_passes_completed", extra={
            "as_of": as_of,
            "archived_count": len(archived),
        })
        return archived

    def archive_pass(self, pass_id: str) -> None:
        """
        Archive one pass regardless of its expiry date.

        Raises:
            PassNotFoundError: If the pass does not exist.
        """
        try:
            pass_uuid = UUID(str(pass_id))
        except ValueError:
            raise PassNotFoundError(pass_id) from None
        row = self.session.get(SubscriptionModel, pass_uuid)
        if row is None:
            raise PassNotFoundError(pass_id)

        if not row.is_archived:
            row.archive()
            self.session.flush()
            with LogContext.bind(pass_id=row.id, student_id=row.student_id, group_id=row.group_id):
                logger.info("pass_archived")
