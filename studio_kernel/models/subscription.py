"""
Module: studio_kernel.models.subscription
Responsibility: ORM persistence for passes (purchased subscriptions): blocks of
    lesson credits owned by one student in one group.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - Immutable once created except for the ACTIVE -> ARCHIVED status
      transition (``archive()``).  Expiry-driven archiving happens in
      LedgerService.archive_expired_passes.

Audit relevance:
    Pass rows are the capacity side of every balance.  Archiving an unused
    pass removes its capacity from the balance; archiving a used one does
    not revoke the lessons it already covered.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from studio_kernel.db.base import TrackedBase
from studio_kernel.domain.values import Pass, PassStatus


class SubscriptionModel(TrackedBase):
    """A purchased pass."""

    __tablename__ = "subscriptions"

    __table_args__ = (
        Index("idx_subscription_student_group", "student_id", "group_id"),
        Index("idx_subscription_status", "status"),
    )

    student_id: Mapped[str] = mapped_column(String(64), nullable=False)

    group_id: Mapped[str] = mapped_column(String(64), nullable=False)

    lessons_total: Mapped[int] = mapped_column(Integer, nullable=False)

    price: Mapped[Decimal] = mapped_column(nullable=False)

    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)

    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_consecutive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PassStatus.ACTIVE.value,
    )

    @property
    def is_archived(self) -> bool:
        return self.status == PassStatus.ARCHIVED.value

    def archive(self) -> None:
        """One-way ACTIVE -> ARCHIVED transition."""
        self.status = PassStatus.ARCHIVED.value

    def to_domain(self) -> Pass:
        return Pass(
            id=str(self.id),
            student_id=self.student_id,
            group_id=self.group_id,
            purchase_date=self.purchase_date,
            lessons_total=self.lessons_total,
            price=Decimal(self.price),
            is_consecutive=self.is_consecutive,
            expiry_date=self.expiry_date,
            status=PassStatus(self.status),
            duration_days=self.duration_days,
        )

    def __repr__(self) -> str:
        return (
            f"<Subscription {self.student_id}/{self.group_id} "
            f"{self.lessons_total}x{self.price} from {self.purchase_date} [{self.status}]>"
        )
