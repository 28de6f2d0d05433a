from datetime import datetime, timezone

from sqlalchemy import DateTime, event
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HardDeleteForbidden(RuntimeError):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class SoftDeleteMixin:
    """Rows are retired by stamping ``deleted_at``; they are never removed."""

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@event.listens_for(SoftDeleteMixin, "before_delete", propagate=True)
def _refuse_hard_delete(mapper, connection, target):
    # A physical delete would orphan the entity's audit history.
    raise HardDeleteForbidden(f"{type(target).__name__} {target.id} can only be soft-deleted")
