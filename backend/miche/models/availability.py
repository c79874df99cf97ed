# backend/miche/models/availability.py
"""
Schedule models: recurring weekly working hours and ad-hoc blocked intervals.

Working hours are wall-clock times with no timezone column; they are read in
the single configured schedule timezone. Blocked intervals are absolute,
timezone-aware instants.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
import ulid

from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkingHours(Base):
    """One row per professional per weekday (0 = Monday ... 6 = Sunday)."""

    __tablename__ = "working_hours"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    professional_id = Column(
        String(26), ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    weekday = Column(Integer, nullable=False)
    is_working = Column(Boolean, nullable=False, default=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("professional_id", "weekday", name="uq_working_hours_professional_weekday"),
        CheckConstraint("weekday BETWEEN 0 AND 6", name="check_working_hours_weekday"),
    )

    def __repr__(self) -> str:
        return (
            f"<WorkingHours {self.professional_id} day={self.weekday} "
            f"{self.start_time}-{self.end_time} working={self.is_working}>"
        )


class BlockedInterval(Base):
    __tablename__ = "blocked_intervals"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    professional_id = Column(
        String(26), ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    reason = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (CheckConstraint("end_at > start_at", name="check_blocked_interval_order"),)

    def __repr__(self) -> str:
        return f"<BlockedInterval {self.id} {self.start_at}..{self.end_at}>"
