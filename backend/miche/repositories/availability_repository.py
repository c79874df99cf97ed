# backend/miche/repositories/availability_repository.py
"""
Availability Repository for Miche Mobile

Working hours and blocked intervals. Working hours are always replaced as a
whole set (delete-all then insert-all) inside one unit of work.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.availability import BlockedInterval, WorkingHours
from .base_repository import BaseRepository


class AvailabilityRepository(BaseRepository[BlockedInterval]):
    def __init__(self, db: Session):
        super().__init__(db, BlockedInterval)

    # Working hours

    def get_working_hours(self, professional_id: str) -> List[WorkingHours]:
        try:
            return (
                self.db.query(WorkingHours)
                .filter(WorkingHours.professional_id == professional_id)
                .order_by(WorkingHours.weekday)
                .all()
            )
        except SQLAlchemyError as e:
            self._raise_storage_error("retrieve working hours for", e)

    def replace_working_hours(
        self, professional_id: str, entries: Sequence[Dict[str, Any]]
    ) -> List[WorkingHours]:
        try:
            self.db.query(WorkingHours).filter(
                WorkingHours.professional_id == professional_id
            ).delete(synchronize_session=False)
            rows = [WorkingHours(professional_id=professional_id, **entry) for entry in entries]
            self.db.add_all(rows)
            self.db.flush()
            return rows
        except SQLAlchemyError as e:
            self._raise_storage_error("replace working hours for", e)

    # Blocked intervals

    def list_blocked_intervals(
        self,
        professional_id: str,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> List[BlockedInterval]:
        """Blocked intervals for a professional, optionally only those touching a window."""
        try:
            query = self.db.query(BlockedInterval).filter(
                BlockedInterval.professional_id == professional_id
            )
            if window_end is not None:
                query = query.filter(BlockedInterval.start_at <= window_end)
            if window_start is not None:
                query = query.filter(BlockedInterval.end_at >= window_start)
            return query.order_by(BlockedInterval.start_at).all()
        except SQLAlchemyError as e:
            self._raise_storage_error("list", e)

    def find_overlapping_blocked(
        self,
        professional_id: str,
        start_at: datetime,
        end_at: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[BlockedInterval]:
        """Half-open overlap between blocked intervals; touching intervals do not overlap."""
        try:
            query = self.db.query(BlockedInterval).filter(
                BlockedInterval.professional_id == professional_id,
                BlockedInterval.start_at < end_at,
                BlockedInterval.end_at > start_at,
            )
            if exclude_id:
                query = query.filter(BlockedInterval.id != exclude_id)
            return query.all()
        except SQLAlchemyError as e:
            self._raise_storage_error("query", e)
