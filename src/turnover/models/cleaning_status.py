"""Cleaning status model and its persisted row."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from turnover.database import Base
from turnover.dates import local_now


class CleaningState(str, Enum):
    PENDING = "pending"        # not started, checkout not reached
    TODO = "todo"              # checkout happened, needs cleaning
    IN_PROGRESS = "inProgress"
    DONE = "done"

    @property
    def display_name(self) -> str:
        return {
            CleaningState.PENDING: "Pending",
            CleaningState.TODO: "To do",
            CleaningState.IN_PROGRESS: "Doing...",
            CleaningState.DONE: "Done!",
        }[self]

    @property
    def color_name(self) -> str:
        return {
            CleaningState.PENDING: "gray",
            CleaningState.TODO: "red",
            CleaningState.IN_PROGRESS: "orange",
            CleaningState.DONE: "green",
        }[self]

    @property
    def needs_attention(self) -> bool:
        return self in (CleaningState.TODO, CleaningState.IN_PROGRESS)


@dataclass
class CleaningStatus:
    property_key: str
    date: date
    booking_id: str
    status: CleaningState = CleaningState.PENDING
    last_updated: datetime = field(default_factory=local_now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def key(self) -> tuple[str, date]:
        return (self.property_key, self.date)

    def update_status(self, new_status: CleaningState, now: datetime | None = None) -> None:
        self.status = new_status
        self.last_updated = now or local_now()


class CleaningStatusRecord(Base):
    __tablename__ = "cleaning_statuses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    property_key: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    booking_id: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<CleaningStatusRecord {self.property_key!r} {self.date} status={self.status!r}>"

    @classmethod
    def from_status(cls, status: CleaningStatus) -> CleaningStatusRecord:
        return cls(
            id=status.id,
            property_key=status.property_key,
            date=status.date,
            booking_id=status.booking_id,
            status=status.status.value,
            last_updated=status.last_updated,
        )

    def to_status(self) -> CleaningStatus:
        return CleaningStatus(
            id=self.id,
            property_key=self.property_key,
            date=self.date,
            booking_id=self.booking_id,
            status=CleaningState(self.status),
            # SQLite drops the offset; stored values are local wall time
            last_updated=(
                self.last_updated
                if self.last_updated.tzinfo is not None
                else self.last_updated.astimezone()
            ),
        )
