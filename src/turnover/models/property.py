"""Property and calendar source models."""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from turnover.database import Base
from turnover.models.booking import Platform


def _new_id() -> str:
    return str(uuid.uuid4())


class Property(Base):
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    short_name: Mapped[str] = mapped_column(String(50), nullable=False)
    color_hex: Mapped[str] = mapped_column(String(6), default="1E90FF")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    sources: Mapped[list["CalendarSource"]] = relationship(
        back_populates="prop",
        cascade="all, delete-orphan",
        order_by="CalendarSource.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Property id={self.id!r} name={self.name!r}>"

    @property
    def complex_name(self) -> str:
        """"Kawama" from "Kawama C-2"; a generic label for one-word names."""
        parts = self.display_name.split(" ", 1)
        return parts[0] if len(parts) > 1 else "Complex"

    @property
    def unit_name(self) -> str:
        """"C-2" from "Kawama C-2"."""
        parts = self.display_name.split(" ", 1)
        return parts[1] if len(parts) > 1 else self.display_name


class CalendarSource(Base):
    __tablename__ = "calendar_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[str] = mapped_column(ForeignKey("properties.id"), nullable=False)
    platform_name: Mapped[str] = mapped_column("platform", String(50), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)

    prop: Mapped["Property"] = relationship(back_populates="sources")

    def __init__(self, platform: Platform | str, url: str, **kwargs) -> None:
        super().__init__(platform_name=Platform.parse(platform).value, url=url, **kwargs)

    def __repr__(self) -> str:
        return f"<CalendarSource platform={self.platform_name!r} url={self.url!r}>"

    @property
    def platform(self) -> Platform:
        return Platform.parse(self.platform_name)
