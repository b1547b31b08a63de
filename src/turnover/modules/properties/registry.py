"""Property and calendar source registry backed by the database."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from turnover.database import SessionFactory, SessionLocal
from turnover.models.booking import Platform
from turnover.models.property import CalendarSource, Property

logger = logging.getLogger(__name__)

SourceSpec = tuple[Platform | str, str]


class PropertyRegistry:
    """Keeps every configured property in memory and mirrors edits to the database.

    Ids never change once a property exists; its sources can be replaced at
    any time. A failed database write is logged and the in-memory registry
    keeps the edit for the session.
    """

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory or SessionLocal
        self._properties: dict[str, Property] = {}

    def load(self) -> int:
        session = self._session_factory()
        try:
            props = session.scalars(select(Property).order_by(Property.name)).all()
            self._properties = {p.id: p for p in props}
        except SQLAlchemyError:
            logger.warning("Could not load properties", exc_info=True)
        finally:
            session.close()
        return len(self._properties)

    def all(self) -> list[Property]:
        return list(self._properties.values())

    def get(self, property_id: str) -> Property | None:
        return self._properties.get(property_id)

    def get_by_name(self, name: str) -> Property | None:
        """Match on slug, display name or short name."""
        for prop in self._properties.values():
            if name in (prop.name, prop.display_name, prop.short_name):
                return prop
        return None

    def add(
        self,
        name: str,
        display_name: str,
        short_name: str,
        sources: Iterable[SourceSpec] = (),
        *,
        property_id: str | None = None,
        color_hex: str = "1E90FF",
    ) -> Property:
        if property_id is not None and property_id in self._properties:
            raise ValueError(f"Property {property_id!r} already exists")

        prop = Property(
            id=property_id or str(uuid.uuid4()),
            name=name,
            display_name=display_name,
            short_name=short_name,
            color_hex=color_hex,
            sources=_build_sources(sources),
        )
        self._persist(prop)
        self._properties[prop.id] = prop
        logger.info("Added property %s (%s)", prop.display_name, prop.id)
        return prop

    def set_sources(self, property_id: str, sources: Iterable[SourceSpec]) -> Property:
        prop = self._properties.get(property_id)
        if prop is None:
            raise KeyError(property_id)

        new_sources = list(sources)
        session = self._session_factory()
        try:
            stored = session.get(Property, property_id)
            if stored is None:
                # An earlier write failed; store the property as it is now
                prop.sources = _build_sources(new_sources)
                session.add(prop)
            else:
                stored.sources = _build_sources(new_sources)
            session.commit()
            if stored is not None:
                prop = stored
        except SQLAlchemyError:
            session.rollback()
            logger.warning("Failed to save sources for property %s", property_id, exc_info=True)
            prop.sources = _build_sources(new_sources)
        finally:
            session.close()

        self._properties[property_id] = prop
        logger.info("Property %s now has %d calendar sources", property_id, len(prop.sources))
        return prop

    def seed_from_config(self, settings: dict[str, Any]) -> int:
        """Add properties listed in config; refresh sources of known ones."""
        added = 0
        for prop_cfg in settings.get("properties") or []:
            sources = [(s["platform"], s["url"]) for s in prop_cfg.get("sources") or []]
            existing = self.get(prop_cfg["id"]) if prop_cfg.get("id") else None
            if existing is None:
                existing = self.get_by_name(prop_cfg["name"])

            if existing is not None:
                current = [(s.platform, s.url) for s in existing.sources]
                wanted = [(Platform.parse(p), url) for p, url in sources]
                if current != wanted:
                    self.set_sources(existing.id, sources)
                continue

            self.add(
                prop_cfg["name"],
                prop_cfg.get("display_name", prop_cfg["name"]),
                prop_cfg.get("short_name", prop_cfg["name"]),
                sources,
                property_id=prop_cfg.get("id"),
                color_hex=str(prop_cfg.get("color_hex", "1E90FF")),
            )
            added += 1
        if added:
            logger.info("Seeded %d properties from config", added)
        return added

    def _persist(self, prop: Property) -> None:
        session = self._session_factory()
        try:
            session.add(prop)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.warning("Failed to save property %s", prop.name, exc_info=True)
        finally:
            session.close()


def _build_sources(sources: Iterable[SourceSpec]) -> list[CalendarSource]:
    return [
        CalendarSource(platform=platform, url=url, position=position)
        for position, (platform, url) in enumerate(sources)
    ]