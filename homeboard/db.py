"""
Listing store abstraction: SQLAlchemy-backed and in-memory implementations.
"""

from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol

from sqlalchemy import JSON, Column, DateTime, Float, String, Text, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from homeboard.errors import ValidationError

LISTING_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_listing_id(listing_id: str) -> bool:
    return bool(LISTING_ID_PATTERN.match(listing_id or ""))


@dataclass(frozen=True)
class MediaFileRecord:
    """A file held by the media gateway and owned by exactly one listing."""

    file_name: str
    google_drive_id: str
    mime_type: str

    def as_dict(self) -> dict:
        return {
            "fileName": self.file_name,
            "googleDriveId": self.google_drive_id,
            "mimeType": self.mime_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MediaFileRecord":
        return cls(
            file_name=data["fileName"],
            google_drive_id=data["googleDriveId"],
            mime_type=data["mimeType"],
        )


@dataclass
class NewListing:
    """Listing fields supplied by the caller; id and timestamp come from the store."""

    title: str
    address: str
    price: float
    size: str
    deposit: Optional[float] = None
    listing_url: Optional[str] = None
    google_maps_url: Optional[str] = None
    notes: Optional[str] = None
    media_files: list[MediaFileRecord] = field(default_factory=list)

    def validate(self) -> None:
        missing = [
            name
            for name in ("title", "address", "size")
            if not (getattr(self, name) or "").strip()
        ]
        if self.price is None:
            missing.append("price")
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if not math.isfinite(self.price) or self.price < 0:
            raise ValidationError("price must be a non-negative number")
        if self.deposit is not None and (not math.isfinite(self.deposit) or self.deposit < 0):
            raise ValidationError("deposit must be non-negative")


@dataclass
class ListingRecord:
    listing_id: str
    title: str
    address: str
    price: float
    size: str
    created_at: datetime
    deposit: Optional[float] = None
    listing_url: Optional[str] = None
    google_maps_url: Optional[str] = None
    notes: Optional[str] = None
    media_files: list[MediaFileRecord] = field(default_factory=list)

    def image_url(self, files_base_url: str) -> Optional[str]:
        """URL of the first media file, served through the file proxy."""
        if not self.media_files:
            return None
        return f"{files_base_url.rstrip('/')}/{self.media_files[0].google_drive_id}"


class ListingStore(Protocol):
    """Interface for listing persistence."""

    def insert(self, listing: NewListing) -> ListingRecord:
        ...

    def find_all(self) -> list[ListingRecord]:
        ...

    def find_by_id(self, listing_id: str) -> Optional[ListingRecord]:
        ...

    def delete_by_id(self, listing_id: str) -> Optional[ListingRecord]:
        ...


def _new_record(listing: NewListing, now: datetime) -> ListingRecord:
    listing.validate()
    return ListingRecord(
        listing_id=uuid.uuid4().hex,
        title=listing.title.strip(),
        address=listing.address.strip(),
        price=float(listing.price),
        size=listing.size,
        created_at=now,
        deposit=float(listing.deposit) if listing.deposit is not None else None,
        listing_url=listing.listing_url.strip() if listing.listing_url else None,
        google_maps_url=(
            listing.google_maps_url.strip() if listing.google_maps_url else None
        ),
        notes=listing.notes,
        media_files=list(listing.media_files),
    )


class InMemoryListingStore:
    """Simple in-memory store for development and tests."""

    def __init__(self, clock: Clock = _utcnow):
        self.clock = clock
        self.listings: Dict[str, ListingRecord] = {}

    def insert(self, listing: NewListing) -> ListingRecord:
        record = _new_record(listing, self.clock())
        self.listings[record.listing_id] = record
        return replace(record)

    def find_all(self) -> list[ListingRecord]:
        # dicts keep insertion order, so equal timestamps stay newest-first too
        records = list(reversed(self.listings.values()))
        records.sort(key=lambda record: record.created_at, reverse=True)
        return [replace(record) for record in records]

    def find_by_id(self, listing_id: str) -> Optional[ListingRecord]:
        if not is_valid_listing_id(listing_id):
            return None
        record = self.listings.get(listing_id)
        return replace(record) if record else None

    def delete_by_id(self, listing_id: str) -> Optional[ListingRecord]:
        if not is_valid_listing_id(listing_id):
            return None
        return self.listings.pop(listing_id, None)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.listings.clear()


class SqlListingStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, clock: Clock = _utcnow):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlListingStore")
        self.clock = clock
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_record(self, row: "HomeRow") -> ListingRecord:
        created_at = row.created_at
        # SQLite drops tzinfo on the way back.
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return ListingRecord(
            listing_id=row.id,
            title=row.title,
            address=row.address,
            price=row.price,
            size=row.size,
            created_at=created_at,
            deposit=row.deposit,
            listing_url=row.listing_url,
            google_maps_url=row.google_maps_url,
            notes=row.notes,
            media_files=[MediaFileRecord.from_dict(m) for m in row.media_files or []],
        )

    def insert(self, listing: NewListing) -> ListingRecord:
        record = _new_record(listing, self.clock())
        with self.Session() as session:
            row = HomeRow(
                id=record.listing_id,
                title=record.title,
                address=record.address,
                price=record.price,
                deposit=record.deposit,
                size=record.size,
                listing_url=record.listing_url,
                google_maps_url=record.google_maps_url,
                notes=record.notes,
                media_files=[media.as_dict() for media in record.media_files],
                created_at=record.created_at,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(row)

    def find_all(self) -> list[ListingRecord]:
        with self.Session() as session:
            stmt = select(HomeRow).order_by(HomeRow.created_at.desc())
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(row) for row in rows]

    def find_by_id(self, listing_id: str) -> Optional[ListingRecord]:
        if not is_valid_listing_id(listing_id):
            return None
        with self.Session() as session:
            row = session.get(HomeRow, listing_id)
            if not row:
                return None
            return self._to_record(row)

    def delete_by_id(self, listing_id: str) -> Optional[ListingRecord]:
        if not is_valid_listing_id(listing_id):
            return None
        with self.Session() as session:
            row = session.get(HomeRow, listing_id)
            if not row:
                return None
            record = self._to_record(row)
            session.delete(row)
            session.commit()
            return record


Base = declarative_base()


class HomeRow(Base):
    __tablename__ = "homes"

    id = Column(String(32), primary_key=True)
    title = Column(String, nullable=False)
    address = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    deposit = Column(Float, nullable=True)
    size = Column(String, nullable=False)
    listing_url = Column(String, nullable=True)
    google_maps_url = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    media_files = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
