"""
Pydantic schemas for the HomeBoard HTTP API.

Field names are camelCase to match the JSON the web client already sends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from homeboard.db import ListingRecord, MediaFileRecord, NewListing


class MediaFile(BaseModel):
    fileName: str
    googleDriveId: str
    mimeType: str

    @classmethod
    def from_record(cls, record: MediaFileRecord) -> "MediaFile":
        return cls(
            fileName=record.file_name,
            googleDriveId=record.google_drive_id,
            mimeType=record.mime_type,
        )

    def to_record(self) -> MediaFileRecord:
        return MediaFileRecord(
            file_name=self.fileName,
            google_drive_id=self.googleDriveId,
            mime_type=self.mimeType,
        )


class HomeCreate(BaseModel):
    title: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, allow_inf_nan=False)
    deposit: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    size: str = Field(..., min_length=1)
    listingUrl: Optional[str] = None
    googleMapsUrl: Optional[str] = None
    notes: Optional[str] = None
    mediaFiles: list[MediaFile] = Field(default_factory=list)

    @field_validator("title", "address", "listingUrl", "googleMapsUrl")
    @classmethod
    def _trim(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if isinstance(value, str) else value

    @field_validator("title", "address", "size")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_new_listing(self) -> NewListing:
        return NewListing(
            title=self.title,
            address=self.address,
            price=self.price,
            size=self.size,
            deposit=self.deposit,
            listing_url=self.listingUrl or None,
            google_maps_url=self.googleMapsUrl or None,
            notes=self.notes,
            media_files=[media.to_record() for media in self.mediaFiles],
        )


class HomeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    title: str
    address: str
    price: float
    deposit: Optional[float] = None
    size: str
    listingUrl: Optional[str] = None
    googleMapsUrl: Optional[str] = None
    notes: Optional[str] = None
    mediaFiles: list[MediaFile]
    createdAt: datetime
    image: Optional[str] = None

    @classmethod
    def from_record(cls, record: ListingRecord, files_base_url: str) -> "HomeResponse":
        return cls(
            id=record.listing_id,
            title=record.title,
            address=record.address,
            price=record.price,
            deposit=record.deposit,
            size=record.size,
            listingUrl=record.listing_url,
            googleMapsUrl=record.google_maps_url,
            notes=record.notes,
            mediaFiles=[MediaFile.from_record(m) for m in record.media_files],
            createdAt=record.created_at,
            image=record.image_url(files_base_url),
        )


class MessageResponse(BaseModel):
    msg: str


class HealthResponse(BaseModel):
    status: str
