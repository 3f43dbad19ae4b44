"""
Shared fixtures for the HomeBoard tests.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

from homeboard.db import MediaFileRecord, NewListing


def ticking_clock(start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
    """Clock that advances one second per call, so insert order is creation order."""
    ticks = itertools.count()
    return lambda: start + timedelta(seconds=next(ticks))


def make_listing(title: str = "Lakeview Cottage", **overrides) -> NewListing:
    fields = {
        "title": title,
        "address": "12 Shore Road",
        "price": 450000,
        "size": "2 bed, 1 bath",
    }
    fields.update(overrides)
    return NewListing(**fields)


def make_media(*ids: str) -> list[MediaFileRecord]:
    return [
        MediaFileRecord(file_name=f"{file_id}.jpg", google_drive_id=file_id, mime_type="image/jpeg")
        for file_id in ids
    ]
