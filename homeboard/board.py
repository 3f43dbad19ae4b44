"""
Terminal board: a list/detail/add view-state machine over the HTTP API.

Homes are fetched once on load. The detail view is resolved against the
in-memory list, so a home deleted elsewhere renders as "not found" rather than
triggering a re-fetch.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import requests

from homeboard.client import HomeBoardClient

logger = logging.getLogger(__name__)

FETCH_ERROR = "Failed to fetch homes. Is the backend server running?"
ADD_ERROR = "Failed to add the new home. Please try again."
DELETE_ERROR = "Failed to delete the home. Please try again."
NOT_FOUND_MESSAGE = "Home not found. It might have been deleted."
NO_MEDIA_MESSAGE = "No media available."


@dataclass(frozen=True)
class ListView:
    name: str = "list"


@dataclass(frozen=True)
class DetailView:
    home_id: str
    name: str = "detail"


@dataclass(frozen=True)
class AddView:
    name: str = "add"


ViewState = Union[ListView, DetailView, AddView]


@dataclass
class HomeForm:
    """Raw form input; numbers stay strings until validated."""

    title: str = ""
    address: str = ""
    price: str = ""
    deposit: str = ""
    size: str = ""
    listing_url: str = ""
    google_maps_url: str = ""
    notes: str = ""

    def validate(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        if not self.title.strip():
            errors["title"] = "Title is required"
        if not self.address.strip():
            errors["address"] = "Address is required"
        price = _parse_number(self.price)
        if price is None or price < 0:
            errors["price"] = "A valid price is required"
        if self.deposit.strip() and _parse_number(self.deposit) is None:
            errors["deposit"] = "Deposit must be a number"
        if not self.size.strip():
            errors["size"] = "Size information is required"
        return errors

    def to_payload(self, media_files: list[dict[str, Any]]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": self.title,
            "address": self.address,
            "price": _parse_number(self.price),
            "size": self.size,
            "mediaFiles": media_files,
        }
        if self.deposit.strip():
            payload["deposit"] = _parse_number(self.deposit)
        if self.listing_url.strip():
            payload["listingUrl"] = self.listing_url
        if self.google_maps_url.strip():
            payload["googleMapsUrl"] = self.google_maps_url
        if self.notes:
            payload["notes"] = self.notes
        return payload


def _parse_number(value: str) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def format_card_price(price: float) -> str:
    return f"₹{price:,.0f}"


def format_detail_price(price: Optional[float]) -> str:
    if not price:
        return "N/A"
    return f"${price:,.2f}"


def format_added_date(created_at: str) -> str:
    parsed = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def render_list(homes: Sequence[dict[str, Any]]) -> str:
    if not homes:
        return 'No homes yet!\nClick "Add Home" to get started.'
    cards = []
    for home in homes:
        cards.append(
            "\n".join(
                [
                    f"[{home['_id']}] {home['title']}",
                    f"  {home['address']}",
                    f"  {format_card_price(home['price'])}",
                    f"  {home['size']}",
                ]
            )
        )
    return "\n\n".join(cards)


def render_detail(home: dict[str, Any], file_url=None) -> str:
    lines = [home["title"], home["address"], ""]
    price_line = format_detail_price(home.get("price"))
    if home.get("deposit"):
        price_line += f" ({format_detail_price(home['deposit'])} deposit)"
    lines.append(price_line)
    lines += ["", "Details", f"  Size: {home['size']}"]
    if home.get("listingUrl"):
        lines.append(f"  Listing: {home['listingUrl']}")
    if home.get("googleMapsUrl"):
        lines.append(f"  Map: {home['googleMapsUrl']}")
    lines.append(f"  Added: {format_added_date(home['createdAt'])}")
    if home.get("notes"):
        lines += ["", "Notes", home["notes"]]

    lines += ["", "Media"]
    media_files = home.get("mediaFiles") or []
    if not media_files:
        lines.append(f"  {NO_MEDIA_MESSAGE}")
    for media in media_files:
        kind = "image" if media["mimeType"].startswith("image/") else "video"
        target = file_url(media["googleDriveId"]) if file_url else media["googleDriveId"]
        lines.append(f"  [{kind}] {media['fileName']} -> {target}")
    return "\n".join(lines)


def render_add_form(form: HomeForm, errors: dict[str, str]) -> str:
    labels = [
        ("title", "Title"),
        ("address", "Address"),
        ("price", "Price (USD)"),
        ("deposit", "Deposit (USD, Optional)"),
        ("size", "Size"),
        ("listing_url", "Listing URL"),
        ("google_maps_url", "Google Maps URL"),
        ("notes", "Notes"),
    ]
    lines = ["Add New Home"]
    for key, label in labels:
        lines.append(f"  {label}: {getattr(form, key)}")
        if key in errors:
            lines.append(f"    ! {errors[key]}")
    return "\n".join(lines)


@dataclass
class BoardApp:
    client: HomeBoardClient
    homes: list[dict[str, Any]] = field(default_factory=list)
    view: ViewState = field(default_factory=ListView)
    is_loading: bool = False
    error: Optional[str] = None
    form: HomeForm = field(default_factory=HomeForm)
    form_errors: dict[str, str] = field(default_factory=dict)

    def load(self) -> None:
        self.is_loading = True
        try:
            self.homes = self.client.get_homes()
            self.error = None
        except requests.RequestException as exc:
            logger.error("Fetching homes failed: %s", exc)
            self.error = FETCH_ERROR
        finally:
            self.is_loading = False

    def open_list(self) -> None:
        self.view = ListView()

    def open_detail(self, home_id: str) -> None:
        self.view = DetailView(home_id=home_id)

    def open_add(self) -> None:
        self.form = HomeForm()
        self.form_errors = {}
        self.view = AddView()

    def selected_home(self) -> Optional[dict[str, Any]]:
        if not isinstance(self.view, DetailView):
            return None
        for home in self.homes:
            if home["_id"] == self.view.home_id:
                return home
        return None

    def submit_new_home(
        self, form: HomeForm, media_paths: Sequence[Union[Path, str]] = ()
    ) -> bool:
        """
        Upload media first, then create the record: two round-trips.

        On success the new home is placed at the front of the list and the
        board returns to the list view.
        """
        self.form = form
        self.form_errors = form.validate()
        if self.form_errors:
            return False
        try:
            media_files = self.client.upload_files(media_paths) if media_paths else []
            added = self.client.add_home(form.to_payload(media_files))
        except (requests.RequestException, OSError) as exc:
            logger.error("Adding home failed: %s", exc)
            self.error = ADD_ERROR
            return False
        self.homes.insert(0, added)
        self.view = ListView()
        return True

    def delete_home(self, home_id: str) -> bool:
        try:
            self.client.delete_home(home_id)
        except requests.RequestException as exc:
            logger.error("Deleting home %s failed: %s", home_id, exc)
            self.error = DELETE_ERROR
            return False
        self.homes = [home for home in self.homes if home["_id"] != home_id]
        self.view = ListView()
        return True

    def render(self) -> str:
        if self.is_loading:
            return "Loading homes..."
        if self.error:
            return self.error
        if isinstance(self.view, AddView):
            return render_add_form(self.form, self.form_errors)
        if isinstance(self.view, DetailView):
            home = self.selected_home()
            if home is None:
                return NOT_FOUND_MESSAGE
            return render_detail(home, self.client.file_url)
        return render_list(self.homes)
