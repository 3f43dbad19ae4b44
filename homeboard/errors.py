"""
Domain exceptions shared by the store, the media gateway and the routes.
"""

from __future__ import annotations


class HomeBoardError(Exception):
    """Base class for HomeBoard failures."""


class ValidationError(HomeBoardError):
    """A listing payload is missing required fields."""


class ListingNotFoundError(HomeBoardError):
    def __init__(self, listing_id: str):
        super().__init__(f"Home not found: {listing_id}")
        self.listing_id = listing_id


class MediaGatewayError(HomeBoardError):
    """Base class for failures reported by the external storage service."""


class UploadError(MediaGatewayError):
    def __init__(self, file_name: str, message: str = ""):
        super().__init__(f"Upload failed for {file_name!r}: {message}".rstrip(": "))
        self.file_name = file_name


class MediaNotFoundError(MediaGatewayError):
    def __init__(self, file_id: str):
        super().__init__(f"File not found in storage: {file_id}")
        self.file_id = file_id


class TransportError(MediaGatewayError):
    """Network, timeout or permission failure talking to the storage service."""


class PartialCascadeFailure(HomeBoardError):
    """
    Some media files could not be removed while deleting a listing.

    Only ever logged: the listing record is deleted regardless.
    """

    def __init__(self, listing_id: str, failed_ids: list[str]):
        super().__init__(
            f"Failed to delete {len(failed_ids)} media file(s) for home "
            f"{listing_id}: {', '.join(failed_ids)}"
        )
        self.listing_id = listing_id
        self.failed_ids = failed_ids
