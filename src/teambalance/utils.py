from __future__ import annotations

from typing import Literal, Optional
from urllib.parse import urlsplit

PreviewKind = Literal["pdf", "image", "download"]

_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif"}
LINK_DISPLAY_LIMIT = 60


# PUBLIC_INTERFACE
def member_key(member: str) -> str:
    """Normalized grouping key for an assignee name: trimmed and lower-cased."""
    return member.strip().lower()


# PUBLIC_INTERFACE
def display_url(url: str, limit: int = LINK_DISPLAY_LIMIT) -> str:
    """
    Shorten a link for display.

    Args:
        url: The link as stored on the evidence.
        limit: Maximum number of characters kept before the ellipsis.

    Returns:
        The url unchanged when it fits, otherwise its first `limit` characters followed by '...'.
    """
    if len(url) > limit:
        return url[:limit] + "..."
    return url


# PUBLIC_INTERFACE
def preview_kind(file_name: str) -> PreviewKind:
    """
    Decide how an evidence file can be viewed, from its extension:
    - 'pdf' for .pdf
    - 'image' for .jpg/.jpeg/.png/.gif
    - 'download' for anything else
    """
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    if extension == "pdf":
        return "pdf"
    if extension in _IMAGE_EXTENSIONS:
        return "image"
    return "download"


_INLINE_MIME_TYPES = {
    "pdf": {"application/pdf"},
    "image": {"image/png", "image/jpeg", "image/gif"},
}
_WEB_SCHEMES = {"http", "https"}


# PUBLIC_INTERFACE
def inline_mime_type(file_name: str, mime_type: str) -> Optional[str]:
    """
    Return the MIME type to serve an evidence file inline with, or None when it
    must be downloaded. Only PDFs and images whose declared type agrees with
    their extension are shown inline.
    """
    kind = preview_kind(file_name)
    declared = mime_type.split(";", 1)[0].strip().lower()
    if declared in _INLINE_MIME_TYPES.get(kind, set()):
        return declared
    return None


# PUBLIC_INTERFACE
def is_web_url(url: str) -> bool:
    """True for absolute http(s) links with a host."""
    parts = urlsplit(url.strip())
    return parts.scheme.lower() in _WEB_SCHEMES and bool(parts.netloc)
