"""Storage key derivation for attachment descriptors."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import quote, unquote, urlsplit

if TYPE_CHECKING:
    from attachment_migration.schemas.attachment import AttachmentDescriptor

DEFAULT_UPLOADS_PREFIX = "nc/uploads/"

_LEGACY_DOWNLOAD_PREFIX = re.compile(r"^download/")

# Characters left untouched when percent-encoding a whole URL.
_URL_SAFE_CHARS = ":/?#[]@!$&'()*+,;=~"


def strip_legacy_prefix(path: str) -> str:
    """Remove the ``download/`` prefix older clients stored in ``path``."""
    return _LEGACY_DOWNLOAD_PREFIX.sub("", path, count=1)


def normalize_url(url: str, uploads_prefix: str = DEFAULT_UPLOADS_PREFIX) -> str:
    """Reduce an attachment URL to its path below the uploads root.

    ``https://host/nc/uploads/2024/a b.png`` becomes ``2024/a b.png``. The URL
    is encoded only to be parsed, so escapes already present are preserved.
    URLs without the uploads root keep their full (decoded) path.
    """
    encoded = quote(url, safe=_URL_SAFE_CHARS)
    pathname = urlsplit(encoded).path
    marker = re.escape(uploads_prefix)
    relative = re.sub(rf"^.*?{marker}", "", pathname, count=1)
    return unquote(relative)


def storage_key(
    attachment: AttachmentDescriptor,
    uploads_prefix: str = DEFAULT_UPLOADS_PREFIX,
) -> str | None:
    """Return the staging key for an attachment, or None if it has no location."""
    path = attachment.location_path
    url = attachment.location_url
    relative = strip_legacy_prefix(path) if path else ""
    if not relative and url:
        relative = normalize_url(url, uploads_prefix)
    if not relative:
        return None
    return f"{uploads_prefix}{relative}"
