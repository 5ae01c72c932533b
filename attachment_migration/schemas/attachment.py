"""Attachment descriptor schema and column payload parsing."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict

from attachment_migration.exceptions import AttachmentParseError


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class AttachmentDescriptor(BaseModel):
    """One entry of a serialized attachment column.

    Unknown keys are dropped on construction. Known keys keep whatever value
    was stored, untouched, so a descriptor is written back exactly as read
    apart from a newly assigned ``id``. Only fields that were present in the
    source payload (or assigned later) are written back by :meth:`dump`.
    """

    model_config = ConfigDict(extra="ignore")

    id: Any = None
    url: Any = None
    path: Any = None
    title: Any = None
    mimetype: Any = None
    size: Any = None
    icon: Any = None
    width: Any = None
    height: Any = None

    @classmethod
    def from_raw(cls, raw: Any) -> AttachmentDescriptor:
        """Normalize a decoded JSON object into a descriptor.

        Raises AttachmentParseError if ``raw`` is not an object.
        """
        if not isinstance(raw, dict):
            raise AttachmentParseError(f"Attachment entry is not an object: {raw!r}")
        return cls.model_validate(raw)

    @property
    def location_path(self) -> str | None:
        """``path`` when stored as text; any other value counts as absent."""
        return _text(self.path)

    @property
    def location_url(self) -> str | None:
        return _text(self.url)

    @property
    def file_url(self) -> str | None:
        """The path or URL identifying the backing file."""
        return self.location_path or self.location_url

    @property
    def file_size(self) -> int | float | None:
        """``size`` when it is a number of bytes, else None."""
        if isinstance(self.size, bool) or not isinstance(self.size, (int, float)):
            return None
        return self.size

    @property
    def declared_mimetype(self) -> str | None:
        return _text(self.mimetype)

    @property
    def has_location(self) -> bool:
        return "path" in self.model_fields_set or "url" in self.model_fields_set

    @property
    def has_id(self) -> bool:
        return bool(self.id)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def parse_attachments(value: Any) -> list[AttachmentDescriptor]:
    """Parse an attachment column value into descriptors.

    Accepts the JSON text stored by most drivers or an already decoded list.
    Raises AttachmentParseError for undecodable or non-list payloads.
    """
    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise AttachmentParseError(f"Attachment payload is not valid JSON: {exc}") from exc
    if not isinstance(value, list):
        raise AttachmentParseError(
            f"Attachment payload must be a list, got {type(value).__name__}"
        )
    return [AttachmentDescriptor.from_raw(item) for item in value]


def serialize_attachments(attachments: list[AttachmentDescriptor]) -> str:
    """Serialize descriptors back into column text."""
    return json.dumps([attachment.dump() for attachment in attachments])
