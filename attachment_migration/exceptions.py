"""Migration exception types.

Convention:
- ``AttachmentParseError``: malformed attachment payloads. Recovered locally:
  the affected column is skipped for that row and processing continues.
- ``InventoryError`` / ``ReconcileError``: operational failures. They
  propagate to ``AttachmentMigration.run()``, which logs them and reports
  failure. Checkpoints written before the failure stay valid.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base class for attachment migration failures."""


class InventoryError(MigrationError):
    """Raised when staging the storage inventory fails.

    The first recorded failure is chained as ``__cause__``.
    """


class ReconcileError(MigrationError):
    """Raised when reconciling a model's attachments fails operationally."""


class AttachmentParseError(MigrationError, ValueError):
    """Raised when an attachment column value cannot be decoded."""
