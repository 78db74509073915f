"""Exception types for the migration map engine."""

from typing import Optional


class MigrationMapError(Exception):
    """Base class for all migration map errors."""


class DatasetLoadError(MigrationMapError):
    """Raised when one of the upstream datasets cannot be loaded or parsed."""

    def __init__(self, dataset: str, source: Optional[str] = None, reason: str = ""):
        self.dataset = dataset
        self.source = source
        self.reason = reason
        location = f" from {source}" if source else ""
        detail = f": {reason}" if reason else ""
        super().__init__(f"Failed to load {dataset} dataset{location}{detail}")


class SinkRemovedError(MigrationMapError):
    """Raised when a render sink is used after it has been removed."""
