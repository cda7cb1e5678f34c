from __future__ import annotations

from pathlib import Path
from typing import Optional


class ApkStageError(RuntimeError):
    pass


class ConfigError(ApkStageError):
    """Malformed invocation flags, config file, or counter store. Fatal."""


class StoreIOError(ApkStageError):
    """Counter store could not be read or persisted. Fatal."""


class PublishIOError(ApkStageError):
    """A single artifact could not be copied. Recoverable per file."""

    def __init__(self, source: Path, destination: Path, cause: Optional[OSError] = None):
        self.source = source
        self.destination = destination
        self.cause = cause
        reason = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown error"
        super().__init__(f"failed to copy {source.name} -> {destination}: {reason}")

    def to_dict(self) -> dict:
        return {
            "source": str(self.source),
            "destination": str(self.destination),
            "error": str(self),
        }
