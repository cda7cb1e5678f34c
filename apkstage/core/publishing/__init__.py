from .artifacts import Artifact, classify_architecture, destination_filename, select_artifacts
from .publisher import CopyRecord, PublishResult, publish

__all__ = [
    "Artifact",
    "classify_architecture",
    "destination_filename",
    "select_artifacts",
    "CopyRecord",
    "PublishResult",
    "publish",
]
