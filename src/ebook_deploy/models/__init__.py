"""Data models."""

from ebook_deploy.models.config import DeployConfig
from ebook_deploy.models.ebook import ChangeSet, ChangeSource, EbookMetadata
from ebook_deploy.models.result import (
    OutcomeStatus,
    RepositoryOutcome,
    Stage,
    StageResult,
    StageStatus,
)

__all__ = [
    # Configuration
    "DeployConfig",
    # Ebook models
    "EbookMetadata",
    "ChangeSet",
    "ChangeSource",
    # Result models
    "Stage",
    "StageStatus",
    "StageResult",
    "OutcomeStatus",
    "RepositoryOutcome",
]
