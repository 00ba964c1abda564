"""Stage and repository results produced by the publish pipeline."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class Stage(str, Enum):
    """Pipeline stages, in execution order."""

    SKIP_CHECK = "skip_check"
    DIFF_CLASSIFY = "diff_classify"
    IMAGE_GENERATE = "image_generate"
    BUILD_AND_VALIDATE = "build_and_validate"
    RECOMPOSE = "recompose"
    WEB_COMPAT_REWRITE = "web_compat_rewrite"
    PUBLISH = "publish"
    CACHE_REFRESH = "cache_refresh"


class StageStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class StageResult(BaseModel):
    """Outcome of a single stage: an artifact on success, a reason otherwise."""

    stage: Stage
    status: StageStatus
    artifact: Path | None = None
    reason: str | None = None

    @classmethod
    def completed(cls, stage: Stage, artifact: Path | None = None) -> "StageResult":
        return cls(stage=stage, status=StageStatus.COMPLETED, artifact=artifact)

    @classmethod
    def skipped(cls, stage: Stage, reason: str) -> "StageResult":
        return cls(stage=stage, status=StageStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, stage: Stage, reason: str) -> "StageResult":
        return cls(stage=stage, status=StageStatus.FAILED, reason=reason)


class OutcomeStatus(str, Enum):
    PUBLISHED = "published"
    UNCHANGED = "unchanged"  # Nothing needed rebuilding
    SKIPPED = "skipped"  # Draft
    FAILED = "failed"


class RepositoryOutcome(BaseModel):
    """Everything that happened to one repository during a run."""

    repository: Path
    identifier: str | None = None
    status: OutcomeStatus = OutcomeStatus.PUBLISHED
    stages: list[StageResult] = Field(default_factory=list)
    error: str | None = None

    def stage(self, stage: Stage) -> StageResult | None:
        """Return the recorded result for ``stage``, if it ran."""
        for result in self.stages:
            if result.stage == stage:
                return result
        return None
