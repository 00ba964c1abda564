"""Data models describing the ebook being published."""

from enum import Enum

from pydantic import BaseModel, Field


class EbookMetadata(BaseModel):
    """Fields read from the package metadata (content.opf)."""

    identifier: str  # e.g. "jane-austen/emma"
    title: str
    is_draft: bool = False

    @property
    def url_safe_identifier(self) -> str:
        """Identifier usable as a flat file name ("/" becomes "_")."""
        return self.identifier.replace("/", "_")


class ChangeSource(str, Enum):
    """Where a change classification came from."""

    DIFF = "diff"
    CACHE = "cache"
    NONE = "none"


class ChangeSet(BaseModel):
    """Which parts of the repository changed since the last publish."""

    images_changed: bool = True
    source_changed: bool = True
    source: ChangeSource = ChangeSource.NONE
    paths: list[str] = Field(default_factory=list)
