"""Publish-state cache data models."""

from datetime import datetime

from pydantic import BaseModel, Field


class PublishRecord(BaseModel):
    """Content hashes of what was last published from a repository."""

    repository: str  # Resolved path of the bare repository
    identifier: str
    src_hash: str | None = None  # git tree id of HEAD:src
    cover_jpg_hash: str | None = None  # git blob ids of the cover sources
    cover_svg_hash: str | None = None
    published_at: datetime = Field(default_factory=datetime.now)
    cache_version: str = "1.0"


class CacheIndex(BaseModel):
    """Index mapping repository paths to their last publish record."""

    entries: dict[str, PublishRecord] = Field(default_factory=dict)
