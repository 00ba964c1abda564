"""Publish-state cache keyed by repository, invalidated by git object ids."""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from ebook_deploy.cache.models import CacheIndex, PublishRecord

log = logging.getLogger(__name__)


class PublishCache:
    """Remembers the content hashes of the last successful publish."""

    INDEX_FILE = "publish_index.json"
    CACHE_VERSION = "1.0"

    def __init__(self, cache_dir: Path):
        self.cache_root = cache_dir
        self.index_path = self.cache_root / self.INDEX_FILE
        self._index: CacheIndex | None = None

    def _ensure_cache_dir(self) -> None:
        """Create cache directory if it doesn't exist."""
        self.cache_root.mkdir(parents=True, exist_ok=True)

    def _load_index(self) -> CacheIndex:
        """Load or create cache index."""
        if self._index is not None:
            return self._index

        if self.index_path.exists():
            try:
                data = json.loads(self.index_path.read_text())
                self._index = CacheIndex.model_validate(data)
            except (json.JSONDecodeError, ValidationError):
                log.warning("Ignoring unreadable cache index %s", self.index_path)
                self._index = CacheIndex()
        else:
            self._index = CacheIndex()

        return self._index

    def _save_index(self) -> None:
        """Save cache index to disk, replacing the old one in a single rename."""
        self._ensure_cache_dir()
        index = self._load_index()
        tmp_path = self.index_path.with_suffix(".tmp")
        tmp_path.write_text(index.model_dump_json(indent=2))
        tmp_path.replace(self.index_path)

    @staticmethod
    def key(repository: Path) -> str:
        return str(repository.resolve())

    def get(self, repository: Path) -> PublishRecord | None:
        """Return the last publish record for ``repository``, if any."""
        record = self._load_index().entries.get(self.key(repository))
        if record is not None and record.cache_version != self.CACHE_VERSION:
            return None
        return record

    def record(self, record: PublishRecord) -> None:
        """Store ``record`` as the latest publish of its repository."""
        record.cache_version = self.CACHE_VERSION
        index = self._load_index()
        index.entries[record.repository] = record
        self._save_index()

    def clear_cache(self) -> int:
        """Clear all cached data. Returns number of entries cleared."""
        if not self.index_path.exists():
            return 0

        count = len(self._load_index().entries)
        self.index_path.unlink()
        self._index = None
        return count

    def list_cached(self) -> list[PublishRecord]:
        """List all publish records, oldest first."""
        index = self._load_index()
        return sorted(index.entries.values(), key=lambda r: r.published_at)
