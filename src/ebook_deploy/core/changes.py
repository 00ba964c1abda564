"""Decide which parts of an ebook need rebuilding.

Both classifiers err towards rebuilding: an unrelated change under ``src/``
triggers a build, but a change that matters is never missed.
"""

import logging
from pathlib import Path

from ebook_deploy.cache.manager import PublishCache
from ebook_deploy.cache.models import PublishRecord
from ebook_deploy.core.repository import COVER_JPG, COVER_SVG, GitRepository
from ebook_deploy.models.ebook import ChangeSet, ChangeSource

log = logging.getLogger(__name__)

IMAGE_PATHS = frozenset({COVER_JPG, COVER_SVG})
SOURCE_PREFIX = "src/"


def classify_paths(paths: list[str]) -> ChangeSet:
    """Classify the paths of a diff."""
    return ChangeSet(
        images_changed=any(path in IMAGE_PATHS for path in paths),
        source_changed=any(path.startswith(SOURCE_PREFIX) for path in paths),
        source=ChangeSource.DIFF,
        paths=paths,
    )


def current_record(repo: GitRepository, identifier: str) -> PublishRecord:
    """Content hashes of HEAD, in the shape the cache stores them."""
    return PublishRecord(
        repository=PublishCache.key(repo.path),
        identifier=identifier,
        src_hash=repo.object_hash("src"),
        cover_jpg_hash=repo.object_hash(COVER_JPG),
        cover_svg_hash=repo.object_hash(COVER_SVG),
    )


def classify_hashes(previous: PublishRecord, current: PublishRecord) -> ChangeSet:
    """Compare content hashes of the last publish against HEAD."""
    images_changed = (
        previous.cover_jpg_hash != current.cover_jpg_hash
        or previous.cover_svg_hash != current.cover_svg_hash
    )
    return ChangeSet(
        images_changed=images_changed,
        source_changed=previous.src_hash != current.src_hash,
        source=ChangeSource.CACHE,
    )


def published_epub_exists(web_dir: Path) -> bool:
    downloads = web_dir / "downloads"
    return downloads.is_dir() and any(downloads.glob("*.epub"))


def detect_changes(
    repo: GitRepository,
    last_push_hash: str | None,
    cache: PublishCache | None,
    current: PublishRecord | None,
    cover_path: Path,
    web_dir: Path,
) -> ChangeSet:
    """Work out what changed since the last publish.

    A diff against ``last_push_hash`` wins over the cache; with neither,
    everything is considered changed. Missing published output always
    forces a rebuild of that output.
    """
    if last_push_hash:
        changes = classify_paths(repo.changed_paths(last_push_hash))
    elif cache is not None and current is not None:
        previous = cache.get(repo.path)
        if previous is None:
            changes = ChangeSet()
        else:
            changes = classify_hashes(previous, current)
    else:
        changes = ChangeSet()

    if not changes.images_changed and not cover_path.is_file():
        log.info("No published cover at %s, regenerating images", cover_path)
        changes.images_changed = True

    if not changes.source_changed and not published_epub_exists(web_dir):
        log.info("No published ebook in %s, rebuilding", web_dir)
        changes.source_changed = True

    return changes
