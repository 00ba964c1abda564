"""Move built output into the web root."""

import logging
import shutil
from pathlib import Path

from ebook_deploy.core.permissions import fix_tree
from ebook_deploy.errors import PublishError
from ebook_deploy.models.config import DeployConfig

log = logging.getLogger(__name__)

# Only distributors need the ONIX record; it's not served
EXCLUDED_FILES = ("onix.xml",)


class Publisher:
    """Replace an ebook's web directory and its cover images."""

    def __init__(self, config: DeployConfig):
        self.config = config

    def web_dir(self, identifier: str) -> Path:
        return self.config.ebooks_root / identifier

    def cover_path(self, url_safe_identifier: str) -> Path:
        """The thumbnail whose absence forces image regeneration."""
        return self.config.covers_dir / f"{url_safe_identifier}-cover.jpg"

    def _stage(self, work_dir: Path, staging: Path) -> None:
        staging.mkdir(parents=True)

        downloads = work_dir / "downloads"
        if downloads.is_dir():
            shutil.move(str(downloads), str(staging / "downloads"))

        for child in sorted((work_dir / "src").iterdir()):
            if child.name.startswith("."):
                continue
            shutil.move(str(child), str(staging / child.name))

        for name in EXCLUDED_FILES:
            for path in staging.rglob(name):
                path.unlink()

        fix_tree(staging, self.config.group)

    def publish_ebook(self, identifier: str, work_dir: Path) -> Path:
        """Swap the built tree in ``work_dir`` into the ebook's web directory.

        The new tree is assembled beside the target and renamed into place,
        so the old tree is only removed once the new one is complete.
        """
        target = self.web_dir(identifier)
        staging = target.with_name(f".{target.name}.staging")
        backup = target.with_name(f".{target.name}.old")

        try:
            for leftover in (staging, backup):
                if leftover.exists():
                    log.warning("Removing leftover %s from an interrupted run", leftover)
                    shutil.rmtree(leftover)

            self._stage(work_dir, staging)

            if target.exists():
                target.rename(backup)
            staging.rename(target)
            if backup.exists():
                shutil.rmtree(backup)
        except OSError as e:
            if backup.exists() and not target.exists():
                backup.rename(target)
            shutil.rmtree(staging, ignore_errors=True)
            raise PublishError(f"Could not publish {identifier} to {target}: {e}") from e

        log.info("Published %s to %s", identifier, target)
        return target

    def publish_images(self, images: list[Path]) -> list[Path]:
        """Move generated images into the shared covers directory."""
        covers_dir = self.config.covers_dir
        published: list[Path] = []
        try:
            covers_dir.mkdir(parents=True, exist_ok=True)
            for image in images:
                destination = covers_dir / image.name
                shutil.move(str(image), str(destination))
                published.append(destination)
            fix_tree(covers_dir, self.config.group)
        except OSError as e:
            raise PublishError(f"Could not move cover images to {covers_dir}: {e}") from e

        return published
