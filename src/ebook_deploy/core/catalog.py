"""Cache rebuild and catalog regeneration hooks."""

import logging

from ebook_deploy.core.commands import Toolchain
from ebook_deploy.core.permissions import fix_tree
from ebook_deploy.models.config import DeployConfig

log = logging.getLogger(__name__)

CATALOG_GENERATORS = ("generate-opds", "generate-rss")


class CatalogRefresher:
    """Run the helper scripts that keep the site's caches and feeds current."""

    def __init__(self, toolchain: Toolchain, config: DeployConfig):
        self.toolchain = toolchain
        self.config = config

    def rebuild_cache(self, identifier: str) -> None:
        log.info("Rebuilding cache for %s", identifier)
        self.toolchain.helper("rebuild-cache", identifier)

    def regenerate(self) -> None:
        """Regenerate the OPDS and RSS feeds for the whole site."""
        for generator in CATALOG_GENERATORS:
            log.info("Running %s", generator)
            self.toolchain.helper(
                generator,
                "--webroot", str(self.config.webroot),
                "--weburl", self.config.weburl,
            )

        for catalog_dir in self.config.catalog_dirs:
            fix_tree(catalog_dir, self.config.group)
