"""Derive the cover thumbnails and hero banners for an ebook's web page."""

import logging
from dataclasses import dataclass
from pathlib import Path

from ebook_deploy.core.commands import Toolchain
from ebook_deploy.core.permissions import set_group_writable
from ebook_deploy.core.repository import COVER_JPG, COVER_SVG, GitRepository

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rendition:
    """One derived image: a resize, an optional crop, and its source."""

    suffix: str
    resize: str
    crop: str | None
    from_svg: bool


# Hero banners are cropped from the raster cover; thumbnails are rendered
# from the SVG so the title lettering stays crisp.
RENDITIONS = (
    Rendition("hero", "1318", "1318x439+0+659", from_svg=False),
    Rendition("hero@2x", "2636", "2636x860+0+1318", from_svg=False),
    Rendition("cover", "242", None, from_svg=True),
    Rendition("cover@2x", "484", None, from_svg=True),
)

IMAGE_FORMATS = ("jpg", "avif")


def image_names(url_safe_identifier: str) -> list[str]:
    """File names generated for an ebook, in generation order."""
    return [
        f"{url_safe_identifier}-{rendition.suffix}.{fmt}"
        for rendition in RENDITIONS
        for fmt in IMAGE_FORMATS
    ]


class CoverImageGenerator:
    """Extract the cover sources from HEAD and render every size."""

    def __init__(self, toolchain: Toolchain, group: str):
        self.toolchain = toolchain
        self.group = group

    def generate(
        self, repo: GitRepository, url_safe_identifier: str, scratch_dir: Path
    ) -> list[Path]:
        """Write all renditions into ``scratch_dir`` and return their paths."""
        jpg_source = scratch_dir / f"{url_safe_identifier}.jpg"
        svg_source = scratch_dir / f"{url_safe_identifier}.svg"

        jpg_source.write_bytes(repo.read_blob(COVER_JPG))

        # The SVG embeds the JPG by relative name; point it at our renamed copy
        svg = repo.read_text(COVER_SVG)
        svg_source.write_text(
            svg.replace("cover.jpg", jpg_source.name), encoding="utf-8"
        )

        generated: list[Path] = []
        for rendition in RENDITIONS:
            jpg = scratch_dir / f"{url_safe_identifier}-{rendition.suffix}.jpg"
            avif = jpg.with_suffix(".avif")
            source = svg_source if rendition.from_svg else jpg_source
            log.info("Rendering %s", jpg.name)
            # convert resolves the SVG's relative image link against its cwd
            self.toolchain.convert(
                source, jpg, rendition.resize, rendition.crop, cwd=scratch_dir
            )
            self.toolchain.encode_avif(jpg, avif)
            generated += [jpg, avif]

        for path in generated:
            set_group_writable(path, self.group)

        return generated
