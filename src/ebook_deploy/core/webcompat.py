"""Rewrite ebook markup so it can be served as ordinary web pages.

Every transform is idempotent: running the whole set twice leaves the
output of the first pass unchanged.
"""

import html
import logging
import os
import re
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

log = logging.getLogger(__name__)

WEB_CSS_LINK = '<link href="/css/web.css" media="screen" rel="stylesheet" type="text/css"/>'
VIEWPORT_META = '<meta content="width=device-width, initial-scale=1" name="viewport"/>'
NAVBAR_MARKER = '<header><nav><ul><li><a href="/">'

EPUB_CSS_PATTERN = re.compile(r"\s*-epub-[^;]+?;")
XML_LANG_PATTERN = re.compile(r'xml:lang="([^"]+)"(?!\s+lang=")')
BODY_PATTERN = re.compile(r"<body([^>]*)>")

SKIP_DIRS = {".git"}

Transform = Callable[[str], str]


def strip_xhtml_extensions(text: str) -> str:
    """Drop .xhtml from internal references; the web server resolves bare names."""
    return text.replace(".xhtml", "")


def _inject_after_title(text: str, element: str) -> str:
    if element in text:
        return text
    return text.replace("</title>", f"</title>\n\t\t{element}", 1)


def inject_stylesheet(text: str) -> str:
    return _inject_after_title(text, WEB_CSS_LINK)


def inject_viewport(text: str) -> str:
    return _inject_after_title(text, VIEWPORT_META)


def strip_epub_css(text: str) -> str:
    """Remove -epub-* declarations, which are invalid outside a reading system."""
    return EPUB_CSS_PATTERN.sub("", text)


def add_lang_attributes(text: str) -> str:
    """Mirror every xml:lang="x" with a plain lang="x" for HTML parsers."""
    return XML_LANG_PATTERN.sub(r'xml:lang="\1" lang="\1"', text)


def title_prefixer(work_title: str) -> Transform:
    """Build a transform prefixing each <title> with the work's title."""
    prefix = f"{html.escape(work_title, quote=False)} - "
    pattern = re.compile(rf"<title>(?!{re.escape(prefix)})")

    def prefix_title(text: str) -> str:
        return pattern.sub(lambda _: f"<title>{prefix}", text)

    return prefix_title


def navbar_injector(identifier: str) -> Transform:
    """Build a transform adding a header that links back to the ebook page."""
    navbar = (
        f'{NAVBAR_MARKER}Standard Ebooks</a></li>'
        f'<li><a href="/ebooks/{identifier}">Back to ebook</a></li></ul></nav></header>'
    )

    def inject_navbar(text: str) -> str:
        if NAVBAR_MARKER in text:
            return text
        return BODY_PATTERN.sub(lambda m: f"<body{m.group(1)}>{navbar}", text, count=1)

    return inject_navbar


def iter_files(root: Path, suffixes: Iterable[str]) -> Iterator[Path]:
    """Yield files under ``root`` with one of ``suffixes``, skipping .git."""
    suffixes = tuple(suffixes)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
        for filename in sorted(filenames):
            if filename.endswith(suffixes):
                yield Path(dirpath) / filename


def rewrite_file(path: Path, transforms: Iterable[Transform]) -> bool:
    """Apply ``transforms`` in order; write back only if something changed."""
    original = path.read_text(encoding="utf-8")
    text = original
    for transform in transforms:
        text = transform(text)
    if text == original:
        return False
    path.write_text(text, encoding="utf-8")
    return True


class WebCompatRewriter:
    """Apply the web compatibility transforms to a cloned ebook tree."""

    def __init__(self, work_title: str):
        self.xhtml_transforms: list[Transform] = [
            strip_xhtml_extensions,
            inject_stylesheet,
            add_lang_attributes,
            title_prefixer(work_title),
        ]
        self.css_transforms: list[Transform] = [strip_epub_css]

    def rewrite_sources(self, epub_dir: Path) -> int:
        """Rewrite the XHTML and CSS under ``epub_dir``. Returns files changed."""
        changed = 0
        for path in iter_files(epub_dir, [".xhtml"]):
            changed += rewrite_file(path, self.xhtml_transforms)
        for path in iter_files(epub_dir, [".css"]):
            changed += rewrite_file(path, self.css_transforms)
        log.info("Rewrote %d source file(s) for the web", changed)
        return changed

    @staticmethod
    def add_viewport(root: Path) -> int:
        """Add the viewport meta element to every page under ``root``."""
        changed = 0
        for path in iter_files(root, [".xhtml", ".html"]):
            changed += rewrite_file(path, [inject_viewport])
        return changed
