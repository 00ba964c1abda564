"""Read and patch the package metadata (content.opf)."""

import logging
import re

from bs4 import BeautifulSoup

from ebook_deploy.errors import MetadataError
from ebook_deploy.models.ebook import EbookMetadata

log = logging.getLogger(__name__)

# Unreleased ebooks carry this publication date until they're finished
DRAFT_DATE = "1900-01-01T00:00:00Z"

IDENTIFIER_PATTERN = re.compile(r"^url:https?://[^/]+/ebooks/(?P<path>.+?)/*$")
MODIFIED_PATTERN = re.compile(
    r'(<meta property="dcterms:modified">)[^<]*(</meta>)'
)


def _text(tag) -> str:
    return tag.get_text(strip=True) if tag is not None else ""


def parse_metadata(opf: str) -> EbookMetadata:
    """Extract identifier, title and draft status from content.opf."""
    soup = BeautifulSoup(opf, "xml")

    identifier_tag = soup.find("identifier", id="uid") or soup.find("identifier")
    raw_identifier = _text(identifier_tag)
    if not raw_identifier:
        raise MetadataError("content.opf has no dc:identifier")

    match = IDENTIFIER_PATTERN.match(raw_identifier)
    if not match:
        raise MetadataError(f"Unrecognized ebook identifier: {raw_identifier}")
    identifier = match.group("path").strip()
    if not identifier:
        raise MetadataError(f"Empty ebook identifier: {raw_identifier}")

    title = _text(soup.find("title", id="title") or soup.find("title"))
    if not title:
        raise MetadataError("content.opf has no dc:title")

    dates = [_text(tag) for tag in soup.find_all("date")]

    return EbookMetadata(
        identifier=identifier,
        title=title,
        is_draft=DRAFT_DATE in dates,
    )


def set_modified_date(opf: str, modified: str) -> str:
    """Replace the dcterms:modified timestamp with ``modified``."""
    updated, count = MODIFIED_PATTERN.subn(rf"\g<1>{modified}\g<2>", opf)
    if count == 0:
        log.warning("content.opf has no dcterms:modified element; leaving it unchanged")
    return updated
