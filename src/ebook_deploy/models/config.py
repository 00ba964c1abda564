"""Deployment configuration."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_GROUP = "se"
DEFAULT_WEBROOT = Path("/standardebooks.org/web")
DEFAULT_WEBURL = "https://standardebooks.org"


class DeployConfig(BaseModel):
    """Options for one deployment run."""

    group: str = DEFAULT_GROUP
    webroot: Path = DEFAULT_WEBROOT
    weburl: str = DEFAULT_WEBURL
    scripts_dir: Path
    cache_dir: Path | None = None
    images: bool = True
    build: bool = True
    epubcheck: bool = True
    recompose: bool = True
    last_push_hash: str | None = None
    verbose: bool = False
    repositories: list[Path] = Field(default_factory=list)

    @field_validator("weburl")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("group")
    @classmethod
    def require_group(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("group must not be empty")
        return value

    @field_validator("last_push_hash")
    @classmethod
    def blank_hash_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @property
    def www(self) -> Path:
        return self.webroot / "www"

    @property
    def ebooks_root(self) -> Path:
        return self.www / "ebooks"

    @property
    def covers_dir(self) -> Path:
        return self.www / "images" / "covers"

    @property
    def web_css(self) -> Path:
        """Stylesheet handed to the recomposition tool."""
        return self.www / "css" / "web.css"

    @property
    def catalog_dirs(self) -> list[Path]:
        return [self.www / "opds", self.www / "rss"]
