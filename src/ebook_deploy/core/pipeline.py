"""Per-repository publish pipeline.

Each stage is a function of a ``RepositoryRun`` returning a ``StageResult``.
A stage that raises ``DeployError``, ``OSError`` or ``UnicodeDecodeError``
fails the repository without touching the rest of the batch; temporary
directories are released on every exit path.
"""

import logging
import shutil
import tempfile
from collections.abc import Callable
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path

from ebook_deploy.cache.manager import PublishCache
from ebook_deploy.cache.models import PublishRecord
from ebook_deploy.core.catalog import CatalogRefresher
from ebook_deploy.core.changes import current_record, detect_changes
from ebook_deploy.core.commands import Toolchain
from ebook_deploy.core.images import CoverImageGenerator
from ebook_deploy.core.metadata import parse_metadata, set_modified_date
from ebook_deploy.core.publisher import Publisher
from ebook_deploy.core.repository import CONTENT_OPF, GitRepository
from ebook_deploy.core.webcompat import WebCompatRewriter, navbar_injector, rewrite_file
from ebook_deploy.errors import DeployError, MetadataError, ToolError
from ebook_deploy.models.config import DeployConfig
from ebook_deploy.models.ebook import ChangeSet, EbookMetadata
from ebook_deploy.models.result import (
    OutcomeStatus,
    RepositoryOutcome,
    Stage,
    StageResult,
    StageStatus,
)

log = logging.getLogger(__name__)

SINGLE_PAGE = "single-page.xhtml"


@dataclass
class RepositoryRun:
    """Mutable state threaded through the stages for one repository."""

    repo: GitRepository
    stack: ExitStack
    metadata: EbookMetadata | None = None
    changes: ChangeSet | None = None
    current: PublishRecord | None = None
    build_images: bool = False
    build_ebook: bool = False
    images: list[Path] = field(default_factory=list)
    work_dir: Path | None = None
    single_page: Path | None = None
    web_dir: Path | None = None

    def temp_dir(self, prefix: str) -> Path:
        """A directory that is removed when the run ends, however it ends."""
        return Path(self.stack.enter_context(tempfile.TemporaryDirectory(prefix=prefix)))

    def require_metadata(self) -> EbookMetadata:
        """The metadata read by the skip check; later stages can't run without it."""
        if self.metadata is None:
            raise DeployError("Package metadata has not been read")
        return self.metadata

    @property
    def identifier(self) -> str:
        return self.require_metadata().identifier


StageHandler = Callable[[RepositoryRun], StageResult]


class PublishPipeline:
    """Run every stage for one repository at a time."""

    def __init__(
        self,
        config: DeployConfig,
        toolchain: Toolchain,
        cache: PublishCache | None = None,
    ):
        self.config = config
        self.toolchain = toolchain
        self.cache = cache
        self.publisher = Publisher(config)
        self.image_generator = CoverImageGenerator(toolchain, config.group)
        self.catalog = CatalogRefresher(toolchain, config)
        self._handlers: dict[Stage, StageHandler] = {
            Stage.SKIP_CHECK: self._skip_check,
            Stage.DIFF_CLASSIFY: self._diff_classify,
            Stage.IMAGE_GENERATE: self._image_generate,
            Stage.BUILD_AND_VALIDATE: self._build_and_validate,
            Stage.RECOMPOSE: self._recompose,
            Stage.WEB_COMPAT_REWRITE: self._web_compat_rewrite,
            Stage.PUBLISH: self._publish,
            Stage.CACHE_REFRESH: self._cache_refresh,
        }

    def run(self, repository: Path) -> RepositoryOutcome:
        """Process ``repository`` through every stage, stopping at the first failure."""
        outcome = RepositoryOutcome(repository=repository)
        repo = GitRepository(repository, self.toolchain.runner)

        with ExitStack() as stack:
            state = RepositoryRun(repo=repo, stack=stack)
            for stage in Stage:
                try:
                    result = self._handlers[stage](state)
                except DeployError as e:
                    result = StageResult.failed(stage, str(e))
                except (OSError, UnicodeDecodeError) as e:
                    result = StageResult.failed(stage, f"{type(e).__name__}: {e}")

                outcome.stages.append(result)
                if state.metadata is not None:
                    outcome.identifier = state.metadata.identifier

                if result.status == StageStatus.FAILED:
                    log.error("%s: %s failed: %s", repository, stage.value, result.reason)
                    outcome.status = OutcomeStatus.FAILED
                    outcome.error = result.reason
                    return outcome

                if stage == Stage.SKIP_CHECK and result.status == StageStatus.SKIPPED:
                    log.info("%s: %s", repository, result.reason)
                    outcome.status = OutcomeStatus.SKIPPED
                    return outcome

        publish = outcome.stage(Stage.PUBLISH)
        if publish is not None and publish.status == StageStatus.SKIPPED:
            outcome.status = OutcomeStatus.UNCHANGED
        return outcome

    # Stages

    def _skip_check(self, state: RepositoryRun) -> StageResult:
        if not state.repo.path.is_dir():
            raise DeployError(f"Repository not found: {state.repo.path}")

        try:
            opf = state.repo.read_text(CONTENT_OPF)
        except (ToolError, UnicodeDecodeError) as e:
            raise MetadataError(f"Could not read {CONTENT_OPF} at HEAD: {e}") from e

        state.metadata = parse_metadata(opf)
        if state.metadata.is_draft:
            return StageResult.skipped(Stage.SKIP_CHECK, "Draft ebook, skipping")
        return StageResult.completed(Stage.SKIP_CHECK)

    def _diff_classify(self, state: RepositoryRun) -> StageResult:
        metadata = state.require_metadata()

        if self.cache is not None:
            state.current = current_record(state.repo, metadata.identifier)

        state.changes = detect_changes(
            state.repo,
            self.config.last_push_hash,
            self.cache,
            state.current,
            cover_path=self.publisher.cover_path(metadata.url_safe_identifier),
            web_dir=self.publisher.web_dir(metadata.identifier),
        )
        state.build_images = self.config.images and state.changes.images_changed
        state.build_ebook = self.config.build and state.changes.source_changed

        log.info(
            "%s: images %s, build %s (from %s)",
            metadata.identifier,
            "needed" if state.build_images else "not needed",
            "needed" if state.build_ebook else "not needed",
            state.changes.source.value,
        )
        return StageResult.completed(Stage.DIFF_CLASSIFY)

    def _image_generate(self, state: RepositoryRun) -> StageResult:
        if not self.config.images:
            return StageResult.skipped(Stage.IMAGE_GENERATE, "Image generation disabled")
        if not state.build_images:
            return StageResult.skipped(Stage.IMAGE_GENERATE, "Cover unchanged")

        metadata = state.require_metadata()
        scratch = state.temp_dir("ebook-deploy-images-")
        state.images = self.image_generator.generate(
            state.repo, metadata.url_safe_identifier, scratch
        )
        return StageResult.completed(Stage.IMAGE_GENERATE, artifact=scratch)

    def _build_and_validate(self, state: RepositoryRun) -> StageResult:
        if not self.config.build:
            return StageResult.skipped(Stage.BUILD_AND_VALIDATE, "Build disabled")
        if not state.build_ebook:
            return StageResult.skipped(Stage.BUILD_AND_VALIDATE, "Sources unchanged")

        work_dir = state.temp_dir("ebook-deploy-work-")
        state.repo.clone(work_dir)
        downloads = work_dir / "downloads"
        downloads.mkdir()

        log.info("Building %s", state.identifier)
        self.toolchain.build(work_dir, downloads, check=self.config.epubcheck)

        # Catalogs use this timestamp, so it should track the content, not the build
        opf_path = work_dir / CONTENT_OPF
        modified = state.repo.last_commit_date()
        opf_path.write_text(
            set_modified_date(opf_path.read_text(encoding="utf-8"), modified),
            encoding="utf-8",
        )

        state.work_dir = work_dir
        return StageResult.completed(Stage.BUILD_AND_VALIDATE, artifact=downloads)

    def _recompose(self, state: RepositoryRun) -> StageResult:
        if state.work_dir is None:
            return StageResult.skipped(Stage.RECOMPOSE, "Ebook not built")
        if not self.config.recompose:
            return StageResult.skipped(Stage.RECOMPOSE, "Recomposition disabled")

        # Kept outside src/ until the source rewrites are done; the tool
        # already links the web stylesheet
        output = state.work_dir / SINGLE_PAGE
        self.toolchain.recompose(state.work_dir, output, self.config.web_css)
        rewrite_file(output, [navbar_injector(state.identifier)])

        state.single_page = output
        return StageResult.completed(Stage.RECOMPOSE, artifact=output)

    def _web_compat_rewrite(self, state: RepositoryRun) -> StageResult:
        if state.work_dir is None:
            return StageResult.skipped(Stage.WEB_COMPAT_REWRITE, "Ebook not built")

        epub_dir = state.work_dir / "src" / "epub"
        WebCompatRewriter(state.require_metadata().title).rewrite_sources(epub_dir)

        if state.single_page is not None:
            text_dir = epub_dir / "text"
            text_dir.mkdir(parents=True, exist_ok=True)
            state.single_page = Path(
                shutil.move(str(state.single_page), str(text_dir / SINGLE_PAGE))
            )

        WebCompatRewriter.add_viewport(state.work_dir)
        return StageResult.completed(Stage.WEB_COMPAT_REWRITE, artifact=epub_dir)

    def _publish(self, state: RepositoryRun) -> StageResult:
        if state.work_dir is None and not state.images:
            return StageResult.skipped(Stage.PUBLISH, "Nothing changed")

        metadata = state.require_metadata()

        if state.work_dir is not None:
            state.web_dir = self.publisher.publish_ebook(metadata.identifier, state.work_dir)
        if state.images:
            self.publisher.publish_images(state.images)

        self._update_cache(state)
        return StageResult.completed(
            Stage.PUBLISH, artifact=state.web_dir or self.config.covers_dir
        )

    def _cache_refresh(self, state: RepositoryRun) -> StageResult:
        if state.web_dir is None and not state.images:
            return StageResult.skipped(Stage.CACHE_REFRESH, "Nothing published")

        self.catalog.rebuild_cache(state.identifier)
        return StageResult.completed(Stage.CACHE_REFRESH)

    def _update_cache(self, state: RepositoryRun) -> None:
        """Record the hashes of what actually got published."""
        if self.cache is None or state.current is None:
            return

        previous = self.cache.get(state.repo.path)
        record = previous.model_copy() if previous is not None else PublishRecord(
            repository=state.current.repository,
            identifier=state.current.identifier,
        )
        record.identifier = state.current.identifier
        if state.web_dir is not None:
            record.src_hash = state.current.src_hash
        if state.images:
            record.cover_jpg_hash = state.current.cover_jpg_hash
            record.cover_svg_hash = state.current.cover_svg_hash
        record.published_at = state.current.published_at
        self.cache.record(record)
