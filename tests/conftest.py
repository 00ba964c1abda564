"""Shared fixtures: a fake command runner standing in for git, se, convert and cavif."""

from __future__ import annotations

import grp
import os
import subprocess
from pathlib import Path

import pytest

from ebook_deploy.core.commands import CommandRunner, Toolchain
from ebook_deploy.errors import ToolError
from ebook_deploy.models.config import DeployConfig

COMMIT_TIMESTAMP = "1700000000"  # 2023-11-14T22:13:20Z


def make_opf(
    identifier: str = "url:https://standardebooks.org/ebooks/jane-austen/emma",
    title: str = "Emma",
    date: str = "2020-05-01T00:00:00Z",
) -> str:
    return f"""<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://www.idpf.org/2007/opf" unique-identifier="uid" version="3.0">
	<metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
		<dc:identifier id="uid">{identifier}</dc:identifier>
		<dc:date>{date}</dc:date>
		<meta property="dcterms:modified">2020-05-01T00:00:00Z</meta>
		<dc:title id="title">{title}</dc:title>
		<dc:language>en-GB</dc:language>
	</metadata>
</package>
"""


CHAPTER = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xml:lang="en-GB">
	<head>
		<title>Chapter 1</title>
		<link href="../css/local.css" rel="stylesheet" type="text/css"/>
	</head>
	<body>
		<p>See <a href="chapter-2.xhtml#note-1">note 1</a>.</p>
	</body>
</html>
"""

CSS = """p{
	-epub-hyphens: auto;
	margin: 0;
}
"""


def populate_clone(destination: Path, opf: str) -> None:
    """Lay out what a clone of an ebook repository contains."""
    epub = destination / "src" / "epub"
    (epub / "text").mkdir(parents=True)
    (epub / "css").mkdir()
    (destination / "src" / "META-INF").mkdir()
    (destination / ".git").mkdir()
    (destination / ".git" / "index.xhtml").write_text("<title>not content</title>")
    (epub / "content.opf").write_text(opf)
    (epub / "onix.xml").write_text("<ONIXMessage/>")
    (epub / "text" / "chapter-1.xhtml").write_text(CHAPTER)
    (epub / "css" / "local.css").write_text(CSS)
    (destination / "src" / "META-INF" / "container.xml").write_text("<container/>")
    (destination / "src" / "mimetype").write_text("application/epub+zip")


class FakeRunner(CommandRunner):
    """Records every command and fakes the side effects of the real tools."""

    def __init__(self, opf: str | None = None):
        self.commands: list[list[str]] = []
        self.blobs: dict[str, bytes] = {
            "images/cover.jpg": b"\xff\xd8JPEG",
            "images/cover.svg": b'<svg><image href="cover.jpg"/></svg>',
        }
        if opf is not None:
            self.blobs["src/epub/content.opf"] = opf.encode("utf-8")
        self.opf = opf or make_opf()
        self.changed: list[str] = []
        self.hashes: dict[str, str] = {
            "src": "tree-src-1",
            "images/cover.jpg": "blob-jpg-1",
            "images/cover.svg": "blob-svg-1",
        }
        self.fail_on: set[str] = set()

    def ran(self, *prefix: str) -> list[list[str]]:
        """Commands whose leading arguments match ``prefix``."""
        return [c for c in self.commands if c[: len(prefix)] == list(prefix)]

    def _complete(self, command, stdout, binary, returncode=0):
        if binary and isinstance(stdout, str):
            stdout = stdout.encode("utf-8")
        return subprocess.CompletedProcess(command, returncode, stdout, b"" if binary else "")

    def run(self, command, *, cwd=None, env=None, binary=False, check=True):
        command = [str(part) for part in command]
        self.commands.append(command)

        tool = Path(command[0]).name
        if tool == "git":
            tool = f"git {command[3]}" if command[1] == "-C" else f"git {command[1]}"
        elif tool == "se":
            tool = f"se {command[1]}"

        if tool in self.fail_on:
            if check:
                raise ToolError(command, 1, f"{tool} failed")
            return self._complete(command, "", binary, returncode=1)

        if tool == "git show":
            relative = command[4].removeprefix("HEAD:")
            if relative not in self.blobs:
                raise ToolError(command, 128, f"fatal: path '{relative}' does not exist")
            return self._complete(command, self.blobs[relative], binary)
        if tool == "git diff":
            return self._complete(command, "\n".join(self.changed) + "\n", binary)
        if tool == "git rev-parse":
            relative = command[-1].removeprefix("HEAD:")
            if relative not in self.hashes:
                return self._complete(command, "", binary, returncode=1)
            return self._complete(command, self.hashes[relative] + "\n", binary)
        if tool == "git log":
            return self._complete(command, COMMIT_TIMESTAMP + "\n", binary)
        if tool == "git clone":
            populate_clone(Path(command[-1]), self.opf)
            return self._complete(command, "", binary)
        if tool == "se build":
            output_dir = Path(next(a for a in command if a.startswith("--output-dir=")).split("=", 1)[1])
            (output_dir / "emma.epub").write_bytes(b"PK")
            (output_dir / "emma.azw3").write_bytes(b"MOBI")
            return self._complete(command, "", binary)
        if tool == "se recompose-epub":
            output = Path(next(a for a in command if a.startswith("--output=")).split("=", 1)[1])
            output.write_text(
                "<html><head><title>Emma</title>"
                '<link href="/css/web.css" rel="stylesheet"/></head>'
                '<body class="single"><p>All of it.</p></body></html>'
            )
            return self._complete(command, "", binary)
        if tool == "convert":
            Path(command[-1]).write_bytes(b"JPEG")
            return self._complete(command, "", binary)
        if tool == "cavif":
            Path(command[command.index("-o") + 1]).write_bytes(b"AVIF")
            return self._complete(command, "", binary)

        return self._complete(command, "", binary)


@pytest.fixture
def group_name() -> str:
    """A group the test process may chgrp files to."""
    return grp.getgrgid(os.getgid()).gr_name


@pytest.fixture
def scripts_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "scripts"
    directory.mkdir()
    for name in ("generate-opds", "generate-rss", "rebuild-cache"):
        script = directory / name
        script.write_text("#!/bin/sh\n")
        script.chmod(0o755)
    return directory


@pytest.fixture
def repository(tmp_path: Path) -> Path:
    repo = tmp_path / "emma.git"
    repo.mkdir()
    return repo


@pytest.fixture
def config(tmp_path: Path, scripts_dir: Path, group_name: str, repository: Path) -> DeployConfig:
    webroot = tmp_path / "web"
    (webroot / "www" / "css").mkdir(parents=True)
    return DeployConfig(
        group=group_name,
        webroot=webroot,
        scripts_dir=scripts_dir,
        repositories=[repository],
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner(opf=make_opf())


@pytest.fixture
def toolchain(runner: FakeRunner, scripts_dir: Path) -> Toolchain:
    return Toolchain(runner, scripts_dir)


@pytest.fixture
def all_tools_present(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "ebook_deploy.core.commands.shutil.which", lambda name: f"/usr/bin/{name}"
    )
