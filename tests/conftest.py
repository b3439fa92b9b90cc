"""Shared test fixtures."""

from __future__ import annotations

import hashlib
import io
import tarfile
from pathlib import Path

import pytest
from helpers import FakeRunner

from fipsbuild.observability import StructuredLogger
from fipsbuild.settings import Settings


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger(echo=False)


@pytest.fixture
def root(tmp_path: Path) -> Path:
    path = tmp_path / "root"
    path.mkdir()
    return path


@pytest.fixture
def openssl_archive(tmp_path: Path) -> tuple[Path, str]:
    """A tiny stand-in for the OpenSSL release tarball and its digest."""
    archive = tmp_path / "downloads" / "openssl-3.0.13.tar.gz"
    archive.parent.mkdir()
    with tarfile.open(archive, "w:gz") as tar:
        for name, content in (
            ("openssl-3.0.13/Configure", b"#!/usr/bin/env perl\n"),
            ("openssl-3.0.13/README.md", b"OpenSSL\n"),
        ):
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return archive, hashlib.sha256(archive.read_bytes()).hexdigest()


@pytest.fixture
def settings(root: Path, openssl_archive: tuple[Path, str]) -> Settings:
    archive, digest = openssl_archive
    return Settings(root=root, openssl_url=archive.as_uri(), openssl_sha256=digest)
