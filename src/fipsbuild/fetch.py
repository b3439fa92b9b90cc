"""Integrity-enforced source archive fetch and extraction."""

from __future__ import annotations

import hashlib
import os
import tarfile
from pathlib import Path
from urllib.error import URLError
from urllib.request import urlopen

from fipsbuild.errors import ConfigurationError, ExternalToolError, IntegrityError


def fetch(url: str, *, sha256: str, dest_dir: str | Path, filename: str | None = None) -> Path:
    """Download ``url`` into ``dest_dir`` once its SHA-256 matches ``sha256``.

    Nothing is written to disk until the digest has been checked, so a
    tampered archive never reaches extraction.
    """
    if not sha256:
        raise ConfigurationError("fetch() requires a sha256 value.")
    target_dir = Path(dest_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    artifact_path = target_dir / (filename or url.rstrip("/").rsplit("/", 1)[-1])

    try:
        with urlopen(url) as response:  # noqa: S310 - integrity check is mandatory below
            payload = response.read()
    except (URLError, OSError) as exc:
        raise ExternalToolError(
            "Failed to download source archive.",
            hint="Check network access to the download host.",
            context={"operation": "fetch", "url": url, "reason": str(exc)},
        ) from exc

    actual_sha256 = hashlib.sha256(payload).hexdigest()
    if actual_sha256 != sha256:
        raise IntegrityError(
            "Fetched content hash mismatch.",
            hint="Update the pinned version and checksum together from a trusted source.",
            context={"operation": "fetch", "url": url, "expected": sha256, "actual": actual_sha256},
        )

    temp_path = artifact_path.with_suffix(".tmp")
    temp_path.write_bytes(payload)
    os.replace(temp_path, artifact_path)
    return artifact_path


def extract_tarball(archive: str | Path, dest_dir: str | Path) -> Path:
    """Extract a gzip tarball, rejecting members that escape ``dest_dir``."""
    target = Path(dest_dir)
    target.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, mode="r:gz") as tar:
            tar.extractall(target, filter="data")
    except tarfile.TarError as exc:
        raise IntegrityError(
            "Source archive could not be extracted safely.",
            context={"operation": "extract", "path": str(archive), "reason": str(exc)},
        ) from exc
    return target


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()


__all__ = ["extract_tarball", "fetch", "sha256_file"]
