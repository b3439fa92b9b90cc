"""Idempotent edits of shared configuration files.

Shared files (``/etc/environment`` and friends) are only ever touched inside a
block delimited by marker comments. Re-running an edit replaces that block in
place instead of appending a second copy.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

BLOCK_BEGIN = "# BEGIN FIPSBUILD {marker}"
BLOCK_END = "# END FIPSBUILD {marker}"
DEFAULT_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"

_PATH_LINE = re.compile(r"^\s*(?:export\s+)?PATH=(?P<value>.*)$")


def write_file(path: str | Path, content: str, *, mode: int = 0o644) -> Path:
    """Replace ``path`` atomically so readers never observe a partial file."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.chmod(temp_name, mode)
        os.replace(temp_name, target)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
    return target


def ensure_line(path: str | Path, line: str) -> bool:
    """Append ``line`` unless already present. Existing lines keep their order."""
    target = Path(path)
    current = target.read_text(encoding="utf-8") if target.exists() else ""
    if line in current.splitlines():
        return False
    if current and not current.endswith("\n"):
        current += "\n"
    write_file(target, current + line + "\n")
    return True


def prepend_path_entry(
    path: str | Path,
    entry: str,
    *,
    marker: str,
    default: str = DEFAULT_PATH,
) -> bool:
    """Put ``entry`` first on the ``PATH=`` line of a pam_env style file.

    The first unmanaged ``PATH=`` line (or ``default`` when there is none) is
    adopted into a managed block. Later runs rebuild the block from its own
    value, so the entry is never prepended twice.
    """
    target = Path(path)
    current = target.read_text(encoding="utf-8") if target.exists() else ""
    lines = current.splitlines()

    value = default
    quote = '"'
    position = len(lines)
    span = _find_block(lines, marker)
    if span is not None:
        begin, end = span
        for line in lines[begin + 1 : end]:
            match = _PATH_LINE.match(line)
            if match:
                value, quote = _unquote(match["value"])
        del lines[begin : end + 1]
        position = begin
    else:
        for idx, line in enumerate(lines):
            match = _PATH_LINE.match(line)
            if match:
                value, quote = _unquote(match["value"])
                del lines[idx]
                position = idx
                break

    parts = [part for part in value.split(":") if part and part != entry]
    new_value = ":".join([entry, *parts])
    lines[position:position] = _wrap(marker, f"PATH={quote}{new_value}{quote}")
    updated = "\n".join(lines) + "\n"
    if updated == current:
        return False
    write_file(target, updated)
    return True


def _wrap(marker: str, block: str) -> list[str]:
    return [
        BLOCK_BEGIN.format(marker=marker),
        *block.rstrip("\n").splitlines(),
        BLOCK_END.format(marker=marker),
    ]


def _find_block(lines: list[str], marker: str) -> tuple[int, int] | None:
    begin_line = BLOCK_BEGIN.format(marker=marker)
    end_line = BLOCK_END.format(marker=marker)
    try:
        begin = lines.index(begin_line)
        end = lines.index(end_line, begin + 1)
    except ValueError:
        return None
    return begin, end


def _unquote(raw: str) -> tuple[str, str]:
    value = raw.strip()
    for quote in ('"', "'"):
        if len(value) >= 2 and value[0] == value[-1] == quote:
            return value[1:-1], quote
    return value, ""


__all__ = [
    "DEFAULT_PATH",
    "ensure_line",
    "prepend_path_entry",
    "write_file",
]
