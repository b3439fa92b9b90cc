"""Structured logging and console progress helpers."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

Level = Literal["info", "warning", "error"]

BANNER_RULE = "=" * 46


@dataclass(slots=True)
class StructuredLogger:
    """Collects structured records and echoes human-readable progress.

    Records are kept in memory for reports and tests; ``echo`` mirrors them to
    stdout (errors to stderr) as the run progresses.
    """

    records: list[dict[str, Any]] = field(default_factory=list)
    echo: bool = True

    def log(
        self,
        *,
        operation: str,
        stage: str | None,
        message: str,
        level: Level = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "stage": stage,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)
        if self.echo:
            self._print(level, message)

    def info(self, operation: str, message: str, *, stage: str | None = None, **extra: Any) -> None:
        self.log(operation=operation, stage=stage, message=message, extra=extra or None)

    def warning(
        self, operation: str, message: str, *, stage: str | None = None, **extra: Any
    ) -> None:
        self.log(
            operation=operation,
            stage=stage,
            message=message,
            level="warning",
            extra=extra or None,
        )

    def error(self, operation: str, message: str, *, stage: str | None = None, **extra: Any) -> None:
        self.log(
            operation=operation,
            stage=stage,
            message=message,
            level="error",
            extra=extra or None,
        )

    def banner(self, title: str) -> None:
        self.records.append({"level": "info", "operation": "banner", "stage": None, "message": title})
        if self.echo:
            print(f"\n{BANNER_RULE}\n{title}\n{BANNER_RULE}", flush=True)

    def records_for_stage(self, stage: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("stage") == stage]

    def warnings(self) -> list[dict[str, Any]]:
        return [record for record in self.records if record["level"] == "warning"]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path

    @staticmethod
    def _print(level: Level, message: str) -> None:
        if level == "error":
            print(f"ERROR: {message}", file=sys.stderr, flush=True)
        elif level == "warning":
            print(f"WARNING: {message}", flush=True)
        else:
            print(message, flush=True)


__all__ = ["BANNER_RULE", "StructuredLogger"]
