"""Structured logging.

Records are kept in memory so callers (and tests) can inspect what a run
did per platform, and are optionally echoed to a text stream as they are
emitted.  The CLI echoes warnings and errors to stderr, which is how a
failed dev-shell hook reaches the user without aborting the shell.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, TextIO

LogLevel = Literal["debug", "info", "warning", "error"]

_SEVERITY: dict[str, int] = {"debug": 10, "info": 20, "warning": 30, "error": 40}


@dataclass(frozen=True, slots=True)
class LogRecord:
    level: LogLevel
    operation: str
    platform: str | None
    component: str
    message: str
    extra: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "level": self.level,
            "operation": self.operation,
            "platform": self.platform,
            "component": self.component,
            "message": self.message,
        }
        if self.extra:
            payload["extra"] = dict(self.extra)
        return payload

    def render(self) -> str:
        where = f"{self.component}.{self.operation}"
        if self.platform is not None:
            where = f"{where} [{self.platform}]"
        return f"{self.level}: {where}: {self.message}"


@dataclass(slots=True)
class StructuredLogger:
    records: list[LogRecord] = field(default_factory=list)
    stream: TextIO | None = None
    echo_level: LogLevel = "warning"

    def log(
        self,
        *,
        operation: str,
        platform: str | None,
        component: str,
        message: str,
        level: LogLevel = "info",
        extra: Mapping[str, Any] | None = None,
    ) -> LogRecord:
        record = LogRecord(
            level=level,
            operation=operation,
            platform=platform,
            component=component,
            message=message,
            extra=dict(extra or {}),
        )
        self.records.append(record)
        if self.stream is not None and _SEVERITY[level] >= _SEVERITY[self.echo_level]:
            print(record.render(), file=self.stream)
        return record

    def records_for_platform(self, platform: str) -> list[LogRecord]:
        return [record for record in self.records if record.platform == platform]

    def records_at(self, level: LogLevel) -> list[LogRecord]:
        return [record for record in self.records if record.level == level]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record.to_dict(), sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path
