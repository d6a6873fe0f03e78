"""Lock file typed model."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LockedPackage:
    name: str
    version: str
    source: str | None = None
    checksum: str | None = None

