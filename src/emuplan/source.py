"""Source tree filtering and content fingerprinting."""

from __future__ import annotations

import hashlib
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from emuplan.errors import ValidationError
from emuplan.models import SourceTree

EntryKind = Literal["file", "directory", "any"]

BUILD_OUTPUT_DIR = "target"

# Files describing the build itself; editing them alone must not change the source hash.
DESCRIPTOR_FILES: tuple[str, ...] = (
    "flake.nix",
    "flake.lock",
    "emuplan.json",
)

CARGO_SOURCE_SUFFIXES: tuple[str, ...] = (".rs", ".toml")
CARGO_SOURCE_NAMES: tuple[str, ...] = ("Cargo.lock", ".cargo/config")


@dataclass(frozen=True, slots=True)
class ExcludeRule:
    basename: str
    kind: EntryKind = "any"
    top_level_only: bool = False

    def matches(self, *, name: str, is_dir: bool, depth: int) -> bool:
        if self.top_level_only and depth != 0:
            return False
        if name != self.basename:
            return False
        if self.kind == "any":
            return True
        return is_dir == (self.kind == "directory")


DEFAULT_EXCLUDE_RULES: tuple[ExcludeRule, ...] = (
    ExcludeRule(BUILD_OUTPUT_DIR, kind="directory"),
    ExcludeRule(".git", kind="directory", top_level_only=True),
    *(ExcludeRule(name, kind="file", top_level_only=True) for name in DESCRIPTOR_FILES),
)


def cargo_source(rel: str) -> bool:
    """Keep predicate matching the files cargo needs to compile a crate."""
    if rel in CARGO_SOURCE_NAMES or rel.endswith("/Cargo.lock"):
        return True
    return rel.endswith(CARGO_SOURCE_SUFFIXES)


def filter_source(
    root: str | Path,
    exclude_rules: Iterable[ExcludeRule] = DEFAULT_EXCLUDE_RULES,
    *,
    keep: Callable[[str], bool] | None = None,
) -> SourceTree:
    """Walk *root* in sorted order and return the files no rule excludes.

    ``keep`` optionally narrows the result further; it receives the
    POSIX-style path relative to *root*.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        raise ValidationError(
            "Source root is not a directory.",
            hint="Point --source at the project checkout.",
            context={"operation": "filter_source", "root": str(root_path)},
        )
    rules = tuple(exclude_rules)
    files: list[str] = []
    _walk(root_path, root_path, rules=rules, keep=keep, depth=0, out=files)
    return SourceTree(root=root_path, files=tuple(files), fingerprint=fingerprint(root_path, files))


def fingerprint(root: Path, files: Iterable[str]) -> str:
    digest = hashlib.sha256()
    for rel in files:
        digest.update(rel.encode("utf-8"))
        digest.update(b"\0")
        digest.update(_entry_digest(root / rel).encode("ascii"))
        digest.update(b"\n")
    return digest.hexdigest()


def _walk(
    current: Path,
    root: Path,
    *,
    rules: tuple[ExcludeRule, ...],
    keep: Callable[[str], bool] | None,
    depth: int,
    out: list[str],
) -> None:
    for entry in sorted(current.iterdir(), key=lambda item: item.name):
        # Symlinks are recorded as entries and never followed.
        is_dir = entry.is_dir() and not entry.is_symlink()
        if any(rule.matches(name=entry.name, is_dir=is_dir, depth=depth) for rule in rules):
            continue
        if is_dir:
            _walk(entry, root, rules=rules, keep=keep, depth=depth + 1, out=out)
            continue
        rel = entry.relative_to(root).as_posix()
        if keep is not None and not keep(rel):
            continue
        out.append(rel)


def _entry_digest(path: Path) -> str:
    if path.is_symlink():
        return hashlib.sha256(os.readlink(path).encode("utf-8")).hexdigest()
    return hashlib.sha256(path.read_bytes()).hexdigest()

