"""Protocol and shared helpers for toolchain backends."""

from __future__ import annotations

import os
import shutil
import signal
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from emuplan.errors import BuildFailure, BuildInterrupted, ValidationError
from emuplan.models import BuildRequest, BuildResult, SourceTree

INTERRUPT_SIGNALS = frozenset({signal.SIGINT, signal.SIGTERM})

DIAGNOSTICS_LIMIT = 4000


class ToolchainBackend(Protocol):
    name: str

    def check(self, request: BuildRequest) -> BuildResult:
        """Validate the plan with the toolchain without producing an artifact."""

    def build(self, request: BuildRequest) -> BuildResult:
        """Produce the artifact described by the plan."""


def stage_source(source: SourceTree, destination: Path, *, lock_file: Path | None = None) -> Path:
    """Copy the filtered source files into a fresh *destination* directory.

    Symlinks are copied as links and must resolve inside the source root.
    """
    root = source.root.resolve()
    for rel in source.files:
        path = source.root / rel
        if path.is_symlink() and not path.resolve().is_relative_to(root):
            raise ValidationError(
                f"Symlink {rel} points outside the source tree.",
                hint="Replace the link with the file it points to or exclude it.",
                context={"operation": "stage_source", "path": rel, "target": os.readlink(path)},
            )
    if destination.exists():
        shutil.rmtree(destination)
    destination.mkdir(parents=True)
    for rel in source.files:
        target = destination / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source.root / rel, target, follow_symlinks=False)
    if lock_file is not None:
        staged_lock = destination / lock_file.name
        if not staged_lock.exists():
            shutil.copy2(lock_file, staged_lock)
    return destination


def run_toolchain(
    cmd: Sequence[str],
    *,
    cwd: Path,
    env: Mapping[str, str],
    backend: str,
    operation: str,
) -> subprocess.CompletedProcess[str]:
    """Run one toolchain command, mapping failure and cancellation to typed errors."""
    context = {
        "backend": backend,
        "operation": operation,
        "command": " ".join(cmd),
        "cwd": str(cwd),
    }
    try:
        result = subprocess.run(
            list(cmd),
            cwd=str(cwd),
            env=dict(env),
            capture_output=True,
            text=True,
            check=False,
        )
    except KeyboardInterrupt as exc:
        raise BuildInterrupted(
            "Toolchain invocation was interrupted.",
            hint="Re-run the command; nothing is retried automatically.",
            context=context,
        ) from exc
    except FileNotFoundError as exc:
        raise BuildFailure(
            "Toolchain executable was not found.",
            diagnostics=str(exc),
            hint="Enter the dev shell or install the toolchain.",
            context=context,
        ) from exc

    if result.returncode != 0:
        diagnostics = _tail(result.stderr) or _tail(result.stdout)
        context["returncode"] = str(result.returncode)
        if result.returncode < 0 and -result.returncode in INTERRUPT_SIGNALS:
            raise BuildInterrupted(
                "Toolchain invocation was terminated by a signal.",
                diagnostics=diagnostics,
                returncode=result.returncode,
                context=context,
            )
        raise BuildFailure(
            "Toolchain invocation failed.",
            diagnostics=diagnostics,
            returncode=result.returncode,
            hint="See the toolchain diagnostics below.",
            context=context,
        )
    return result


def _tail(text: str | None) -> str:
    if not text:
        return ""
    return text[-DIAGNOSTICS_LIMIT:]
