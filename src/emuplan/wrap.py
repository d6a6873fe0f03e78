"""Post-build program wrappers for desktop integration."""

from __future__ import annotations

import os
import shlex
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from emuplan.catalog import WRAP_GAPPS_HOOK
from emuplan.environment import DATA_DIRS_VAR, SCHEMAS_PATH_VAR
from emuplan.errors import ValidationError

PostBuildHook = Callable[[Path, Mapping[str, str]], Path]


def wrapped_path(program: Path) -> Path:
    return program.with_name(f".{program.name}-wrapped")


def wrap_program(
    program: Path,
    *,
    set_env: Mapping[str, str] | None = None,
    prefix_env: Mapping[str, str] | None = None,
) -> Path:
    """Move *program* aside and install a launcher script in its place.

    ``prefix_env`` values are prepended to any existing value of the
    variable; ``set_env`` values replace it.  Returns the launcher path.
    """
    if not program.is_file():
        raise ValidationError(
            "Cannot wrap a program that does not exist.",
            context={"operation": "wrap_program", "path": str(program)},
        )
    target = wrapped_path(program)
    if target.exists():
        raise ValidationError(
            "Program is already wrapped.",
            context={"operation": "wrap_program", "path": str(program)},
        )
    os.replace(program, target)

    lines = ["#!/usr/bin/env bash", "set -e"]
    for key, value in sorted((set_env or {}).items()):
        lines.append(f"export {key}={shlex.quote(value)}")
    for key, value in sorted((prefix_env or {}).items()):
        lines.append(f'export {key}={shlex.quote(value)}"${{{key}:+:${key}}}"')
    lines.append(f'exec {shlex.quote(str(target))} "$@"')

    program.write_text("\n".join(lines) + "\n", encoding="utf-8")
    program.chmod(0o755)
    return program


def wrap_gapps(program: Path, env: Mapping[str, str]) -> Path:
    schemas = env.get(SCHEMAS_PATH_VAR, "")
    if not schemas:
        return wrap_program(program)
    return wrap_program(
        program,
        set_env={SCHEMAS_PATH_VAR: schemas},
        prefix_env={DATA_DIRS_VAR: schemas},
    )


POST_BUILD_HOOKS: dict[str, PostBuildHook] = {
    WRAP_GAPPS_HOOK: wrap_gapps,
}


def run_post_build_hooks(
    hooks: Sequence[str],
    program: Path,
    env: Mapping[str, str],
) -> Path | None:
    """Apply the named hooks in order; returns the final launcher, if any."""
    launcher: Path | None = None
    for name in hooks:
        hook = POST_BUILD_HOOKS.get(name)
        if hook is None:
            raise ValidationError(
                "Unknown post-build hook.",
                hint=f"Known hooks: {', '.join(sorted(POST_BUILD_HOOKS))}.",
                context={"operation": "post_build", "hook": name},
            )
        launcher = hook(program, env)
    return launcher

