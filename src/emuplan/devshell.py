"""Development shell provisioning.

A dev environment reuses the derivation's dependency set verbatim, adds
developer tooling on top, and on linux carries a shell hook that exposes
the GTK schema directories to ``XDG_DATA_DIRS`` so the file picker works
from an interactive shell.  The hook is best-effort: when it fails the
outcome is logged and the shell still starts without it.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Iterable, Mapping, Sequence
from textwrap import dedent

from emuplan.catalog import CATALOG, CatalogEntry, resolve_dependencies
from emuplan.environment import (
    DATA_DIRS_VAR,
    SCHEMAS_PATH_VAR,
    DependencyStore,
    compose_environment,
)
from emuplan.models import Derivation, DevEnvironment, EnvMap, HookOutcome
from emuplan.observability import StructuredLogger

DEFAULT_DEV_TOOLS: tuple[str, ...] = ("rust-toolchain", "rust-analyzer")

DEV_SHELL_MARKER = "EMUPLAN_DEV_SHELL"

LINUX_SHELL_HOOK = dedent(f"""\
    export {DATA_DIRS_VAR}="${DATA_DIRS_VAR}:${SCHEMAS_PATH_VAR}"
""")


def default_dev_tools(
    derivation: Derivation,
    *,
    catalog: Sequence[CatalogEntry] = CATALOG,
) -> tuple[str, ...]:
    """Default tools plus whatever the catalog adds only for interactive use."""
    return tuple(dict.fromkeys((*DEFAULT_DEV_TOOLS, *_dev_only_tools(derivation, catalog))))


def provision(
    derivation: Derivation,
    extra_tools: Iterable[str] = DEFAULT_DEV_TOOLS,
    *,
    catalog: Sequence[CatalogEntry] = CATALOG,
    store: DependencyStore | None = None,
    logger: StructuredLogger | None = None,
) -> DevEnvironment:
    """Build the dev environment for *derivation*.

    Catalog entries that exist only in the dev variant are always added
    after *extra_tools*.
    """
    deps = derivation.deps
    requested = (*extra_tools, *_dev_only_tools(derivation, catalog))
    tools = tuple(name for name in dict.fromkeys(requested) if name and name not in deps)
    env = compose_environment(deps, deps.platform, store=store)
    shell_hook = LINUX_SHELL_HOOK if deps.platform == "linux" else None
    dev_env = DevEnvironment(
        derivation=derivation.name,
        deps=deps,
        tools=tools,
        env=env,
        shell_hook=shell_hook,
    )
    if logger is not None:
        logger.log(
            operation="provision",
            platform=deps.platform,
            component="devshell",
            message="Provisioned development environment.",
            extra={"tools": list(tools), "env": sorted(env), "hook": shell_hook is not None},
        )
    return dev_env


def shell_environment(
    dev_env: DevEnvironment,
    base_env: Mapping[str, str] | None = None,
) -> EnvMap:
    env = dict(os.environ if base_env is None else base_env)
    env.update(dev_env.env)
    env[DEV_SHELL_MARKER] = dev_env.derivation
    return env


def apply_shell_hook(
    dev_env: DevEnvironment,
    env: Mapping[str, str],
    *,
    logger: StructuredLogger | None = None,
) -> tuple[HookOutcome, EnvMap]:
    """Run the hook in bash and return the outcome and the resulting environment.

    Never raises for hook failures; the unmodified *env* is returned instead.
    """
    current = dict(env)
    if dev_env.shell_hook is None:
        return HookOutcome(ran=False, ok=True), current

    bash = shutil.which("bash", path=current.get("PATH"))
    if bash is None:
        outcome = HookOutcome(ran=False, ok=False, detail="bash not found in PATH")
        _log_hook(logger, dev_env, outcome)
        return outcome, current

    script = f"{dev_env.shell_hook}env -0\n"
    try:
        completed = subprocess.run(
            [bash, "-c", script],
            env=current,
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        outcome = HookOutcome(ran=False, ok=False, detail=str(exc))
        _log_hook(logger, dev_env, outcome)
        return outcome, current

    if completed.returncode != 0:
        stderr = completed.stderr.decode("utf-8", errors="replace")
        outcome = HookOutcome(
            ran=True,
            ok=False,
            returncode=completed.returncode,
            detail=stderr[-2000:],
        )
        _log_hook(logger, dev_env, outcome)
        return outcome, current

    outcome = HookOutcome(ran=True, ok=True, returncode=0)
    _log_hook(logger, dev_env, outcome)
    return outcome, _parse_env0(completed.stdout)


def enter_shell(
    dev_env: DevEnvironment,
    *,
    command: Sequence[str] | None = None,
    base_env: Mapping[str, str] | None = None,
    logger: StructuredLogger | None = None,
) -> int:
    """Run the hook, then *command* (default ``$SHELL``) inside the dev environment."""
    _, env = apply_shell_hook(dev_env, shell_environment(dev_env, base_env), logger=logger)
    argv = list(command) if command else [env.get("SHELL") or "bash"]
    completed = subprocess.run(argv, env=env, check=False)
    return completed.returncode


def _dev_only_tools(
    derivation: Derivation,
    catalog: Sequence[CatalogEntry],
) -> tuple[str, ...]:
    deps = derivation.deps
    dev_deps = resolve_dependencies(
        deps.platform,
        deps.features,
        variant="dev",
        catalog=catalog,
    )
    return tuple(name for name in dev_deps.names() if name not in deps)


def _parse_env0(raw: bytes) -> EnvMap:
    env: EnvMap = {}
    for chunk in raw.split(b"\0"):
        if not chunk:
            continue
        key, sep, value = chunk.decode("utf-8", errors="surrogateescape").partition("=")
        if sep:
            env[key] = value
    return env


def _log_hook(
    logger: StructuredLogger | None,
    dev_env: DevEnvironment,
    outcome: HookOutcome,
) -> None:
    if logger is None:
        return
    logger.log(
        operation="shell_hook",
        platform=dev_env.deps.platform,
        component="devshell",
        message="Shell hook applied." if outcome.ok else "Shell hook failed; continuing.",
        level="info" if outcome.ok else "warning",
        extra={"ran": outcome.ran, "returncode": outcome.returncode, "detail": outcome.detail},
    )

