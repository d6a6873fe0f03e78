"""Check and build entry points on top of a toolchain backend."""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from pathlib import Path

from emuplan.backends import ToolchainBackend
from emuplan.cache import ArtifactCacheInput, ArtifactStore
from emuplan.errors import BuildFailure
from emuplan.models import ArtifactRef, BuildMode, BuildRequest, BuildResult, Derivation
from emuplan.observability import LogLevel, StructuredLogger
from emuplan.wrap import run_post_build_hooks, wrapped_path


def check_plan(
    derivation: Derivation,
    backend: ToolchainBackend,
    *,
    output_dir: Path,
    env: Mapping[str, str],
    base_env: Mapping[str, str] | None = None,
    logger: StructuredLogger | None = None,
) -> BuildResult:
    request = BuildRequest(
        derivation=derivation,
        mode="check",
        output_dir=output_dir,
        env=_request_env(env, base_env),
    )
    _log(logger, derivation, backend, "check", "Starting toolchain check.")
    result = _invoke(backend, request, logger)
    _log(logger, derivation, backend, "check", "Toolchain check passed.")
    return result


def build_plan(
    derivation: Derivation,
    backend: ToolchainBackend,
    *,
    output_dir: Path,
    env: Mapping[str, str],
    base_env: Mapping[str, str] | None = None,
    store: ArtifactStore | None = None,
    logger: StructuredLogger | None = None,
) -> BuildResult:
    """Build *derivation*, reusing a cached artifact when the fingerprint matches.

    *env* is the composed plan environment and takes part in the cache key;
    *base_env* (typically the caller's process environment) is only passed
    through to the toolchain.
    """
    destination = output_dir / "bin" / derivation.pname
    _clear_outputs(destination)
    inputs = ArtifactCacheInput(
        fingerprint=derivation.fingerprint,
        backend=backend.name,
        mode="build",
        env=dict(env),
    )

    restored = store.restore(inputs=inputs, destination=destination) if store else None
    if restored is not None:
        digest = hashlib.sha256(restored.read_bytes()).hexdigest()
        result = BuildResult(
            fingerprint=derivation.fingerprint,
            mode="build",
            artifact=ArtifactRef(path=restored, digest=digest),
            cached=True,
        )
        _log(logger, derivation, backend, "build", "Reused cached artifact.")
    else:
        request = BuildRequest(
            derivation=derivation,
            mode="build",
            output_dir=output_dir,
            env=_request_env(env, base_env),
        )
        _log(logger, derivation, backend, "build", "Starting toolchain build.")
        result = _invoke(backend, request, logger)
        if store is not None and result.artifact is not None:
            store.save(inputs=inputs, artifact=result.artifact.path)

    if result.artifact is not None and derivation.deps.post_build_hooks:
        result.wrapper = run_post_build_hooks(
            derivation.deps.post_build_hooks,
            result.artifact.path,
            env,
        )
    _log(
        logger,
        derivation,
        backend,
        "build",
        "Build completed.",
        extra={
            "artifact": str(result.artifact.path) if result.artifact else None,
            "cached": result.cached,
        },
    )
    return result


def _invoke(
    backend: ToolchainBackend,
    request: BuildRequest,
    logger: StructuredLogger | None,
) -> BuildResult:
    try:
        if request.mode == "check":
            return backend.check(request)
        return backend.build(request)
    except BuildFailure as exc:
        _log(
            logger,
            request.derivation,
            backend,
            request.mode,
            "Toolchain reported failure.",
            level="error",
            extra={"code": exc.code, "returncode": exc.returncode},
        )
        raise


def _request_env(
    env: Mapping[str, str],
    base_env: Mapping[str, str] | None,
) -> dict[str, str]:
    merged = dict(base_env or {})
    merged.update(env)
    return merged


def _clear_outputs(destination: Path) -> None:
    for path in (destination, wrapped_path(destination)):
        if path.exists() or path.is_symlink():
            path.unlink()


def _log(
    logger: StructuredLogger | None,
    derivation: Derivation,
    backend: ToolchainBackend,
    mode: BuildMode,
    message: str,
    *,
    level: LogLevel = "info",
    extra: dict[str, object] | None = None,
) -> None:
    if logger is None:
        return
    payload: dict[str, object] = {"backend": backend.name, "name": derivation.name}
    payload.update(extra or {})
    logger.log(
        operation=mode,
        platform=derivation.platform,
        component="pipeline",
        message=message,
        level=level,
        extra=payload,
    )

