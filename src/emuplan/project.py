"""Project descriptor loading and one-call plan composition."""

from __future__ import annotations

import json
import tomllib
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from emuplan.catalog import DEFAULT_FEATURES, normalize_features, resolve_dependencies
from emuplan.derivation import compose, ensure_source
from emuplan.devshell import DEFAULT_DEV_TOOLS
from emuplan.errors import MalformedTimestampError, ValidationError
from emuplan.models import Derivation, DerivationMeta, Platform
from emuplan.observability import StructuredLogger
from emuplan.platforms import ensure_platform
from emuplan.policy import ComposePolicy
from emuplan.source import filter_source
from emuplan.version import last_modified_date, timestamp_from_epoch, version_info

DESCRIPTOR_NAME = "emuplan.json"


@dataclass(frozen=True, slots=True)
class ProjectDescriptor:
    pname: str
    license: str = "Apache-2.0"
    platforms: tuple[Platform, ...] = ("linux", "macos")
    lock_file: str = "Cargo.lock"
    features: tuple[str, ...] = DEFAULT_FEATURES
    dev_tools: tuple[str, ...] = DEFAULT_DEV_TOOLS
    run_tests: bool = True
    test_relaxation_reason: str | None = None

    @property
    def meta(self) -> DerivationMeta:
        return DerivationMeta(license=self.license, platforms=self.platforms)

    @property
    def policy(self) -> ComposePolicy:
        return ComposePolicy(
            run_tests=self.run_tests,
            test_relaxation_reason=self.test_relaxation_reason,
        )


def parse_descriptor(raw: str, *, fallback_pname: str | None = None) -> ProjectDescriptor:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid {DESCRIPTOR_NAME} JSON.", hint=str(exc)) from exc
    if not isinstance(payload, dict):
        raise ValidationError(f"Invalid {DESCRIPTOR_NAME} payload type.")

    pname = payload.get("pname", fallback_pname)
    if not isinstance(pname, str) or not pname:
        raise ValidationError(
            f"Invalid {DESCRIPTOR_NAME} `pname` value.",
            hint="Set `pname` or define [package].name in Cargo.toml.",
        )
    platforms = tuple(
        ensure_platform(item) for item in _str_list(payload, "platforms", ["linux", "macos"])
    )
    reason = payload.get("test_relaxation_reason")
    if reason is not None and not isinstance(reason, str):
        raise ValidationError(f"Invalid {DESCRIPTOR_NAME} `test_relaxation_reason` value.")
    run_tests = payload.get("run_tests", True)
    if not isinstance(run_tests, bool):
        raise ValidationError(f"Invalid {DESCRIPTOR_NAME} `run_tests` value.")
    return ProjectDescriptor(
        pname=pname,
        license=_str(payload, "license", "Apache-2.0"),
        platforms=platforms,
        lock_file=_str(payload, "lock_file", "Cargo.lock"),
        features=normalize_features(_str_list(payload, "features", list(DEFAULT_FEATURES))),
        dev_tools=tuple(_str_list(payload, "dev_tools", list(DEFAULT_DEV_TOOLS))),
        run_tests=run_tests,
        test_relaxation_reason=reason,
    )


def load_project(root: str | Path) -> ProjectDescriptor:
    """Read ``emuplan.json`` from *root*, defaulting ``pname`` from ``Cargo.toml``."""
    root_path = Path(root)
    fallback = _cargo_package_name(root_path / "Cargo.toml")
    descriptor_path = root_path / DESCRIPTOR_NAME
    if not descriptor_path.exists():
        return parse_descriptor("{}", fallback_pname=fallback)
    return parse_descriptor(_read_text(descriptor_path), fallback_pname=fallback)


def resolve_timestamp(
    explicit: str | None,
    *,
    environ: Mapping[str, str],
    fallback: Callable[[], str],
) -> str:
    """Pick ``explicit``, then ``SOURCE_DATE_EPOCH``; only then call *fallback*."""
    if explicit:
        return explicit
    epoch = environ.get("SOURCE_DATE_EPOCH")
    if epoch:
        try:
            return timestamp_from_epoch(int(epoch))
        except (ValueError, OverflowError, OSError) as exc:
            raise MalformedTimestampError(
                "SOURCE_DATE_EPOCH is not a valid epoch.",
                hint="Use whole seconds since 1970-01-01.",
                context={"operation": "resolve_timestamp", "SOURCE_DATE_EPOCH": epoch},
            ) from exc
    return fallback()


def compose_project(
    root: str | Path,
    *,
    platform: str,
    project: ProjectDescriptor | None = None,
    features: Iterable[str] | None = None,
    timestamp: str | None = None,
    environ: Mapping[str, str] | None = None,
    logger: StructuredLogger | None = None,
) -> Derivation:
    """Resolve every input of the project's derivation for *platform*."""
    root_path = Path(root)
    descriptor = project or load_project(root_path)
    selected_features = descriptor.features if features is None else tuple(features)

    deps = resolve_dependencies(platform, selected_features)
    source = filter_source(root_path)
    ensure_source(source, name=descriptor.pname)
    stamp = resolve_timestamp(
        timestamp,
        environ=environ or {},
        fallback=lambda: last_modified_date(source),
    )
    return compose(
        descriptor.pname,
        version_info(stamp),
        source,
        deps,
        root_path / descriptor.lock_file,
        descriptor.meta,
        policy=descriptor.policy,
        logger=logger,
    )


def _cargo_package_name(path: Path) -> str | None:
    if not path.exists():
        return None
    try:
        manifest = tomllib.loads(_read_text(path))
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(
            "Cargo.toml is not valid TOML.",
            hint=str(exc),
            context={"operation": "load_project", "path": str(path)},
        ) from exc
    package = manifest.get("package")
    if not isinstance(package, dict):
        return None
    name = cast(dict[str, Any], package).get("name")
    return name if isinstance(name, str) and name else None


def _str(payload: dict[str, Any], key: str, default: str) -> str:
    value = payload.get(key, default)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Invalid {DESCRIPTOR_NAME} `{key}` value.")
    return value


def _str_list(payload: dict[str, Any], key: str, default: list[str]) -> list[str]:
    value = payload.get(key, default)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(f"Invalid {DESCRIPTOR_NAME} `{key}` value.")
    return list(value)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError(
            f"{path.name} is not valid UTF-8.",
            hint="Re-save the file as UTF-8.",
            context={"operation": "load_project", "path": str(path), "reason": str(exc)},
        ) from exc
