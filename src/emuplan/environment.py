"""Runtime environment variables derived from a resolved dependency set."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from emuplan.errors import ValidationError
from emuplan.models import Dependency, DependencySet, EnvMap
from emuplan.platforms import ensure_platform

LIBRARY_PATH_VAR = "LD_LIBRARY_PATH"
SCHEMAS_PATH_VAR = "GSETTINGS_SCHEMAS_PATH"
DATA_DIRS_VAR = "XDG_DATA_DIRS"

# Search paths target the linux loader, not the host running the planner.
SEARCH_PATH_SEPARATOR = ":"

DEFAULT_STORE_ROOT = Path("/nix/store")


@dataclass(frozen=True, slots=True)
class DependencyStore:
    """Maps catalog dependencies onto installation prefixes."""

    root: Path = DEFAULT_STORE_ROOT
    prefixes: Mapping[str, Path] = field(default_factory=dict)

    def prefix(self, dep: Dependency) -> Path:
        return Path(self.prefixes.get(dep.name, self.root / dep.name))

    def lib_dir(self, dep: Dependency) -> Path:
        return self.prefix(dep) / "lib"

    def schema_dir(self, dep: Dependency) -> Path:
        return self.prefix(dep) / "share" / "gsettings-schemas" / dep.name


def make_search_path(dirs: Iterable[Path]) -> str:
    return SEARCH_PATH_SEPARATOR.join(dict.fromkeys(str(item) for item in dirs))


def compose_environment(
    deps: DependencySet,
    platform: str,
    *,
    store: DependencyStore | None = None,
) -> EnvMap:
    """Return the environment variables a build or dev shell needs.

    On linux the library search path lists every ``build_inputs`` prefix in
    catalog order and is present only when there is at least one entry.  On
    other platforms the variable is left out entirely rather than set empty.
    """
    tag = ensure_platform(platform)
    if deps.platform != tag:
        raise ValidationError(
            "Dependency set was resolved for a different platform.",
            hint="Resolve dependencies and environment for the same platform.",
            context={
                "operation": "compose_environment",
                "platform": tag,
                "resolved_for": deps.platform,
            },
        )
    selected_store = store or DependencyStore()
    env: EnvMap = {}
    if tag != "linux":
        return env

    if deps.build_inputs:
        env[LIBRARY_PATH_VAR] = make_search_path(
            selected_store.lib_dir(dep) for dep in deps.build_inputs
        )
    schema_deps = [dep for dep in deps.build_inputs if dep.provides_schemas]
    if schema_deps:
        env[SCHEMAS_PATH_VAR] = make_search_path(
            selected_store.schema_dir(dep) for dep in schema_deps
        )
    return env

