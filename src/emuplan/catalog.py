"""Platform dependency catalog.

The catalog is a flat, ordered table of entries tagged by platform and
optional feature flag.  Resolution walks the table once and keeps every
entry whose tags match, so adding a platform or feature means adding rows
rather than editing conditionals::

    deps = resolve_dependencies("linux", ("gtk-file-picker",))
    deps.build_inputs[0].name  # "libX11"

Entry order is significant: it fixes the order of ``build_inputs`` and
therefore the order of the runtime library search path.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from emuplan.errors import UnsupportedPlatformError, ValidationError
from emuplan.models import Dependency, DependencySet, Platform, PlanVariant
from emuplan.platforms import ensure_platform

GTK_FILE_PICKER = "gtk-file-picker"
WASM = "wasm"

KNOWN_FEATURES: tuple[str, ...] = (GTK_FILE_PICKER, WASM)
DEFAULT_FEATURES: tuple[str, ...] = (GTK_FILE_PICKER,)

WASM_TARGET = "wasm32-unknown-unknown"
WRAP_GAPPS_HOOK = "wrap-gapps"


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """One row of the catalog; ``None`` tags match every platform or feature set."""

    platform: Platform | None = None
    feature: str | None = None
    native_build_inputs: tuple[Dependency, ...] = ()
    build_inputs: tuple[Dependency, ...] = ()
    dev_native_build_inputs: tuple[Dependency, ...] = ()
    extra_targets: tuple[str, ...] = ()
    post_build_hooks: tuple[str, ...] = ()

    def applies(self, platform: Platform, features: frozenset[str]) -> bool:
        if self.platform is not None and self.platform != platform:
            return False
        return self.feature is None or self.feature in features


def _pkgs(*names: str) -> tuple[Dependency, ...]:
    return tuple(Dependency(name) for name in names)


CATALOG: tuple[CatalogEntry, ...] = (
    CatalogEntry(
        platform="linux",
        native_build_inputs=_pkgs("cmake", "pkg-config"),
        build_inputs=_pkgs(
            "libX11",
            "libXrandr",
            "libXcursor",
            "libxkbcommon",
            "libXi",
            "libGL",
            "fontconfig",
            "wayland",
        ),
    ),
    CatalogEntry(
        platform="linux",
        feature=GTK_FILE_PICKER,
        native_build_inputs=(Dependency("wrapGAppsHook", kind="hook"), Dependency("glib")),
        build_inputs=(
            *_pkgs("cairo", "pango", "gdk-pixbuf", "atk"),
            Dependency("gtk3", provides_schemas=True),
        ),
        post_build_hooks=(WRAP_GAPPS_HOOK,),
    ),
    CatalogEntry(
        platform="macos",
        build_inputs=(
            Dependency("AppKit", kind="framework"),
            Dependency("OpenGL", kind="framework"),
        ),
    ),
    CatalogEntry(
        feature=WASM,
        extra_targets=(WASM_TARGET,),
        dev_native_build_inputs=(Dependency("trunk", kind="tool"),),
    ),
)


def normalize_features(features: Iterable[str]) -> tuple[str, ...]:
    selected = tuple(sorted(set(features)))
    unknown = tuple(name for name in selected if name not in KNOWN_FEATURES)
    if unknown:
        raise ValidationError(
            "Unknown feature flags requested.",
            hint=f"Known features: {', '.join(KNOWN_FEATURES)}.",
            context={"operation": "resolve_dependencies", "features": ",".join(unknown)},
        )
    return selected


def validate_catalog(catalog: Sequence[CatalogEntry] = CATALOG) -> None:
    """Reject catalogs where a dependency is claimed by two different platforms."""
    owners: dict[str, Platform] = {}
    for entry in catalog:
        if entry.platform is None:
            continue
        for dep in (*entry.native_build_inputs, *entry.build_inputs):
            owner = owners.setdefault(dep.name, entry.platform)
            if owner != entry.platform:
                raise ValidationError(
                    "Dependency appears in more than one platform partition.",
                    hint="Move shared dependencies to an entry without a platform tag.",
                    context={
                        "operation": "validate_catalog",
                        "dependency": dep.name,
                        "platforms": f"{owner},{entry.platform}",
                    },
                )


def resolve_dependencies(
    platform: str,
    features: Iterable[str] = (),
    *,
    variant: PlanVariant = "build",
    catalog: Sequence[CatalogEntry] = CATALOG,
) -> DependencySet:
    """Select the catalog rows for *platform* and *features* in table order."""
    tag = ensure_platform(platform)
    selected = normalize_features(features)
    validate_catalog(catalog)

    if not any(entry.platform == tag for entry in catalog):
        raise UnsupportedPlatformError(
            "Catalog has no entries for this platform.",
            hint="Add a platform-tagged catalog entry before building.",
            context={"operation": "resolve_dependencies", "platform": tag},
        )

    enabled = frozenset(selected)
    native: list[Dependency] = []
    build: list[Dependency] = []
    targets: list[str] = []
    hooks: list[str] = []
    for entry in catalog:
        if not entry.applies(tag, enabled):
            continue
        native.extend(entry.native_build_inputs)
        if variant == "dev":
            native.extend(entry.dev_native_build_inputs)
        build.extend(entry.build_inputs)
        targets.extend(entry.extra_targets)
        hooks.extend(entry.post_build_hooks)

    return DependencySet(
        platform=tag,
        features=selected,
        native_build_inputs=_dedupe(native),
        build_inputs=_dedupe(build),
        extra_targets=tuple(dict.fromkeys(targets)),
        post_build_hooks=tuple(dict.fromkeys(hooks)),
    )


def _dedupe(deps: Iterable[Dependency]) -> tuple[Dependency, ...]:
    seen: dict[str, Dependency] = {}
    for dep in deps:
        seen.setdefault(dep.name, dep)
    return tuple(seen.values())

