"""Artifact cache key derivation."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from emuplan.models import BuildMode


@dataclass(frozen=True, slots=True)
class ArtifactCacheInput:
    fingerprint: str
    backend: str
    mode: BuildMode = "build"
    env: Mapping[str, str] = field(default_factory=dict)


def cache_key(inputs: ArtifactCacheInput) -> str:
    canonical = json.dumps(_to_payload(inputs), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _to_payload(inputs: ArtifactCacheInput) -> dict[str, Any]:
    return {
        "fingerprint": inputs.fingerprint,
        "backend": inputs.backend,
        "mode": inputs.mode,
        "env": dict(sorted(inputs.env.items())),
    }
