"""Fingerprint-keyed artifact store with manifest verification."""

from __future__ import annotations

import hashlib
import json
import shutil
from pathlib import Path

from emuplan.cache.keys import ArtifactCacheInput, _to_payload, cache_key
from emuplan.errors import ReproducibilityError

ARTIFACT_NAME = "artifact.bin"
MANIFEST_NAME = "manifest.json"


class ArtifactStore:
    """Keeps one built binary per cache key under ``<root>/<key>/``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def contains(self, inputs: ArtifactCacheInput) -> bool:
        entry = self.root / cache_key(inputs)
        return (entry / ARTIFACT_NAME).exists() and (entry / MANIFEST_NAME).exists()

    def restore(self, *, inputs: ArtifactCacheInput, destination: Path) -> Path | None:
        """Copy a verified cached artifact to *destination*, or return ``None`` on miss."""
        if not self.contains(inputs):
            return None
        key = cache_key(inputs)
        entry = self.root / key
        manifest = self._read_manifest(entry / MANIFEST_NAME)
        if manifest.get("key") != key or manifest.get("inputs") != _to_payload(inputs):
            raise ReproducibilityError(
                "Cached artifact manifest does not match the requested plan.",
                hint=f"Delete {entry} and rebuild.",
                context={"operation": "cache_restore", "key": key},
            )

        cached = entry / ARTIFACT_NAME
        actual_digest = hashlib.sha256(cached.read_bytes()).hexdigest()
        if manifest.get("artifact_sha256") != actual_digest:
            raise ReproducibilityError(
                "Cached artifact digest mismatch.",
                hint=f"Delete {entry} and rebuild.",
                context={
                    "operation": "cache_restore",
                    "key": key,
                    "expected": str(manifest.get("artifact_sha256")),
                    "actual": actual_digest,
                },
            )
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(cached, destination)
        mode = manifest.get("mode")
        if isinstance(mode, int):
            destination.chmod(mode)
        return destination

    def save(self, *, inputs: ArtifactCacheInput, artifact: Path) -> str:
        key = cache_key(inputs)
        entry = self.root / key
        entry.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(artifact, entry / ARTIFACT_NAME)
        manifest = {
            "key": key,
            "inputs": _to_payload(inputs),
            "name": artifact.name,
            "mode": artifact.stat().st_mode & 0o777,
            "artifact_sha256": hashlib.sha256(artifact.read_bytes()).hexdigest(),
        }
        (entry / MANIFEST_NAME).write_text(
            json.dumps(manifest, indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return key

    def _read_manifest(self, path: Path) -> dict[str, object]:
        try:
            parsed = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ReproducibilityError(
                "Cache manifest is not valid JSON.",
                hint="Invalidate the cache entry and rebuild.",
                context={"operation": "cache_restore", "path": str(path)},
            ) from exc
        if not isinstance(parsed, dict):
            raise ReproducibilityError(
                "Cache manifest has invalid structure.",
                hint="Invalidate the cache entry and rebuild.",
                context={"operation": "cache_restore", "path": str(path)},
            )
        return parsed
