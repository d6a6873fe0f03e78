"""Content-addressed artifact cache APIs."""

from .keys import ArtifactCacheInput, cache_key
from .store import ArtifactStore

__all__ = ["ArtifactCacheInput", "ArtifactStore", "cache_key"]
