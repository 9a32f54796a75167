"""Content identity resolution.

The identity of an asset is a SHA-256 hex digest of its bytes. When hashing
is switched off, there are no bytes, or the hasher fails, identity degrades
to the display name. Degradation is logged, never raised: a name-keyed
asset still flows through the cache and the pipeline.
"""

import hashlib
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from cue_system.config.settings import settings
from cue_system.data_management.schemas.record_schema import Identity


Hasher = Callable[[bytes], str]


def sha256_hex(data: bytes) -> str:
    """Default hasher."""
    return hashlib.sha256(data).hexdigest()


class FingerprintResolver:
    """
    Derives an Identity for an asset.

    Attributes:
        hasher: Bytes -> hex digest function (injectable for tests)
        compute_fingerprints: When False every identity is name-based
        chunk_size: Read size when streaming files
    """

    def __init__(
        self,
        hasher: Optional[Hasher] = None,
        compute_fingerprints: Optional[bool] = None,
        chunk_size: Optional[int] = None,
    ):
        self.hasher = hasher or sha256_hex
        self.compute_fingerprints = (
            settings.compute_fingerprints if compute_fingerprints is None else compute_fingerprints
        )
        self.chunk_size = chunk_size or settings.hash_chunk_size
        self.logger = logger.bind(component="FingerprintResolver")

    def resolve(
        self,
        data: Optional[bytes],
        name: str,
        compute_hash: Optional[bool] = None,
    ) -> Identity:
        """
        Resolve identity from in-memory bytes.

        Args:
            data: Asset content, may be None.
            name: Display name, used as fallback identity.
            compute_hash: Per-call override of compute_fingerprints.

        Returns:
            Identity with a fingerprint, or name-only with degraded_reason set.
        """
        wanted = self.compute_fingerprints if compute_hash is None else compute_hash
        if not wanted:
            return Identity(name=name, degraded_reason="fingerprinting disabled")
        if not data:
            return self._degrade(name, "no content bytes")

        try:
            fingerprint = self.hasher(data)
        except Exception as e:
            return self._degrade(name, f"hasher failed: {e}")

        if not fingerprint:
            return self._degrade(name, "hasher returned empty digest")
        return Identity(name=name, fingerprint=fingerprint)

    def resolve_path(
        self,
        path: Path,
        name: Optional[str] = None,
        compute_hash: Optional[bool] = None,
    ) -> Identity:
        """
        Resolve identity by streaming a file through SHA-256.

        A custom hasher only sees whole byte strings, so it is applied to
        the full file content instead of streaming.
        """
        path = Path(path)
        name = name or path.name
        wanted = self.compute_fingerprints if compute_hash is None else compute_hash
        if not wanted:
            return Identity(name=name, degraded_reason="fingerprinting disabled")

        try:
            if self.hasher is sha256_hex:
                digest = hashlib.sha256()
                with open(path, "rb") as f:
                    for chunk in iter(lambda: f.read(self.chunk_size), b""):
                        digest.update(chunk)
                return Identity(name=name, fingerprint=digest.hexdigest())
            return self.resolve(path.read_bytes(), name, compute_hash=True)
        except OSError as e:
            return self._degrade(name, f"cannot read {path}: {e}")

    def _degrade(self, name: str, reason: str) -> Identity:
        self.logger.warning(f"Identity degraded to name '{name}': {reason}")
        return Identity(name=name, degraded_reason=reason)
