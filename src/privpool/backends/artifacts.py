"""Circuit artifacts read from a local directory."""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from privpool.backends.base import CircuitArtifacts
from privpool.config import get_settings
from privpool.exceptions import ArtifactError

logger = logging.getLogger(__name__)

PROGRAM_SUFFIX = ".wasm"
PROVING_KEY_SUFFIX = ".zkey"
VERIFICATION_KEY_SUFFIX = ".vkey"


class FileSystemArtifactProvider:
    """
    Serve ``<root>/<circuit>.wasm``, ``.zkey`` and ``.vkey`` files.

    File contents are cached per provider instance after the first read.
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root) if root is not None else get_settings().artifacts_dir
        self._cache: Dict[Path, bytes] = {}

    def _path(self, circuit: str, suffix: str) -> Path:
        if not circuit or "/" in circuit or "\\" in circuit or circuit.startswith("."):
            raise ArtifactError(f"Invalid circuit name: {circuit!r}")
        return self.root / f"{circuit}{suffix}"

    async def _read(self, path: Path) -> bytes:
        cached = self._cache.get(path)
        if cached is not None:
            return cached
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise ArtifactError(f"Cannot read artifact {path}: {e}") from e
        logger.debug(f"Loaded artifact {path} ({len(data)} bytes)")
        self._cache[path] = data
        return data

    async def download_artifacts(self, circuit: str) -> CircuitArtifacts:
        program, proving_key = await asyncio.gather(
            self._read(self._path(circuit, PROGRAM_SUFFIX)),
            self._read(self._path(circuit, PROVING_KEY_SUFFIX)),
        )
        return CircuitArtifacts(program=program, proving_key=proving_key)

    async def get_verification_key(self, circuit: str) -> bytes:
        return await self._read(self._path(circuit, VERIFICATION_KEY_SUFFIX))

    def clear_cache(self) -> None:
        self._cache.clear()
