"""Groth16 proving backend driving the ``snarkjs`` command line tool.

Each call works in its own temporary directory, so concurrent proofs never
share files:

    snarkjs groth16 fullprove input.json circuit.wasm circuit.zkey proof.json public.json
    snarkjs groth16 verify vkey.json public.json proof.json
"""

import asyncio
import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from privpool.config import get_settings
from privpool.exceptions import BackendError
from privpool.utils.encoding import witness_value

logger = logging.getLogger(__name__)


def _write_files(directory: Path, files: Mapping[str, bytes]) -> None:
    for name, content in files.items():
        (directory / name).write_bytes(content)


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _dump(obj: Any) -> bytes:
    return json.dumps(obj).encode("utf-8")


class SnarkjsBackend:
    """ProvingBackend implemented on top of the snarkjs CLI."""

    def __init__(self, binary: Optional[str] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.binary = binary or settings.snarkjs_binary
        self.timeout = timeout if timeout is not None else settings.prover_timeout

    async def _run(self, *args: str, cwd: Path) -> Tuple[int, str, str]:
        """
        Run one snarkjs command.

        Returns:
            Tuple[int, str, str]: Exit code, stdout and stderr

        Raises:
            BackendError: If the binary is missing or the call times out
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BackendError(f"Cannot start {self.binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise BackendError(f"snarkjs {args[0]} {args[1]} timed out after {self.timeout}s") from e

        return (
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def full_prove(
        self, witness: Mapping[str, Any], program: bytes, proving_key: bytes
    ) -> Dict[str, Any]:
        with tempfile.TemporaryDirectory(prefix="privpool-prove-") as tmp:
            workdir = Path(tmp)
            await asyncio.to_thread(
                _write_files,
                workdir,
                {
                    "input.json": _dump(witness_value(dict(witness))),
                    "circuit.wasm": program,
                    "circuit.zkey": proving_key,
                },
            )

            returncode, stdout, stderr = await self._run(
                "groth16", "fullprove",
                "input.json", "circuit.wasm", "circuit.zkey", "proof.json", "public.json",
                cwd=workdir,
            )
            if returncode != 0:
                raise BackendError(f"snarkjs fullprove failed ({returncode}): {stderr.strip() or stdout.strip()}")

            try:
                proof = await asyncio.to_thread(_read_json, workdir / "proof.json")
                public_signals = await asyncio.to_thread(_read_json, workdir / "public.json")
            except (OSError, ValueError) as e:
                raise BackendError(f"snarkjs produced no readable proof: {e}") from e

        logger.debug(f"snarkjs proof generated with {len(public_signals)} public signals")
        return {"proof": proof, "publicSignals": public_signals}

    async def verify(
        self, verification_key: Dict[str, Any], public_signals: List[str], proof: Dict[str, Any]
    ) -> bool:
        with tempfile.TemporaryDirectory(prefix="privpool-verify-") as tmp:
            workdir = Path(tmp)
            await asyncio.to_thread(
                _write_files,
                workdir,
                {
                    "vkey.json": _dump(verification_key),
                    "public.json": _dump(list(public_signals)),
                    "proof.json": _dump(proof),
                },
            )
            returncode, stdout, stderr = await self._run(
                "groth16", "verify", "vkey.json", "public.json", "proof.json", cwd=workdir
            )

        output = stdout + stderr
        if "Invalid proof" in output:
            return False
        if returncode == 0 and "OK" in output:
            return True
        raise BackendError(f"snarkjs verify failed ({returncode}): {output.strip()}")
