"""Contracts of the collaborators the SDK delegates to."""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Protocol, Sequence, runtime_checkable

from privpool.models.schemas import DepositEvent, PoolInfo, RagequitEvent, WithdrawalEvent

# Circuit names understood by artifact providers
COMMITMENT_CIRCUIT = "commitment"
WITHDRAWAL_CIRCUIT = "withdraw"


@dataclass(frozen=True)
class CircuitArtifacts:
    """Compiled circuit program (wasm) and its Groth16 proving key (zkey)."""

    program: bytes
    proving_key: bytes


@runtime_checkable
class ArtifactProvider(Protocol):
    """Source of circuit artifacts. Implementations may cache."""

    async def download_artifacts(self, circuit: str) -> CircuitArtifacts: ...

    async def get_verification_key(self, circuit: str) -> bytes:
        """JSON-encoded verification key."""
        ...


@runtime_checkable
class ProvingBackend(Protocol):
    """Groth16 prover/verifier. Both calls may raise backend-specific errors."""

    async def full_prove(
        self, witness: Mapping[str, Any], program: bytes, proving_key: bytes
    ) -> Mapping[str, Any]:
        """Return ``{"proof": ..., "publicSignals": [...]}``."""
        ...

    async def verify(
        self, verification_key: Dict[str, Any], public_signals: List[str], proof: Dict[str, Any]
    ) -> bool: ...


@runtime_checkable
class ChainDataSource(Protocol):
    """Supplier of on-chain pool events."""

    async def get_deposits(self, pool: PoolInfo) -> Sequence[DepositEvent]: ...

    async def get_withdrawals(self, pool: PoolInfo) -> Sequence[WithdrawalEvent]: ...

    async def get_ragequits(self, pool: PoolInfo) -> Sequence[RagequitEvent]: ...
