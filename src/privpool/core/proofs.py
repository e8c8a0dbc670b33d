"""Zero-knowledge proofs for commitments and withdrawals.

ProofService builds circuit witnesses and hands them to a ProvingBackend,
using artifacts obtained from an ArtifactProvider. It holds no mutable
state, so concurrent calls for different inputs are independent.

Withdrawal statement proven by the circuit:
    1. existing commitment H(value, label, H(nullifier, secret)) is a leaf
       of the state tree with root ``stateRoot``
    2. ``label`` is a leaf of the ASP tree with root ``ASPRoot``
    3. the remainder ``value - withdrawnValue`` is re-committed under
       ``newNullifier`` / ``newSecret``
    4. ``context`` binds the proof to a single withdrawal request

Every failure on the proof path, whatever its origin, is raised as
ProofError with the original exception chained.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from privpool.backends.base import (
    COMMITMENT_CIRCUIT,
    WITHDRAWAL_CIRCUIT,
    ArtifactProvider,
    ProvingBackend,
)
from privpool.config import MAX_TREE_DEPTH, PoolSettings, get_settings
from privpool.core.commitment import SpendableCommitment, SpentNote, remainder_commitment
from privpool.exceptions import CryptoError, ErrorCode, ProofError
from privpool.models.schemas import MerkleProof, ProofResult, WithdrawalInput
from privpool.utils.hash import SNARK_SCALAR_FIELD

logger = logging.getLogger(__name__)

ProofLike = Union[ProofResult, Mapping[str, Any]]


def pad_siblings(siblings: List[int], size: int = MAX_TREE_DEPTH) -> List[int]:
    """Right-pad a sibling list with zeros to the circuit's fixed array size."""
    if len(siblings) > size:
        raise ValueError(f"{len(siblings)} siblings exceed the circuit size {size}")
    return list(siblings) + [0] * (size - len(siblings))


class ProofService:
    """
    Prover and verifier for the pool circuits.

    Args:
        artifacts: Source of circuit programs and keys
        backend: Groth16 prover/verifier
        settings: Optional settings, defaults to the process-wide ones
    """

    def __init__(
        self,
        artifacts: ArtifactProvider,
        backend: ProvingBackend,
        settings: Optional[PoolSettings] = None,
    ):
        self.artifacts = artifacts
        self.backend = backend
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Commitment proofs
    # ------------------------------------------------------------------

    async def prove_commitment(self, value: int, label: int, nullifier: int, secret: int) -> ProofResult:
        """
        Prove knowledge of the preimage of a commitment.

        Raises:
            ProofError: On any artifact or backend failure
        """
        witness = {
            "value": value,
            "label": label,
            "nullifier": nullifier,
            "secret": secret,
        }
        return await self._prove(COMMITMENT_CIRCUIT, witness)

    async def verify_commitment(self, proof: ProofLike) -> bool:
        return await self._verify(COMMITMENT_CIRCUIT, proof)

    # ------------------------------------------------------------------
    # Withdrawal proofs
    # ------------------------------------------------------------------

    def build_withdrawal_witness(
        self, commitment: SpendableCommitment, withdrawal_input: WithdrawalInput
    ) -> Dict[str, Any]:
        """
        Assemble the withdrawal circuit inputs.

        Args:
            commitment: Any SpendableCommitment being spent
            withdrawal_input: Merkle proofs, roots, new secrets and context

        Returns:
            Dict[str, Any]: Witness keyed by circuit signal name

        Raises:
            ProofError: If the inputs cannot produce a valid witness
        """
        try:
            note = SpentNote.from_commitment(commitment)
        except CryptoError as e:
            raise ProofError(
                f"Cannot spend commitment: {e}", ErrorCode.INVALID_WITNESS, WITHDRAWAL_CIRCUIT, e
            ) from e

        self._check_withdrawal(note, withdrawal_input)
        state_proof = withdrawal_input.state_merkle_proof
        asp_proof = withdrawal_input.asp_merkle_proof

        return {
            "withdrawnValue": withdrawal_input.withdrawal_amount,
            "stateRoot": withdrawal_input.state_root,
            "stateTreeDepth": withdrawal_input.state_tree_depth,
            "ASPRoot": withdrawal_input.asp_root,
            "ASPTreeDepth": withdrawal_input.asp_tree_depth,
            "context": withdrawal_input.context,
            "label": note.label,
            "existingValue": note.value,
            "existingNullifier": note.nullifier,
            "existingSecret": note.secret,
            "newNullifier": withdrawal_input.new_nullifier,
            "newSecret": withdrawal_input.new_secret,
            "stateSiblings": pad_siblings(state_proof.siblings),
            "stateIndex": state_proof.index,
            "ASPSiblings": pad_siblings(asp_proof.siblings),
            "ASPIndex": asp_proof.index,
        }

    async def prove_withdrawal(
        self, commitment: SpendableCommitment, withdrawal_input: WithdrawalInput
    ) -> ProofResult:
        """
        Prove a withdrawal from ``commitment``.

        Raises:
            ProofError: On invalid inputs or any artifact or backend failure
        """
        witness = self.build_withdrawal_witness(commitment, withdrawal_input)
        return await self._prove(WITHDRAWAL_CIRCUIT, witness)

    async def verify_withdrawal(self, proof: ProofLike) -> bool:
        return await self._verify(WITHDRAWAL_CIRCUIT, proof)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _invalid(self, message: str) -> ProofError:
        return ProofError(message, ErrorCode.INVALID_WITNESS, WITHDRAWAL_CIRCUIT)

    def _check_tree(self, name: str, proof: MerkleProof, root: int, leaf: int, depth: int) -> None:
        if proof.root != root:
            raise self._invalid(f"{name} proof root does not match the declared {name} root")
        if proof.leaf != leaf:
            raise self._invalid(f"{name} proof is not for the expected leaf")
        if depth > self.settings.max_tree_depth:
            raise self._invalid(f"{name} tree depth {depth} exceeds {self.settings.max_tree_depth}")
        if len(proof.siblings) > self.settings.max_tree_depth:
            raise self._invalid(f"{name} proof has too many siblings")

    def _check_withdrawal(self, note: SpentNote, withdrawal_input: WithdrawalInput) -> None:
        self._check_tree(
            "state",
            withdrawal_input.state_merkle_proof,
            withdrawal_input.state_root,
            note.hash,
            withdrawal_input.state_tree_depth,
        )
        self._check_tree(
            "ASP",
            withdrawal_input.asp_merkle_proof,
            withdrawal_input.asp_root,
            note.label,
            withdrawal_input.asp_tree_depth,
        )

        for name in ("new_nullifier", "new_secret"):
            if not 0 <= getattr(withdrawal_input, name) < SNARK_SCALAR_FIELD:
                raise self._invalid(f"{name} is outside the scalar field")
        if withdrawal_input.new_nullifier == note.nullifier:
            raise self._invalid("new_nullifier must differ from the spent nullifier")

        change = remainder_commitment(
            note,
            withdrawal_input.withdrawal_amount,
            withdrawal_input.new_nullifier,
            withdrawal_input.new_secret,
        )
        if change is None:
            raise self._invalid(
                f"Withdrawal amount {withdrawal_input.withdrawal_amount} exceeds commitment value {note.value}"
            )
        logger.debug(f"Withdrawal leaves change commitment {change.hash} worth {change.value}")

    async def _prove(self, circuit: str, witness: Dict[str, Any]) -> ProofResult:
        try:
            artifacts = await self.artifacts.download_artifacts(circuit)
        except Exception as e:
            logger.error(f"Artifact retrieval for {circuit} failed: {e}")
            raise ProofError(
                f"Failed to load {circuit} artifacts", ErrorCode.ARTIFACTS_UNAVAILABLE, circuit, e
            ) from e

        try:
            raw = await self.backend.full_prove(witness, artifacts.program, artifacts.proving_key)
        except Exception as e:
            logger.error(f"Proof generation for {circuit} failed: {e}")
            raise ProofError(
                f"Failed to generate {circuit} proof", ErrorCode.PROOF_GENERATION_FAILED, circuit, e
            ) from e

        try:
            return ProofResult.model_validate(raw)
        except (ValidationError, TypeError) as e:
            raise ProofError(
                f"Backend returned a malformed {circuit} proof",
                ErrorCode.PROOF_GENERATION_FAILED,
                circuit,
                e,
            ) from e

    async def _verify(self, circuit: str, proof: ProofLike) -> bool:
        try:
            if isinstance(proof, ProofResult):
                payload = proof.to_snarkjs()
            else:
                payload = {"proof": proof["proof"], "publicSignals": proof["publicSignals"]}
        except (KeyError, TypeError) as e:
            raise ProofError(
                f"Malformed {circuit} proof", ErrorCode.VERIFICATION_FAILED, circuit, e
            ) from e

        try:
            raw_key = await self.artifacts.get_verification_key(circuit)
        except Exception as e:
            raise ProofError(
                f"Failed to load {circuit} verification key", ErrorCode.ARTIFACTS_UNAVAILABLE, circuit, e
            ) from e

        try:
            if isinstance(raw_key, (bytes, bytearray)):
                raw_key = bytes(raw_key).decode("utf-8")
            verification_key = json.loads(raw_key)
        except (UnicodeDecodeError, ValueError, TypeError) as e:
            raise ProofError(
                f"Unreadable {circuit} verification key", ErrorCode.INVALID_VERIFICATION_KEY, circuit, e
            ) from e

        try:
            valid = await self.backend.verify(
                verification_key, list(payload["publicSignals"]), payload["proof"]
            )
        except Exception as e:
            logger.error(f"Verification of {circuit} proof failed: {e}")
            raise ProofError(
                f"Failed to verify {circuit} proof", ErrorCode.VERIFICATION_FAILED, circuit, e
            ) from e

        return bool(valid)
