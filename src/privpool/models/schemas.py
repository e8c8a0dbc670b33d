"""Pydantic data models for pool metadata, chain events and proofs."""

from typing import Annotated, Any, Dict, List, Union

from pydantic import BaseModel, BeforeValidator, Field, field_validator

from privpool.utils.encoding import ensure_bytes, to_int


def _quantity(value: Any) -> int:
    try:
        return to_int(value)
    except TypeError as e:
        raise ValueError(str(e)) from e


# Chain quantities arrive as ints, decimal strings or 0x-hex strings
Quantity = Annotated[int, BeforeValidator(_quantity)]


def _signal_to_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


Signal = Annotated[str, BeforeValidator(_signal_to_str)]


class PoolInfo(BaseModel):
    """Identifies one pool instance."""
    chain_id: int = Field(..., description="Chain the pool is deployed on")
    address: str = Field(..., description="Pool contract address")
    scope: Quantity = Field(..., description="Pool scope, mixed into secret derivation")
    deployment_block: Quantity = Field(..., ge=0, description="First block to scan")

    class Config:
        frozen = True


class DepositEvent(BaseModel):
    """Deposit observed on-chain."""
    depositor: str
    value: Quantity = Field(..., ge=0)
    label: Quantity
    commitment: Quantity = Field(..., description="Commitment hash emitted by the pool")
    precommitment: Quantity = Field(..., description="Precommitment hash supplied by the depositor")
    block_number: Quantity = Field(..., ge=0)
    transaction_hash: str

    class Config:
        frozen = True


class WithdrawalEvent(BaseModel):
    """Withdrawal observed on-chain."""
    withdrawn: Quantity = Field(..., ge=0, description="Amount taken out of the spent commitment")
    spent_nullifier: Quantity = Field(..., description="Nullifier hash of the spent commitment")
    new_commitment: Quantity = Field(..., description="Change commitment inserted by the withdrawal")
    block_number: Quantity = Field(..., ge=0)
    transaction_hash: str

    class Config:
        frozen = True


class RagequitEvent(BaseModel):
    """Public exit of a whole deposit by its original depositor."""
    ragequitter: str
    commitment: Quantity
    label: Quantity
    spent_nullifier: Quantity = Field(..., description="Nullifier hash of the exited deposit")
    value: Quantity = Field(..., ge=0)
    block_number: Quantity = Field(..., ge=0)
    transaction_hash: str

    class Config:
        frozen = True


class MerkleProof(BaseModel):
    """Inclusion proof: ``leaf`` sits at ``index`` in the tree rooted at ``root``."""
    root: Quantity
    leaf: Quantity
    index: int = Field(..., ge=0)
    siblings: List[Quantity] = Field(default_factory=list)

    class Config:
        frozen = True


class WithdrawalInput(BaseModel):
    """Public and private inputs of a withdrawal, besides the spent commitment."""
    withdrawal_amount: Quantity = Field(..., ge=0)
    state_merkle_proof: MerkleProof
    asp_merkle_proof: MerkleProof
    state_root: Quantity
    asp_root: Quantity
    new_nullifier: Quantity
    new_secret: Quantity
    context: Quantity = Field(..., description="Binds the proof to one withdrawal request")
    state_tree_depth: Quantity = Field(..., ge=0)
    asp_tree_depth: Quantity = Field(..., ge=0)

    class Config:
        frozen = True


class Groth16Proof(BaseModel):
    """Groth16 proof as emitted by snarkjs."""
    pi_a: List[Signal]
    pi_b: List[List[Signal]]
    pi_c: List[Signal]
    protocol: str = "groth16"
    curve: str = "bn128"


class ProofResult(BaseModel):
    """A proof together with the public signals it commits to."""
    proof: Groth16Proof
    public_signals: List[Signal] = Field(..., alias="publicSignals")

    class Config:
        populate_by_name = True

    def to_snarkjs(self) -> Dict[str, Any]:
        """Render in the camelCase layout snarkjs reads and writes."""
        return {
            "proof": self.proof.model_dump(),
            "publicSignals": list(self.public_signals),
        }


class Withdrawal(BaseModel):
    """Withdrawal request a proof's context is bound to."""
    processooor: str = Field(..., description="Address allowed to relay the withdrawal")
    data: bytes = Field(default=b"", description="Opaque relay payload")

    @field_validator("processooor")
    @classmethod
    def _check_address(cls, value: str) -> str:
        raw = ensure_bytes(value) if value.startswith("0x") else None
        if raw is None or len(raw) != 20:
            raise ValueError("processooor must be a 0x-prefixed 20-byte address")
        return value

    @field_validator("data", mode="before")
    @classmethod
    def _decode_data(cls, value: Union[bytes, str]) -> bytes:
        if isinstance(value, str):
            return ensure_bytes(value) if value.startswith("0x") else value.encode("utf-8")
        return value
