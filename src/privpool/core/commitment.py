"""Precommitments and commitments binding a deposit to its secrets."""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from privpool.utils.hash import SNARK_SCALAR_FIELD, field_hash
from privpool.exceptions import InvalidCommitmentError, InvalidSecretError


def hash_precommitment(nullifier: int, secret: int) -> int:
    """Precommitment hash H(nullifier, secret)."""
    return field_hash(nullifier, secret)


def hash_nullifier(nullifier: int) -> int:
    """Public nullifier hash H(nullifier), revealed when the commitment is spent."""
    return field_hash(nullifier)


def hash_commitment(value: int, label: int, precommitment_hash: int) -> int:
    """Commitment hash H(value, label, precommitment)."""
    return field_hash(value, label, precommitment_hash)


def _check_secret(name: str, secret: int) -> None:
    if not isinstance(secret, int) or isinstance(secret, bool):
        raise InvalidSecretError(f"{name} must be an integer")
    if not 0 <= secret < SNARK_SCALAR_FIELD:
        raise InvalidSecretError(f"{name} is outside the scalar field")


@runtime_checkable
class SpendableCommitment(Protocol):
    """Anything that can be spent by a withdrawal proof."""

    @property
    def value(self) -> int: ...

    @property
    def label(self) -> int: ...

    @property
    def nullifier(self) -> int: ...

    @property
    def secret(self) -> int: ...


@dataclass(frozen=True)
class Precommitment:
    """Binding of a (nullifier, secret) pair, published at deposit time."""

    hash: int
    nullifier: int
    secret: int

    def __post_init__(self):
        _check_secret("nullifier", self.nullifier)
        _check_secret("secret", self.secret)
        if self.hash != hash_precommitment(self.nullifier, self.secret):
            raise InvalidCommitmentError("Precommitment hash does not match its secrets")

    @classmethod
    def create(cls, nullifier: int, secret: int) -> "Precommitment":
        return cls(hash=hash_precommitment(nullifier, secret), nullifier=nullifier, secret=secret)


@dataclass(frozen=True)
class CommitmentPreimage:
    """Values hashed into a commitment."""

    value: int
    label: int
    precommitment: Precommitment


@dataclass(frozen=True)
class Commitment:
    """
    Raw commitment as created at deposit time.

    Both ``hash`` and ``nullifier_hash`` are recomputed from the preimage
    on construction; a mismatch raises InvalidCommitmentError.
    """

    hash: int
    nullifier_hash: int
    preimage: CommitmentPreimage

    def __post_init__(self):
        precommitment = self.preimage.precommitment
        if self.preimage.value < 0:
            raise InvalidCommitmentError("Commitment value must be non-negative")
        expected = hash_commitment(self.preimage.value, self.preimage.label, precommitment.hash)
        if self.hash != expected:
            raise InvalidCommitmentError("Commitment hash does not match its preimage")
        if self.nullifier_hash != hash_nullifier(precommitment.nullifier):
            raise InvalidCommitmentError("Nullifier hash does not match the nullifier")

    @classmethod
    def create(cls, value: int, label: int, nullifier: int, secret: int) -> "Commitment":
        """
        Build a commitment from its secrets.

        Args:
            value: Deposited amount
            label: Deposit label
            nullifier: Spend-authorization secret
            secret: Blinding secret

        Returns:
            Commitment: Commitment with both hashes computed
        """
        precommitment = Precommitment.create(nullifier, secret)
        return cls(
            hash=hash_commitment(value, label, precommitment.hash),
            nullifier_hash=hash_nullifier(nullifier),
            preimage=CommitmentPreimage(value=value, label=label, precommitment=precommitment),
        )

    @property
    def value(self) -> int:
        return self.preimage.value

    @property
    def label(self) -> int:
        return self.preimage.label

    @property
    def nullifier(self) -> int:
        return self.preimage.precommitment.nullifier

    @property
    def secret(self) -> int:
        return self.preimage.precommitment.secret


@dataclass(frozen=True)
class AccountCommitment:
    """
    Commitment as seen after reconciliation, with chain provenance.

    Same entity as Commitment with the preimage flattened.
    """

    hash: int
    value: int
    label: int
    nullifier: int
    secret: int
    block_number: int
    tx_hash: str

    def __post_init__(self):
        _check_secret("nullifier", self.nullifier)
        _check_secret("secret", self.secret)
        if self.value < 0:
            raise InvalidCommitmentError("Commitment value must be non-negative")
        if self.hash != hash_commitment(self.value, self.label, self.precommitment_hash):
            raise InvalidCommitmentError("Commitment hash does not match its preimage")

    @classmethod
    def create(
        cls,
        value: int,
        label: int,
        nullifier: int,
        secret: int,
        block_number: int,
        tx_hash: str,
    ) -> "AccountCommitment":
        precommitment_hash = hash_precommitment(nullifier, secret)
        return cls(
            hash=hash_commitment(value, label, precommitment_hash),
            value=value,
            label=label,
            nullifier=nullifier,
            secret=secret,
            block_number=block_number,
            tx_hash=tx_hash,
        )

    @property
    def precommitment_hash(self) -> int:
        return hash_precommitment(self.nullifier, self.secret)

    @property
    def nullifier_hash(self) -> int:
        return hash_nullifier(self.nullifier)

    def to_commitment(self) -> Commitment:
        """Drop provenance and return the nested representation."""
        return Commitment.create(self.value, self.label, self.nullifier, self.secret)


@dataclass(frozen=True)
class SpentNote:
    """Normalized view of a spendable commitment used to build witnesses."""

    hash: int
    value: int
    label: int
    nullifier: int
    secret: int

    @classmethod
    def from_commitment(cls, commitment: SpendableCommitment) -> "SpentNote":
        """
        Normalize any object exposing ``value``, ``label``, ``nullifier`` and ``secret``.

        The commitment hash is recomputed from those four fields. A ``hash``
        attribute, when present, must agree with it.

        Raises:
            InvalidCommitmentError: If a spendable field is missing or the hashes disagree
            InvalidSecretError: If the nullifier or secret is not a field element
        """
        try:
            value = commitment.value
            label = commitment.label
            nullifier = commitment.nullifier
            secret = commitment.secret
        except AttributeError as e:
            raise InvalidCommitmentError(f"Not a spendable commitment: {e}") from e

        _check_secret("nullifier", nullifier)
        _check_secret("secret", secret)
        if value < 0:
            raise InvalidCommitmentError("Commitment value must be non-negative")

        computed = hash_commitment(value, label, hash_precommitment(nullifier, secret))
        declared = getattr(commitment, "hash", None)
        if declared is not None and declared != computed:
            raise InvalidCommitmentError("Commitment hash does not match its preimage")

        return cls(hash=computed, value=value, label=label, nullifier=nullifier, secret=secret)

    @property
    def nullifier_hash(self) -> int:
        return hash_nullifier(self.nullifier)


def remainder_commitment(
    spent: SpentNote, withdrawn: int, new_nullifier: int, new_secret: int
) -> Optional[Commitment]:
    """Change commitment left after withdrawing ``withdrawn`` from ``spent``."""
    if withdrawn > spent.value:
        return None
    return Commitment.create(spent.value - withdrawn, spent.label, new_nullifier, new_secret)
