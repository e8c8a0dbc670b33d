"""Deterministic derivation of deposit and withdrawal secrets from a seed.

Every secret the pool ever needs is a pure function of the holder's seed:

    master_nullifier = HKDF(seed, info="privpool/master-nullifier")
    master_secret    = HKDF(seed, info="privpool/master-secret")

    deposit i in scope s:
        nullifier     = H(master_nullifier, s, i)
        secret        = H(master_secret, s, i)
        precommitment = H(nullifier, secret)

    withdrawal j of the deposit labelled l:
        nullifier = H(master_nullifier, WITHDRAWAL_DOMAIN, l, j)
        secret    = H(master_secret, WITHDRAWAL_DOMAIN, l, j)

The two master keys come from independent HKDF expansions, so knowing a
nullifier reveals nothing about the matching secret. Withdrawal hashes carry
an extra domain word and are separated from deposit hashes even when a label
equals a scope. Nothing is stored; callers pass the seed (or the derived
MasterKeys) on every call.
"""

from dataclasses import dataclass
from typing import Tuple

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from privpool.core.commitment import hash_precommitment
from privpool.utils.hash import field_hash, to_field

MASTER_NULLIFIER_INFO = b"privpool/master-nullifier"
MASTER_SECRET_INFO = b"privpool/master-secret"
MASTER_KEY_SALT = b"privpool/v1"

# Leading word of withdrawal derivations
WITHDRAWAL_DOMAIN = 1

# Extra bytes keep the modular reduction bias negligible
MASTER_KEY_SIZE = 48


@dataclass(frozen=True)
class MasterKeys:
    """Root secrets every deposit and withdrawal secret descends from."""

    master_nullifier: int
    master_secret: int

    def __repr__(self) -> str:
        return "MasterKeys(<redacted>)"


@dataclass(frozen=True)
class DepositSecrets:
    """Secret material for one deposit."""

    nullifier: int
    secret: int
    precommitment: int

    def __repr__(self) -> str:
        return f"DepositSecrets(precommitment={self.precommitment})"


def _expand(seed: bytes, info: bytes) -> int:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=MASTER_KEY_SIZE,
        salt=MASTER_KEY_SALT,
        info=info,
    )
    return to_field(int.from_bytes(hkdf.derive(seed), byteorder="big"))


def generate_master_keys(seed: bytes) -> MasterKeys:
    """
    Derive the two master keys from a seed.

    Args:
        seed: Byte seed, e.g. the output of a BIP-39 mnemonic-to-seed function

    Returns:
        MasterKeys: Independent master nullifier and master secret
    """
    if not isinstance(seed, (bytes, bytearray)) or not seed:
        raise ValueError("Seed must be non-empty bytes")
    seed = bytes(seed)
    return MasterKeys(
        master_nullifier=_expand(seed, MASTER_NULLIFIER_INFO),
        master_secret=_expand(seed, MASTER_SECRET_INFO),
    )


def derive_deposit_secrets(keys: MasterKeys, scope: int, index: int) -> DepositSecrets:
    """
    Derive the secrets of deposit ``index`` in pool ``scope``.

    Args:
        keys: Master keys of the account
        scope: Pool scope
        index: Sequential deposit index within the scope

    Returns:
        DepositSecrets: nullifier, secret and precommitment hash
    """
    nullifier = field_hash(keys.master_nullifier, scope, index)
    secret = field_hash(keys.master_secret, scope, index)
    return DepositSecrets(
        nullifier=nullifier,
        secret=secret,
        precommitment=hash_precommitment(nullifier, secret),
    )


def derive(seed: bytes, scope: int, index: int) -> DepositSecrets:
    """Derive deposit secrets straight from a seed."""
    return derive_deposit_secrets(generate_master_keys(seed), scope, index)


def derive_withdrawal_secrets(keys: MasterKeys, label: int, index: int) -> Tuple[int, int]:
    """
    Derive the (nullifier, secret) of the change commitment created by the
    ``index``-th withdrawal from the deposit labelled ``label``.
    """
    nullifier = field_hash(keys.master_nullifier, WITHDRAWAL_DOMAIN, label, index)
    secret = field_hash(keys.master_secret, WITHDRAWAL_DOMAIN, label, index)
    return nullifier, secret
