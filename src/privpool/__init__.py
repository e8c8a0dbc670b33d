"""Main package initialization."""

import logging

__version__ = "0.1.0"
__author__ = "Privacy Pool SDK Team"
__description__ = "Client SDK for shielded value pools: account recovery and withdrawal proofs"

from .core.commitment import AccountCommitment, Commitment, Precommitment, SpendableCommitment
from .core.secrets import DepositSecrets, MasterKeys, derive, generate_master_keys
from .core.account import Account, PoolAccount
from .core.account_service import AccountService
from .core.context import calculate_context
from .core.proofs import ProofService
from .exceptions import ProofError

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AccountCommitment",
    "Commitment",
    "Precommitment",
    "SpendableCommitment",
    "DepositSecrets",
    "MasterKeys",
    "derive",
    "generate_master_keys",
    "Account",
    "PoolAccount",
    "AccountService",
    "calculate_context",
    "ProofService",
    "ProofError",
]
