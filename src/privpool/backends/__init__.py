"""Collaborator contracts and reference implementations."""

from privpool.backends.base import (
    COMMITMENT_CIRCUIT,
    WITHDRAWAL_CIRCUIT,
    ArtifactProvider,
    ChainDataSource,
    CircuitArtifacts,
    ProvingBackend,
)
from privpool.backends.artifacts import FileSystemArtifactProvider
from privpool.backends.memory import InMemoryDataSource
from privpool.backends.snarkjs import SnarkjsBackend

__all__ = [
    "COMMITMENT_CIRCUIT",
    "WITHDRAWAL_CIRCUIT",
    "ArtifactProvider",
    "ChainDataSource",
    "CircuitArtifacts",
    "ProvingBackend",
    "FileSystemArtifactProvider",
    "InMemoryDataSource",
    "SnarkjsBackend",
]
