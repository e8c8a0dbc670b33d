"""Cryptographic hash utilities over the proving system's scalar field."""

from cryptography.hazmat.primitives import hashes
from Crypto.Hash import keccak

# BN254 scalar field order (the field circuit signals live in)
SNARK_SCALAR_FIELD = 21888242871839275222246405745257275088548364400416034343698204186575808495617

FIELD_ELEMENT_SIZE = 32  # bytes


def to_field(value: int) -> int:
    """Reduce an integer into ``[0, SNARK_SCALAR_FIELD)``."""
    return value % SNARK_SCALAR_FIELD


def field_to_bytes(value: int) -> bytes:
    """
    Encode a field element as 32 big-endian bytes.

    Args:
        value: Integer, reduced into the field before encoding

    Returns:
        bytes: 32-byte big-endian encoding
    """
    return to_field(value).to_bytes(FIELD_ELEMENT_SIZE, byteorder="big")


def field_hash(*elements: int) -> int:
    """
    Domain hash H(x1, ..., xn) mapping field elements to a field element.

    The arity is absorbed first so that H(a) and H(a, 0) never coincide,
    then every element as a fixed-width 32-byte word.

    Args:
        *elements: Integers, each reduced into the field

    Returns:
        int: Digest reduced modulo SNARK_SCALAR_FIELD
    """
    if not elements:
        raise ValueError("field_hash requires at least one element")
    digest = hashes.Hash(hashes.SHA256())
    digest.update(bytes([len(elements)]))
    for element in elements:
        digest.update(field_to_bytes(element))
    return int.from_bytes(digest.finalize(), byteorder="big") % SNARK_SCALAR_FIELD


def keccak256(data: bytes) -> bytes:
    """Ethereum-flavoured Keccak-256 (not NIST SHA3-256)."""
    hasher = keccak.new(digest_bits=256)
    hasher.update(data)
    return hasher.digest()
