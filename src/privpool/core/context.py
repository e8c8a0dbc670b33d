"""Withdrawal context: the public value tying a proof to one request."""

from privpool.models.schemas import Withdrawal
from privpool.utils.encoding import hex_to_bytes
from privpool.utils.hash import SNARK_SCALAR_FIELD, keccak256

WORD = 32


def _word(value: int) -> bytes:
    return value.to_bytes(WORD, byteorder="big")


def _pad_right(data: bytes) -> bytes:
    remainder = len(data) % WORD
    return data + b"\x00" * ((WORD - remainder) % WORD)


def encode_withdrawal(withdrawal: Withdrawal, scope: int) -> bytes:
    """
    ABI-encode ``((address processooor, bytes data), uint256 scope)``.

    Matches Solidity's ``abi.encode(withdrawal, scope)`` for the pool's
    Withdrawal struct: the struct is dynamic, so the head holds its offset.
    """
    address = hex_to_bytes(withdrawal.processooor)
    data = withdrawal.data

    struct = (
        address.rjust(WORD, b"\x00")
        + _word(2 * WORD)  # offset of `data` inside the struct
        + _word(len(data))
        + _pad_right(data)
    )
    head = _word(2 * WORD) + _word(scope)
    return head + struct


def calculate_context(withdrawal: Withdrawal, scope: int) -> int:
    """
    Compute the context signal of a withdrawal proof.

    Args:
        withdrawal: Relay address and payload of the withdrawal request
        scope: Scope of the pool being withdrawn from

    Returns:
        int: keccak256 of the encoded request reduced into the scalar field
    """
    digest = keccak256(encode_withdrawal(withdrawal, scope))
    return int.from_bytes(digest, byteorder="big") % SNARK_SCALAR_FIELD
