"""Encoding and decoding utilities."""

from typing import Union


def bytes_to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string.

    Args:
        data: Bytes to convert

    Returns:
        str: Hexadecimal string with '0x' prefix
    """
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """
    Convert hexadecimal string to bytes.

    Args:
        hex_str: Hexadecimal string (with or without '0x' prefix)

    Returns:
        bytes: Decoded bytes

    Raises:
        ValueError: If hex string is invalid
    """
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]

    if len(hex_str) % 2 != 0:
        raise ValueError("Hex string must have even number of characters")

    return bytes.fromhex(hex_str)


def int_to_hex(value: int, size: int = 32) -> str:
    """Encode a non-negative integer as a 0x-prefixed, zero-padded hex string."""
    if value < 0:
        raise ValueError("Cannot hex-encode a negative integer")
    return bytes_to_hex(value.to_bytes(size, byteorder="big"))


def to_int(value: Union[int, str, bytes]) -> int:
    """
    Coerce a chain-encoded quantity to an integer.

    Accepts ints, decimal strings, 0x-prefixed hex strings and big-endian bytes.
    """
    if isinstance(value, bool):
        raise TypeError("Booleans are not quantities")
    if isinstance(value, int):
        return value
    if isinstance(value, bytes):
        return int.from_bytes(value, byteorder="big")
    if isinstance(value, str):
        value = value.strip()
        if value.lower().startswith("0x"):
            return int(value, 16)
        return int(value, 10)
    raise TypeError(f"Expected int, str or bytes, got {type(value)}")


def ensure_bytes(data: Union[bytes, str]) -> bytes:
    """
    Ensure data is in bytes format.

    Hex strings with a '0x' prefix are decoded; other strings are UTF-8 encoded.
    """
    if isinstance(data, bytes):
        return data
    elif isinstance(data, str):
        if data.startswith("0x"):
            return hex_to_bytes(data)
        return data.encode("utf-8")
    else:
        raise TypeError(f"Expected bytes or str, got {type(data)}")


def witness_value(value: object) -> object:
    """Recursively render witness integers as decimal strings for JSON."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [witness_value(v) for v in value]
    if isinstance(value, dict):
        return {k: witness_value(v) for k, v in value.items()}
    return value
