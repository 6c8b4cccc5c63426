"""RFC 4648 Base32 codec for OTP shared secrets.

Google Authenticator convention: upper-case alphabet, no ``=`` padding on
encode. Decoding is tolerant: input is upper-cased and any character outside
the alphabet (padding, spaces, dashes, garbage) is skipped instead of raising.
"""

from typing import Dict

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"

_LOOKUP: Dict[str, int] = {char: index for index, char in enumerate(ALPHABET)}


def encode(data: bytes) -> str:
    """Encode bytes as unpadded Base32.

    Args:
        data: Raw bytes (e.g. the 20-byte secret)

    Returns:
        Base32 string, 8 symbols per 5 input bytes, trailing bits left-aligned
        into a final symbol.
    """
    bits = 0
    value = 0
    output = []

    for byte in bytes(data):
        value = (value << 8) | byte
        bits += 8

        while bits >= 5:
            output.append(ALPHABET[(value >> (bits - 5)) & 31])
            bits -= 5

        # keep only the bits not yet emitted
        value &= (1 << bits) - 1

    if bits > 0:
        output.append(ALPHABET[(value << (5 - bits)) & 31])

    return "".join(output)


def decode(text: str) -> bytes:
    """Decode Base32 text into bytes, skipping non-alphabet characters.

    Leftover bits (fewer than 8) at the end of the input are discarded.

    Args:
        text: Base32 string, any case

    Returns:
        Decoded bytes; empty when the input holds no alphabet characters.
    """
    bits = 0
    value = 0
    output = bytearray()

    for char in (text or "").upper():
        index = _LOOKUP.get(char)
        if index is None:
            continue

        value = (value << 5) | index
        bits += 5

        if bits >= 8:
            output.append((value >> (bits - 8)) & 0xFF)
            bits -= 8
            value &= (1 << bits) - 1

    return bytes(output)
