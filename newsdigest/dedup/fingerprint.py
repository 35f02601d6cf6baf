"""Content fingerprints: exact MD5 hash and 64-bit simhash."""

import hashlib

from .similarity import text_to_vector

DEFAULT_HASH_BITS = 64
MAX_HASH_BITS = 128  # MD5 digest width


class FingerprintMismatchError(ValueError):
    """Two simhash fingerprints of different bit widths were compared."""


def md5_fingerprint(content: str) -> str:
    """
    Exact-content fingerprint.

    Returns:
        Hex MD5 of the trimmed content, or "" for empty content
    """
    if not content:
        return ""
    return hashlib.md5(content.strip().encode("utf-8")).hexdigest()


def _token_hash(token: str) -> int:
    return int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16)


def simhash(text: str, hash_bits: int = DEFAULT_HASH_BITS) -> str:
    """
    Locality-sensitive fingerprint as a bit string.

    Each token (weighted by term frequency) votes +w on the bits set in its
    MD5 hash and -w on the others; a bit is 1 iff its tally is positive.
    Character i of the result is bit i (least significant first).

    Args:
        text: Input text
        hash_bits: Fingerprint width, 1-128

    Returns:
        String of `hash_bits` "0"/"1" characters
    """
    if not 0 < hash_bits <= MAX_HASH_BITS:
        raise ValueError(f"hash_bits must be within 1-{MAX_HASH_BITS}, got {hash_bits}")

    if not text:
        return "0" * hash_bits

    tally = [0] * hash_bits
    for token, weight in text_to_vector(text).items():
        h = _token_hash(token)
        for i in range(hash_bits):
            if (h >> i) & 1:
                tally[i] += weight
            else:
                tally[i] -= weight

    return "".join("1" if v > 0 else "0" for v in tally)


def hamming_distance(hash1: str, hash2: str) -> int:
    """
    Number of differing bit positions.

    Raises:
        FingerprintMismatchError: fingerprints have different widths
    """
    if len(hash1) != len(hash2):
        raise FingerprintMismatchError(
            f"Simhash length mismatch: {len(hash1)} != {len(hash2)}"
        )
    return sum(1 for a, b in zip(hash1, hash2) if a != b)
