"""Seeded, reproducible card ordering.

The same seed string always yields the same permutation, so a study session
can be resumed after a crash by re-deriving its order instead of trusting a
stale copy. The hash (cyrb53) and generator (mulberry32) use 32-bit integer
arithmetic so orders match those produced by existing web clients.
"""
from typing import Callable, List, Sequence, TypeVar

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    """32-bit multiply, low word only (unsigned)."""
    return ((a & _MASK32) * (b & _MASK32)) & _MASK32


def _utf16_units(text: str) -> List[int]:
    data = text.encode("utf-16-le")
    return [int.from_bytes(data[i:i + 2], "little") for i in range(0, len(data), 2)]


def cyrb53(text: str, seed: int = 0) -> int:
    """
    53-bit string hash.

    Args:
        text: String to hash
        seed: Optional hash seed

    Returns:
        Non-negative integer below 2**53
    """
    h1 = (0xDEADBEEF ^ seed) & _MASK32
    h2 = (0x41C6CE57 ^ seed) & _MASK32
    for ch in _utf16_units(text):
        h1 = _imul(h1 ^ ch, 2654435761)
        h2 = _imul(h2 ^ ch, 1597334677)

    h1 = _imul(h1 ^ (h1 >> 16), 2246822507) ^ _imul(h2 ^ (h2 >> 13), 3266489909)
    h2 = _imul(h2 ^ (h2 >> 16), 2246822507) ^ _imul(h1 ^ (h1 >> 13), 3266489909)
    return 4294967296 * (2097151 & h2) + h1


def mulberry32(seed: int) -> Callable[[], float]:
    """
    Small 32-bit PRNG.

    Args:
        seed: Integer seed; only the low 32 bits are used

    Returns:
        Function returning floats uniformly distributed in [0, 1)
    """
    state = seed & _MASK32

    def next_float() -> float:
        nonlocal state
        state = (state + 0x6D2B79F5) & _MASK32
        t = _imul(state ^ (state >> 15), state | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return (t ^ (t >> 14)) / 4294967296

    return next_float


def deterministic_shuffle(items: Sequence[T], seed: str) -> List[T]:
    """
    Fisher-Yates shuffle driven by mulberry32(cyrb53(seed)).

    The input is not modified.

    Args:
        items: Items to permute
        seed: Seed string, e.g. "user:deck:Remember"

    Returns:
        New list with the permuted items
    """
    rand = mulberry32(cyrb53(seed))
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = int(rand() * (i + 1))
        result[i], result[j] = result[j], result[i]
    return result


def session_seed(user_id: str, deck_id: str, scope: str) -> str:
    """Seed string for a user's order of one deck scope (a tier, "remix", ...)."""
    return f"{user_id}:{deck_id}:{scope}"
