"""Short code generation.

Codes are drawn uniformly from ``[a-zA-Z0-9]`` with nanoid; with the default
length of 6 the space is 62^6 (about 56.8 billion). Generation does not
guarantee uniqueness, so allocation checks each candidate against the store
and gives up with ``CapacityExhausted`` after a bounded number of collisions.
"""

from collections.abc import Awaitable, Callable

from nanoid import generate

from shortener.errors import CapacityExhausted

__all__ = ["ALPHABET", "DEFAULT_CODE_LENGTH", "generate_short_code", "allocate_unique_code"]

ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
DEFAULT_CODE_LENGTH = 6


def generate_short_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    return generate(ALPHABET, length)


async def allocate_unique_code(
    is_taken: Callable[[str], Awaitable[bool]],
    max_attempts: int = 10,
    length: int = DEFAULT_CODE_LENGTH,
) -> str:
    """Return a generated code for which ``is_taken`` is false.

    Raises:
        CapacityExhausted: If ``max_attempts`` consecutive candidates collide.
    """
    assert max_attempts > 0, f"max_attempts must be positive, got {max_attempts!r}"
    for _ in range(max_attempts):
        code = generate_short_code(length)
        if not await is_taken(code):
            return code
    raise CapacityExhausted(f"No free short code after {max_attempts} attempts")
