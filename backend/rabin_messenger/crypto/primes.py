import secrets
from typing import Callable, Optional

from rabin_messenger.crypto.arith import mod_pow


class PrimeSearchExhausted(RuntimeError):
    """Raised when a bounded prime search runs out of attempts."""


def is_probable_prime(n: int) -> bool:
    """Single-round Fermat test with base 2.

    Fermat pseudoprimes to base 2 (341, 561, 645, ...) are reported as prime.
    """
    if n <= 1:
        return False
    if n <= 3:
        return True
    if n % 2 == 0:
        return False
    return mod_pow(2, n - 1, n) == 1


def _random_odd(bits: int, randbits: Callable[[int], int]) -> int:
    # top bit pins the bit length, low bit makes it odd
    return randbits(bits) | (1 << (bits - 1)) | 1


def generate_blum_prime(
    bit_length: int,
    randbits: Callable[[int], int] = secrets.randbits,
    max_attempts: Optional[int] = None,
) -> int:
    """Draw random odd candidates until one is a probable prime congruent to 3 mod 4.

    The search is unbounded unless ``max_attempts`` is given. Very short bit
    lengths have few or no Blum primes and may never terminate.
    """
    if bit_length < 2:
        raise ValueError("bit length must be at least 2")

    attempts = 0
    while max_attempts is None or attempts < max_attempts:
        attempts += 1
        candidate = _random_odd(bit_length, randbits)
        if not is_probable_prime(candidate):
            continue
        if candidate % 4 == 3:
            return candidate

    raise PrimeSearchExhausted(f"no {bit_length}-bit Blum prime after {attempts} attempts")
