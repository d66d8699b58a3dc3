from typing import Tuple


def mod_pow(base: int, exponent: int, modulus: int) -> int:
    """Square-and-multiply computation of ``base ** exponent % modulus``."""
    if modulus <= 0:
        raise ValueError("modulus must be positive")
    if exponent < 0:
        raise ValueError("exponent must be non-negative")
    if modulus == 1:
        return 0

    result = 1
    base %= modulus
    while exponent > 0:
        if exponent & 1:
            result = (result * base) % modulus
        base = (base * base) % modulus
        exponent >>= 1
    return result


def extended_gcd(a: int, b: int) -> Tuple[int, int, int]:
    """Iterative extended Euclid. Returns (gcd, x, y) with a*x + b*y == gcd."""
    old_r, r = a, b
    old_x, x = 1, 0
    old_y, y = 0, 1

    while r != 0:
        quotient = old_r // r
        old_r, r = r, old_r - quotient * r
        old_x, x = x, old_x - quotient * x
        old_y, y = y, old_y - quotient * y

    return old_r, old_x, old_y

