from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from rabin_messenger.crypto.arith import extended_gcd, mod_pow
from rabin_messenger.crypto.primes import generate_blum_prime, is_probable_prime

MIN_KEY_BITS = 10


class InvalidKeyMaterial(ValueError):
    """Caller-supplied primes cannot form a Rabin key."""


@dataclass(frozen=True)
class PublicKey:
    n: int


@dataclass(frozen=True)
class PrivateKey:
    p: int
    q: int

    @property
    def n(self) -> int:
        return self.p * self.q

    @property
    def public_key(self) -> PublicKey:
        return PublicKey(n=self.n)


def _check_blum(value: int, name: str) -> None:
    if value % 4 != 3:
        raise InvalidKeyMaterial(f"{name} must be congruent to 3 mod 4")
    if not is_probable_prime(value):
        raise InvalidKeyMaterial(f"{name} is not prime")


def derive_keys(p: int, q: int) -> Tuple[PublicKey, PrivateKey]:
    _check_blum(p, "p")
    _check_blum(q, "q")
    if p == q:
        raise InvalidKeyMaterial("p and q must be distinct")
    priv = PrivateKey(p=p, q=q)
    return priv.public_key, priv


def generate_keypair(bits: int = 512, max_attempts: Optional[int] = None) -> Tuple[PublicKey, PrivateKey]:
    """Generate two distinct Blum primes of ``bits // 2`` bits each.

    ``max_attempts`` caps each prime search; the default search is unbounded.
    """
    if bits < MIN_KEY_BITS:
        raise ValueError(f"key size must be at least {MIN_KEY_BITS} bits")
    half = bits // 2
    p = generate_blum_prime(half, max_attempts=max_attempts)
    q = generate_blum_prime(half, max_attempts=max_attempts)
    while q == p:
        q = generate_blum_prime(half, max_attempts=max_attempts)
    priv = PrivateKey(p=p, q=q)
    return priv.public_key, priv


def encrypt(m: int, n: Union[int, PublicKey]) -> int:
    """Rabin encryption, ``m**2 mod n``. Only round-trips for ``0 <= m < n``."""
    if isinstance(n, PublicKey):
        n = n.n
    return (m * m) % n


def decrypt(c: int, p: int, q: int) -> List[int]:
    """Return the four square roots of ``c`` modulo ``p*q``.

    Roots modulo each prime come from ``c^((k+1)/4) mod k`` and are combined
    with the Bezout coefficients of ``p`` and ``q`` (CRT). The candidates are
    ordered (rq, rp), (-rq, rp), (rq, -rp), (-rq, -rp).
    """
    n = p * q

    root_p = mod_pow(c, (p + 1) // 4, p)
    root_q = mod_pow(c, (q + 1) // 4, q)
    roots_p = (root_p, p - root_p)
    roots_q = (root_q, q - root_q)

    _, yp, yq = extended_gcd(p, q)

    candidates = []
    for rp in roots_p:
        for rq in roots_q:
            value = (yp * p * rq + yq * q * rp) % n
            if value < 0:
                value += n
            candidates.append(value)
    return candidates


def decrypt_with_key(priv: PrivateKey, c: int) -> List[int]:
    return decrypt(c, priv.p, priv.q)
