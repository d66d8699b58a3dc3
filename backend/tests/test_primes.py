import random

import pytest

from rabin_messenger.crypto.primes import PrimeSearchExhausted, generate_blum_prime, is_probable_prime


def test_small_values():
    assert [n for n in range(-3, 30) if is_probable_prime(n)] == [2, 3, 5, 7, 11, 13, 17, 19, 23, 29]


def test_known_large_prime_and_composite():
    assert is_probable_prime(2 ** 127 - 1)
    assert not is_probable_prime(3 * (2 ** 127 - 1))


@pytest.mark.parametrize("pseudoprime", [341, 561, 645, 1105])
def test_fermat_pseudoprimes_are_accepted(pseudoprime):
    # single-round base-2 Fermat test; these composites pass it
    assert is_probable_prime(pseudoprime)


@pytest.mark.parametrize("bits", [8, 16, 64, 128])
def test_generated_primes_are_blum(bits):
    for _ in range(3):
        prime = generate_blum_prime(bits)
        assert prime % 4 == 3
        assert is_probable_prime(prime)
        assert prime.bit_length() == bits


def test_injected_random_source_is_reproducible():
    first = generate_blum_prime(64, randbits=random.Random(1234).getrandbits)
    second = generate_blum_prime(64, randbits=random.Random(1234).getrandbits)
    assert first == second


def test_candidates_rejected_until_blum_prime():
    # 13 is prime but 1 mod 4, 15 is composite, 11 is a Blum prime
    draws = iter([13, 15, 11])
    assert generate_blum_prime(4, randbits=lambda bits: next(draws)) == 11


def test_bounded_search_gives_up():
    with pytest.raises(PrimeSearchExhausted):
        generate_blum_prime(4, randbits=lambda bits: 13, max_attempts=5)


def test_rejects_degenerate_bit_length():
    with pytest.raises(ValueError):
        generate_blum_prime(1)
