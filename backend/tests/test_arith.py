import pytest

from rabin_messenger.crypto.arith import extended_gcd, mod_pow


def test_mod_pow_matches_naive_computation():
    for base in range(0, 12):
        for exponent in range(0, 10):
            for modulus in range(1, 15):
                assert mod_pow(base, exponent, modulus) == (base ** exponent) % modulus


def test_mod_pow_modulus_one_is_zero():
    assert mod_pow(5, 3, 1) == 0
    assert mod_pow(0, 0, 1) == 0
    assert mod_pow(123456789, 987654321, 1) == 0


def test_mod_pow_large_operands():
    base = 2 ** 200 + 17
    exponent = 3 ** 90
    modulus = 2 ** 127 - 1
    assert mod_pow(base, exponent, modulus) == pow(base, exponent, modulus)


@pytest.mark.parametrize("modulus", [0, -7])
def test_mod_pow_rejects_non_positive_modulus(modulus):
    with pytest.raises(ValueError):
        mod_pow(2, 3, modulus)


def test_mod_pow_rejects_negative_exponent():
    with pytest.raises(ValueError):
        mod_pow(2, -1, 7)


@pytest.mark.parametrize("a,b", [(7, 11), (11, 7), (240, 46), (2 ** 61 - 1, 2 ** 31 - 1), (1, 1)])
def test_extended_gcd_bezout_identity(a, b):
    g, x, y = extended_gcd(a, b)
    assert a * x + b * y == g
    assert a % g == 0 and b % g == 0


def test_extended_gcd_coprime_example():
    assert extended_gcd(7, 11) == (1, -3, 2)


def test_extended_gcd_large_coprime_values():
    a = 2 ** 521 - 1
    b = 2 ** 607 - 1
    g, x, y = extended_gcd(a, b)
    assert g == 1
    assert a * x + b * y == 1
