"""Checks that generated primes satisfy the Blum constraint and the primality test."""

import sys

from rabin_messenger.crypto.primes import generate_blum_prime, is_probable_prime

BIT_LENGTHS = [16, 64, 128, 256]


def check(samples: int = 4) -> dict:
    violations = []
    for bits in BIT_LENGTHS:
        for _ in range(samples):
            prime = generate_blum_prime(bits)
            if prime % 4 != 3:
                violations.append({"bits": bits, "prime": str(prime), "reason": "not congruent to 3 mod 4"})
            if not is_probable_prime(prime):
                violations.append({"bits": bits, "prime": str(prime), "reason": "fails primality test"})
            if prime.bit_length() != bits:
                violations.append({"bits": bits, "prime": str(prime), "reason": "wrong bit length"})

    return {
        "check": "blum_primes",
        "generated": samples * len(BIT_LENGTHS),
        "violations": violations,
        "passed": len(violations) == 0,
    }


if __name__ == "__main__":
    result = check()
    status = "✅ PASS" if result["passed"] else "❌ FAIL"
    print(f"{status} – Blum primes : {result['generated']} prime(s), {len(result['violations'])} violation(s)")
    for v in result["violations"]:
        print(f"  ⚠️  {v['bits']} bits: {v['reason']} (value={v['prime']})")
    sys.exit(0 if result["passed"] else 1)
