"""Generates a fresh key pair and checks that sample messages come back out of the cipher."""

import sys

from rabin_messenger.crypto.codec import decode_all
from rabin_messenger.crypto.rabin import generate_keypair
from rabin_messenger.messenger import send_message

SAMPLE_MESSAGES = ["Hi", "Привет", "Rabin cryptosystem", "ключ 42 ✓"]


def check(bits: int = 256, keypair=None) -> dict:
    pub, priv = keypair if keypair is not None else generate_keypair(bits)

    violations = []
    for text in SAMPLE_MESSAGES:
        exchange = send_message(pub, priv, text)
        if not exchange.found:
            violations.append({"message": text, "reason": "not among the four candidates"})
        elif len({r.value for r in decode_all(exchange.candidates) if r.ok and r.text == text}) != 1:
            violations.append({"message": text, "reason": "matched more than one candidate"})

    return {
        "check": "round_trip",
        "bits": bits,
        "messages": len(SAMPLE_MESSAGES),
        "violations": violations,
        "passed": len(violations) == 0,
    }


if __name__ == "__main__":
    result = check()
    status = "✅ PASS" if result["passed"] else "❌ FAIL"
    print(f"{status} – Round trip : {result['messages']} message(s), {len(result['violations'])} violation(s)")
    for v in result["violations"]:
        print(f"  ⚠️  \"{v['message']}\": {v['reason']}")
    sys.exit(0 if result["passed"] else 1)
