"""Checks that every stored ciphertext is the square of its encoded message modulo n."""

import asyncio
import sys

from sqlalchemy import select

from rabin_messenger.crypto.codec import encode
from rabin_messenger.crypto.rabin import encrypt
from rabin_messenger.db import get_engine, init_db, messages_table


async def check() -> dict:
    engine = get_engine()
    await init_db(engine)

    async with engine.connect() as conn:
        rows = (await conn.execute(select(messages_table))).mappings().all()

    violations = []
    for row in rows:
        n = int(row["modulus"])
        encoded = encode(row["original"])
        if int(row["encoded"]) != encoded:
            violations.append({"message_id": row["id"], "reason": "stored integer does not match the text"})
        elif int(row["ciphertext"]) != encrypt(encoded, n):
            violations.append({"message_id": row["id"], "reason": "ciphertext is not m^2 mod n"})
        elif str(encoded) not in row["candidates"].split(","):
            violations.append({"message_id": row["id"], "reason": "message missing from candidates"})
        elif row["found"] and row["decrypted_message"] != row["original"]:
            violations.append({"message_id": row["id"], "reason": "recovered text differs from original"})

    return {
        "check": "message_history",
        "total_messages": len(rows),
        "violations": violations,
        "passed": len(violations) == 0,
    }


if __name__ == "__main__":
    result = asyncio.run(check())
    status = "✅ PASS" if result["passed"] else "❌ FAIL"
    print(f"{status} – Message history : {result['total_messages']} message(s), {len(result['violations'])} violation(s)")
    for v in result["violations"]:
        print(f"  ⚠️  message #{v['message_id']}: {v['reason']}")
    sys.exit(0 if result["passed"] else 1)
