"""Runs every cryptosystem self-check and writes a consolidated report."""

import asyncio
import json
import sys
from datetime import datetime, timezone

from audit.check_blum_primes import check as check_blum_primes
from audit.check_message_history import check as check_message_history
from audit.check_round_trip import check as check_round_trip


SYNC_CHECKS = [
    check_blum_primes,
    check_round_trip,
]


async def run_async_checks() -> list[dict]:
    return [await check_message_history()]


def main():
    print("=" * 60)
    print("  🔒 SELF-CHECK – Rabin Messenger")
    print(f"  📅 {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')}")
    print("=" * 60)
    print()

    all_results = [fn() for fn in SYNC_CHECKS] + asyncio.run(run_async_checks())

    passed = 0
    failed = 0
    for r in all_results:
        icon = "✅" if r["passed"] else "❌"
        name = r["check"]
        violations = r.get("violations", [])
        if r["passed"]:
            passed += 1
            print(f"  {icon} {name}")
        else:
            failed += 1
            print(f"  {icon} {name} ({len(violations)} violation(s))")
            for v in violations:
                print(f"      ⚠️  {json.dumps(v, ensure_ascii=False)}")

    print()
    print("-" * 60)
    total = passed + failed
    print(f"  Result: {passed}/{total} checks passed")

    if failed:
        print(f"  ⚠️  {failed} check(s) failed")
    else:
        print("  🎉 All checks passed")

    report = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "summary": {"total": total, "passed": passed, "failed": failed},
        "checks": all_results,
    }
    report_path = "audit_report.json"
    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False, default=str)
    print(f"\n  📄 JSON report written: {report_path}")
    print("=" * 60)

    sys.exit(0 if failed == 0 else 1)


if __name__ == "__main__":
    main()
