#!/usr/bin/env python3
"""
Check billing-pilot's dependencies from the command line.

Usage:
    python check_health.py                      # Run every check in-process
    python check_health.py --check stripe       # Only the Stripe key check
    python check_health.py --url http://pi:8000 # Ask a running server instead
    python check_health.py --strict             # Fail when Stripe or OCR is missing
    python check_health.py --json               # Output as JSON

Exit code is 1 when any check is unhealthy (or degraded, with --strict).
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import httpx

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from billing_pilot.services.healthcheck import (
    CheckResult,
    HealthReport,
    HealthStatus,
    get_health_checker,
    overall_status,
)

CHECKS = ("api", "supabase", "stripe", "tesseract")

COLORS = {
    HealthStatus.HEALTHY: "\033[92m",
    HealthStatus.DEGRADED: "\033[93m",
    HealthStatus.UNHEALTHY: "\033[91m",
    HealthStatus.UNKNOWN: "\033[90m",
}
RESET = "\033[0m"

# What a degraded check turns off
DEGRADED_IMPACT = {
    "stripe": "deploys, meter creation and usage forwarding are disabled",
    "tesseract": "image uploads return 503",
}


async def local_report(only: str | None) -> dict:
    checker = get_health_checker()
    if only is None:
        return (await checker.run_all_checks()).to_dict()

    result: CheckResult = await getattr(checker, f"check_{only}")()
    return HealthReport(status=overall_status([result]), checks=[result]).to_dict()


def remote_report(url: str, only: str | None) -> dict:
    response = httpx.get(f"{url.rstrip('/')}/health/services", timeout=30)
    response.raise_for_status()
    report = response.json()
    if only is not None:
        report["checks"] = [c for c in report["checks"] if c["name"] == only]
    return report


def format_details(details: dict) -> str:
    return ", ".join(f"{k}={v}" for k, v in details.items())


def print_report(report: dict, source: str) -> None:
    status = HealthStatus(report["status"])
    print("\n" + "=" * 72)
    print("  BILLING-PILOT HEALTH CHECK")
    print(f"  Source: {source}  Version: {report['version']}")
    print(f"  Overall: {COLORS[status]}{status.value.upper()}{RESET}  ({report['summary']})")
    print("=" * 72)
    print(f"  {'Check':<12} {'Status':<12} {'Latency':<9} Message")
    print("  " + "-" * 68)

    for check in report["checks"]:
        check_status = HealthStatus(check["status"])
        latency = f"{check['latency_ms']:.0f}ms" if check["latency_ms"] else "-"
        print(f"  {check['name']:<12} {COLORS[check_status]}{check_status.value:<12}{RESET} "
              f"{latency:<9} {check['message']}")
        if check["details"]:
            print(f"  {'':<12} {format_details(check['details'])}")
        if check_status == HealthStatus.DEGRADED and check["name"] in DEGRADED_IMPACT:
            print(f"  {'':<12} -> {DEGRADED_IMPACT[check['name']]}")

    print("  " + "-" * 68 + "\n")


def exit_code(report: dict, strict: bool) -> int:
    failing = {HealthStatus.UNHEALTHY.value}
    if strict:
        failing.add(HealthStatus.DEGRADED.value)
    return 1 if any(c["status"] in failing for c in report["checks"]) else 0


def main():
    parser = argparse.ArgumentParser(description="Check billing-pilot dependencies")
    parser.add_argument("--check", choices=CHECKS, help="Run a single check")
    parser.add_argument("--url", help="Base URL of a running server")
    parser.add_argument("--strict", action="store_true", help="Treat degraded checks as failures")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args()

    if args.url:
        try:
            report = remote_report(args.url, args.check)
        except httpx.HTTPError as e:
            print(f"Could not reach {args.url}: {e}")
            sys.exit(1)
        source = args.url
    else:
        report = asyncio.run(local_report(args.check))
        source = "in-process"

    if args.json:
        print(json.dumps(report, indent=2))
    else:
        print_report(report, source)

    sys.exit(exit_code(report, args.strict))


if __name__ == "__main__":
    main()
