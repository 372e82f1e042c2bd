"""
Health check system.

Checks:
- API responsiveness
- Database connectivity (Supabase)
- Stripe API key
- Tesseract OCR binary
"""

import asyncio
import logging
import subprocess
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health check status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class CheckResult:
    """Result of a single health check."""
    name: str
    status: HealthStatus
    message: str = ""
    latency_ms: float = 0
    details: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.utcnow)


@dataclass
class HealthReport:
    """Complete health report for the system."""
    status: HealthStatus
    checks: list[CheckResult]
    timestamp: datetime = field(default_factory=datetime.utcnow)
    version: str = "0.1.0"

    @property
    def healthy_count(self) -> int:
        return sum(1 for c in self.checks if c.status == HealthStatus.HEALTHY)

    @property
    def total_count(self) -> int:
        return len(self.checks)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "version": self.version,
            "timestamp": self.timestamp.isoformat(),
            "summary": f"{self.healthy_count}/{self.total_count} checks passing",
            "checks": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": round(c.latency_ms, 2),
                    "details": c.details,
                }
                for c in self.checks
            ]
        }


def overall_status(results: list[CheckResult]) -> HealthStatus:
    if all(c.status == HealthStatus.HEALTHY for c in results):
        return HealthStatus.HEALTHY
    if all(c.status == HealthStatus.UNHEALTHY for c in results):
        return HealthStatus.UNHEALTHY
    return HealthStatus.DEGRADED


class HealthChecker:
    """Runs health checks against all system components."""

    async def run_all_checks(self) -> HealthReport:
        """Run all health checks and return report."""
        names = ["api", "supabase", "stripe", "tesseract"]
        checks = await asyncio.gather(
            self.check_api(),
            self.check_supabase(),
            self.check_stripe(),
            self.check_tesseract(),
            return_exceptions=True,
        )

        # Convert exceptions to failed checks
        results = []
        for name, check in zip(names, checks):
            if isinstance(check, Exception):
                results.append(CheckResult(
                    name=name,
                    status=HealthStatus.UNHEALTHY,
                    message=str(check),
                ))
            else:
                results.append(check)

        return HealthReport(status=overall_status(results), checks=results)

    async def check_api(self) -> CheckResult:
        """Check API is responsive."""
        start = time.time()
        return CheckResult(
            name="api",
            status=HealthStatus.HEALTHY,
            message="API is responsive",
            latency_ms=(time.time() - start) * 1000,
        )

    async def check_supabase(self) -> CheckResult:
        """Check Supabase database connectivity."""
        start = time.time()
        try:
            from billing_pilot.services.supabase import get_supabase_client, TABLES

            client = get_supabase_client()
            client.table(TABLES["billing_models"]).select("id").limit(1).execute()

            return CheckResult(
                name="supabase",
                status=HealthStatus.HEALTHY,
                message="Database connected",
                latency_ms=(time.time() - start) * 1000,
                details={"connected": True},
            )
        except Exception as e:
            return CheckResult(
                name="supabase",
                status=HealthStatus.UNHEALTHY,
                message=f"Database error: {str(e)}",
                latency_ms=(time.time() - start) * 1000,
            )

    async def check_stripe(self) -> CheckResult:
        """Check the Stripe secret key against the account endpoint."""
        start = time.time()
        from billing_pilot.services.stripe_billing import get_stripe_service

        service = get_stripe_service()
        if not service.is_enabled:
            return CheckResult(
                name="stripe",
                status=HealthStatus.DEGRADED,
                message="Not configured (secret key missing)",
                details={"enabled": False},
            )

        status = await asyncio.to_thread(service.check_connection)
        latency = (time.time() - start) * 1000

        if status.connected:
            return CheckResult(
                name="stripe",
                status=HealthStatus.HEALTHY,
                message="Connected",
                latency_ms=latency,
                details={"account_id": status.account_id},
            )
        return CheckResult(
            name="stripe",
            status=HealthStatus.UNHEALTHY,
            message=f"Stripe error: {status.error}",
            latency_ms=latency,
        )

    async def check_tesseract(self) -> CheckResult:
        """Check Tesseract OCR availability."""
        start = time.time()
        try:
            result = subprocess.run(
                ["tesseract", "--version"],
                capture_output=True,
                text=True,
                timeout=5,
            )

            latency = (time.time() - start) * 1000

            if result.returncode == 0:
                version = result.stdout.split("\n")[0] if result.stdout else "unknown"
                return CheckResult(
                    name="tesseract",
                    status=HealthStatus.HEALTHY,
                    message=f"Installed: {version}",
                    latency_ms=latency,
                    details={"version": version},
                )
            return CheckResult(
                name="tesseract",
                status=HealthStatus.DEGRADED,
                message="Not installed",
                latency_ms=latency,
            )
        except FileNotFoundError:
            return CheckResult(
                name="tesseract",
                status=HealthStatus.DEGRADED,
                message="Not installed (image import disabled)",
                latency_ms=(time.time() - start) * 1000,
            )
        except subprocess.TimeoutExpired as e:
            return CheckResult(
                name="tesseract",
                status=HealthStatus.UNHEALTHY,
                message=str(e),
            )


# Singleton
_health_checker: Optional[HealthChecker] = None


def get_health_checker() -> HealthChecker:
    """Get health checker singleton."""
    global _health_checker
    if _health_checker is None:
        _health_checker = HealthChecker()
    return _health_checker
