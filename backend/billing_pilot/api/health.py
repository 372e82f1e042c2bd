"""Health check endpoints."""

import platform
from datetime import datetime

import psutil
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from billing_pilot.services.healthcheck import get_health_checker, HealthStatus

router = APIRouter()

# A deployment can't proceed without these
CRITICAL_SERVICES = ["api", "supabase"]


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/detailed")
async def detailed_health():
    """Detailed health check with system info."""
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage("/")

    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "system": {
            "platform": platform.system(),
            "machine": platform.machine(),
            "python": platform.python_version(),
        },
        "cpu": {
            "percent": psutil.cpu_percent(interval=0.1),
            "cores": psutil.cpu_count(),
        },
        "memory": {
            "used_gb": round(memory.used / (1024**3), 2),
            "total_gb": round(memory.total / (1024**3), 2),
            "percent": memory.percent,
        },
        "disk": {
            "used_gb": round(disk.used / (1024**3), 2),
            "total_gb": round(disk.total / (1024**3), 2),
            "percent": disk.percent,
        },
    }


@router.get("/health/services")
async def services_health():
    """
    Health of every dependency.

    Checks:
    - API responsiveness
    - Supabase database
    - Stripe API key
    - Tesseract OCR
    """
    checker = get_health_checker()
    report = await checker.run_all_checks()

    return report.to_dict()


@router.get("/health/ready")
async def readiness_check():
    """
    Kubernetes-style readiness check.

    Returns 200 if service is ready to receive traffic.
    Returns 503 if critical services are down.
    """
    checker = get_health_checker()
    report = await checker.run_all_checks()

    critical_healthy = all(
        c.status == HealthStatus.HEALTHY
        for c in report.checks
        if c.name in CRITICAL_SERVICES
    )

    if critical_healthy:
        return {"ready": True, "status": report.status.value}
    return JSONResponse(status_code=503, content={"ready": False, "status": report.status.value})
