"""
Unit tests for the developer scripts (check_health.py, run_tests.py).
"""

import argparse
import pytest
from unittest.mock import AsyncMock, patch

import check_health
import run_tests
from billing_pilot.services.healthcheck import CheckResult, HealthStatus


def report(*statuses):
    return {
        "status": "degraded",
        "version": "0.1.0",
        "summary": "",
        "checks": [
            {"name": name, "status": status.value, "message": "", "latency_ms": 0, "details": {}}
            for name, status in statuses
        ],
    }


class TestCheckHealth:

    @pytest.mark.unit
    def test_degraded_passes_unless_strict(self):
        data = report(("api", HealthStatus.HEALTHY), ("stripe", HealthStatus.DEGRADED))

        assert check_health.exit_code(data, strict=False) == 0
        assert check_health.exit_code(data, strict=True) == 1

    @pytest.mark.unit
    def test_unhealthy_fails(self):
        data = report(("supabase", HealthStatus.UNHEALTHY))
        assert check_health.exit_code(data, strict=False) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_single_check(self):
        result = CheckResult(name="stripe", status=HealthStatus.DEGRADED, details={"enabled": False})
        checker = check_health.get_health_checker()

        with patch.object(checker, "check_stripe", new=AsyncMock(return_value=result)):
            data = await check_health.local_report("stripe")

        assert data["status"] == "degraded"
        assert [c["name"] for c in data["checks"]] == ["stripe"]
        assert data["checks"][0]["details"] == {"enabled": False}

    @pytest.mark.unit
    def test_remote_filters_checks(self):
        data = report(("api", HealthStatus.HEALTHY), ("stripe", HealthStatus.HEALTHY))
        with patch("check_health.httpx.get") as mock_get:
            mock_get.return_value.json.return_value = data
            filtered = check_health.remote_report("http://pi:8000/", "stripe")

        mock_get.assert_called_once_with("http://pi:8000/health/services", timeout=30)
        assert [c["name"] for c in filtered["checks"]] == ["stripe"]


class TestRunTests:

    def args(self, **overrides):
        values = dict(target="all", fast=False, verbose=False, failfast=False, coverage=False)
        values.update(overrides)
        return argparse.Namespace(**values)

    @pytest.mark.unit
    def test_stripe_target(self):
        cmd = run_tests.build_command(self.args(target="stripe"))
        assert "tests/unit/test_stripe_billing.py" in cmd
        assert "tests/integration/test_api_stripe.py" in cmd

    @pytest.mark.unit
    def test_parser_coverage_floor(self):
        cmd = run_tests.build_command(self.args(target="parser", coverage=True))
        assert "--cov=billing_pilot" in cmd
        assert "--cov-fail-under=90" in cmd

    @pytest.mark.unit
    def test_default_run_drops_live_key(self, monkeypatch):
        monkeypatch.setenv("STRIPE_TEST_KEY", "sk_test_abc")
        assert "STRIPE_TEST_KEY" not in run_tests.build_env(live=False)
        assert run_tests.build_env(live=True)["STRIPE_TEST_KEY"] == "sk_test_abc"

    @pytest.mark.unit
    def test_live_requires_test_mode_key(self, monkeypatch):
        monkeypatch.setenv("STRIPE_TEST_KEY", "sk_live_abc")
        with pytest.raises(SystemExit):
            run_tests.build_env(live=True)
