"""Post-deployment verification suite.

Runs a fixed, ordered set of probes against a live target and aggregates
the results into an immutable :class:`VerificationReport`.

Key Concepts:
    Probe: A function ``(ProbeClient) -> dict`` that returns detail on
        success and raises on failure. Every probe is isolated: whatever it
        raises is recorded as a ``fail`` result and the next probe runs.
    PROBES: The canonical probe set. Its length is the ``total`` of every
        report, whatever happens during the run.
    Recommendations: Derived from which probe areas failed (health,
        realtime, database) and how many.

Architecture Decisions:
    - Sequential probes with a short fixed pause between them; the target
      is a single service and the probes are cheap.
    - Latency budgets are informational. A slow endpoint is logged and
      recorded in the performance probe's detail but does not fail it.
    - The suite never raises for probe failures. Callers decide what an
      unsuccessful report means (the deploy path escalates, the rollback
      path only reports).

Related Modules:
    - :mod:`shipwright.deploy.probes` - Network round trips
    - :mod:`shipwright.deploy.results` - Report models
    - :mod:`shipwright.cli.render` - Rich rendering of reports

Tags:
    verification, probes, health-check, websocket, latency, recommendations
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from shipwright.core.errors import ProbeFailure
from shipwright.deploy.config import DEFAULT_INTER_PROBE_DELAY_MS, DEFAULT_PROBE_TIMEOUT_MS
from shipwright.deploy.probes import HttpResponse, ProbeClient
from shipwright.deploy.results import ProbeResult, ProbeStatus, ProbeSummary, VerificationReport
from shipwright.logging import get_logger

logger = get_logger(__name__)

Probe = Callable[[ProbeClient], dict[str, Any]]
ClientFactory = Callable[[str, int], ProbeClient]

HEALTHY_STATES = ("healthy", "degraded")
REQUIRED_HEALTH_FIELDS = ("timestamp", "version", "environment", "uptime")
WEBSOCKET_PATH = "/ws"
AUTH_OUTCOME_TYPES = ("auth_success", "auth_response", "auth_error")
PERFORMANCE_BUDGETS_MS: tuple[tuple[str, int], ...] = (
    ("/health", 1000),
    ("/metrics", 2000),
    ("/health/detailed", 3000),
)

RECOMMEND_HEALTHY = "All probes passed - deployment is healthy"
RECOMMEND_PROCEED = "Safe to proceed with production traffic"
RECOMMEND_INVESTIGATE = "Some probes failed - investigate before proceeding"
RECOMMEND_HEALTH = "Health check issues detected - check server logs"
RECOMMEND_REALTIME = "Realtime channel issues detected - verify connection handling"
RECOMMEND_DATABASE = "Database issues detected - verify connection and credentials"
RECOMMEND_ROLLBACK = "Consider rollback - multiple critical failures"


# ---------------------------------------------------------------------------
# Probe helpers
# ---------------------------------------------------------------------------


def _expect_status(response: HttpResponse, path: str, allowed: Sequence[int]) -> None:
    if response.status_code not in allowed:
        raise ProbeFailure(f"GET {path} returned status {response.status_code}")


def _expect_object(response: HttpResponse, path: str) -> dict[str, Any]:
    payload = response.json
    if not isinstance(payload, dict):
        raise ProbeFailure(f"GET {path} did not return a JSON object")
    return payload


def _component_health(client: ProbeClient, path: str) -> dict[str, Any]:
    response = client.get(path)
    _expect_status(response, path, (200, 503))
    payload = _expect_object(response, path)
    if not isinstance(payload.get("healthy"), bool):
        raise ProbeFailure(f"GET {path} is missing a boolean 'healthy' flag")
    return {
        "healthy": payload["healthy"],
        "status_code": response.status_code,
        "response_time_ms": round(response.elapsed_ms, 1),
    }


# ---------------------------------------------------------------------------
# Probes, in execution order
# ---------------------------------------------------------------------------


def check_basic_health(client: ProbeClient) -> dict[str, Any]:
    """``/health`` answers 200 with a healthy or degraded status and the core fields."""
    response = client.get("/health")
    _expect_status(response, "/health", (200,))
    payload = _expect_object(response, "/health")

    status = payload.get("status")
    if status not in HEALTHY_STATES:
        raise ProbeFailure(f"Invalid health status: {status}")
    missing = [name for name in REQUIRED_HEALTH_FIELDS if payload.get(name) in (None, "")]
    if missing:
        raise ProbeFailure(f"Missing required health fields: {', '.join(missing)}")

    return {
        "status": status,
        "uptime": payload["uptime"],
        "version": payload["version"],
        "environment": payload["environment"],
        "response_time_ms": round(response.elapsed_ms, 1),
    }


def check_detailed_health(client: ProbeClient) -> dict[str, Any]:
    """``/health/detailed`` answers 200 or 503 with a non-empty ``services`` object."""
    response = client.get("/health/detailed")
    _expect_status(response, "/health/detailed", (200, 503))
    payload = _expect_object(response, "/health/detailed")

    services = payload.get("services")
    if not isinstance(services, dict) or not services:
        raise ProbeFailure("Missing or invalid services in detailed health check")
    return {
        "status": payload.get("status"),
        "services": sorted(services),
        "response_time_ms": round(response.elapsed_ms, 1),
    }


def check_database_health(client: ProbeClient) -> dict[str, Any]:
    return _component_health(client, "/health/database")


def check_memory_health(client: ProbeClient) -> dict[str, Any]:
    return _component_health(client, "/health/memory")


def check_metrics(client: ProbeClient) -> dict[str, Any]:
    """``/metrics`` answers 200 with a non-empty JSON object."""
    response = client.get("/metrics")
    _expect_status(response, "/metrics", (200,))
    payload = _expect_object(response, "/metrics")
    if not payload:
        raise ProbeFailure("Metrics endpoint returned an empty object")
    return {
        "metrics": sorted(payload),
        "response_time_ms": round(response.elapsed_ms, 1),
    }


def check_websocket_connection(client: ProbeClient) -> dict[str, Any]:
    """A heartbeat sent over ``/ws`` gets any frame back in time."""
    exchange = client.exchange(
        WEBSOCKET_PATH,
        {"type": "heartbeat", "timestamp": datetime.now(UTC).isoformat()},
    )
    frame = exchange.frame
    return {
        "connected": True,
        "response_type": frame.get("type") if isinstance(frame, dict) else None,
        "response_time_ms": round(exchange.elapsed_ms, 1),
    }


def _is_auth_outcome(frame: Any) -> bool:
    return isinstance(frame, dict) and frame.get("type") in AUTH_OUTCOME_TYPES


def check_websocket_authentication(client: ProbeClient) -> dict[str, Any]:
    """Anonymous authentication over ``/ws`` produces an auth outcome frame.

    ``auth_error`` is a structured answer and counts as a pass; other frame
    types are skipped until the timeout.
    """
    exchange = client.exchange(
        WEBSOCKET_PATH,
        {"type": "authenticate", "anonymous": True},
        accept=_is_auth_outcome,
    )
    frame = exchange.frame
    return {
        "auth_type": frame["type"],
        "authenticated": frame["type"] != "auth_error",
        "frames_seen": exchange.frames_seen,
        "response_time_ms": round(exchange.elapsed_ms, 1),
    }


def check_error_handling(client: ProbeClient) -> dict[str, Any]:
    """Unknown paths answer exactly 404."""
    response = client.get("/non-existent-endpoint")
    if response.status_code != 404:
        raise ProbeFailure(f"Expected 404 for non-existent endpoint, got {response.status_code}")
    return {"status_code": 404, "response_time_ms": round(response.elapsed_ms, 1)}


def check_performance(client: ProbeClient) -> dict[str, Any]:
    """Time the key endpoints against their latency budgets.

    Budget breaches are recorded, not failed. The probe fails only when a
    request cannot complete.
    """
    timings: dict[str, float] = {}
    breaches: list[str] = []
    for path, budget_ms in PERFORMANCE_BUDGETS_MS:
        response = client.get(path)
        timings[path] = round(response.elapsed_ms, 1)
        if response.elapsed_ms > budget_ms:
            breaches.append(path)
            logger.warning(
                "probe.latency_budget_exceeded",
                path=path,
                elapsed_ms=round(response.elapsed_ms),
                budget_ms=budget_ms,
            )
    return {
        "timings_ms": timings,
        "budgets_ms": dict(PERFORMANCE_BUDGETS_MS),
        "breaches": breaches,
    }


PROBES: tuple[tuple[str, Probe], ...] = (
    ("basic_health", check_basic_health),
    ("detailed_health", check_detailed_health),
    ("database_health", check_database_health),
    ("memory_health", check_memory_health),
    ("metrics", check_metrics),
    ("websocket_connection", check_websocket_connection),
    ("websocket_authentication", check_websocket_authentication),
    ("error_handling", check_error_handling),
    ("performance", check_performance),
)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def build_recommendations(results: Sequence[ProbeResult]) -> tuple[str, ...]:
    """Operator guidance derived from which probes failed."""
    failed = [r.name for r in results if not r.passed]
    if not failed:
        return (RECOMMEND_HEALTHY, RECOMMEND_PROCEED)

    recommendations = [RECOMMEND_INVESTIGATE]
    if any(name.endswith("_health") for name in failed):
        recommendations.append(RECOMMEND_HEALTH)
    if any(name.startswith("websocket_") for name in failed):
        recommendations.append(RECOMMEND_REALTIME)
    if "database_health" in failed:
        recommendations.append(RECOMMEND_DATABASE)
    if len(failed) > 2:
        recommendations.append(RECOMMEND_ROLLBACK)
    return tuple(recommendations)


class VerificationSuite:
    """Runs :data:`PROBES` against a target and builds the report.

    Example::

        suite = VerificationSuite(probe_timeout_ms=10_000)
        report = suite.run("https://api.example.up.railway.app")
        report.summary.success
    """

    def __init__(
        self,
        probe_timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
        inter_probe_delay_ms: int = DEFAULT_INTER_PROBE_DELAY_MS,
        *,
        client_factory: ClientFactory = ProbeClient,
        probes: Sequence[tuple[str, Probe]] = PROBES,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.probe_timeout_ms = probe_timeout_ms
        self.inter_probe_delay_ms = inter_probe_delay_ms
        self.client_factory = client_factory
        self.probes = tuple(probes)
        self.sleep = sleep
        self.clock = clock

    def run(self, target: str) -> VerificationReport:
        """Run every probe once, in order, and return the report."""
        started_at = datetime.now(UTC)
        started = self.clock()
        logger.info("verification.started", target=target, probes=len(self.probes))

        results: list[ProbeResult] = []
        try:
            client = self.client_factory(target, self.probe_timeout_ms)
        except ProbeFailure as e:
            # Unusable target: every probe fails with the same reason.
            logger.warning("verification.target_invalid", target=target, error=str(e))
            results = [
                ProbeResult(name=name, status=ProbeStatus.FAIL, detail={"error": str(e)}) for name, _ in self.probes
            ]
        else:
            with client:
                for index, (name, probe) in enumerate(self.probes):
                    if index:
                        self.sleep(self.inter_probe_delay_ms / 1000)
                    results.append(self._run_probe(name, probe, client))

        summary = ProbeSummary.from_results(results, duration_ms=(self.clock() - started) * 1000)
        report = VerificationReport(
            target=target,
            started_at=started_at,
            completed_at=datetime.now(UTC),
            results=tuple(results),
            summary=summary,
            recommendations=build_recommendations(results),
        )
        logger.info(
            "verification.completed",
            target=target,
            passed=summary.passed,
            failed=summary.failed,
            total=summary.total,
            success=summary.success,
        )
        return report

    def _run_probe(self, name: str, probe: Probe, client: ProbeClient) -> ProbeResult:
        probe_started = self.clock()
        try:
            detail = probe(client)
        except Exception as e:  # noqa: BLE001 - one failing probe never stops the others
            duration_ms = (self.clock() - probe_started) * 1000
            logger.warning("probe.failed", probe=name, error=str(e), error_type=type(e).__name__)
            return ProbeResult(
                name=name,
                status=ProbeStatus.FAIL,
                detail={"error": str(e)},
                duration_ms=duration_ms,
            )
        duration_ms = (self.clock() - probe_started) * 1000
        logger.debug("probe.passed", probe=name, duration_ms=round(duration_ms, 1))
        return ProbeResult(name=name, status=ProbeStatus.PASS, detail=detail, duration_ms=duration_ms)
