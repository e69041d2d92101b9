"""
One-shot health check from the command line.

Usage:
    python -m chainpulse.cli
    python -m chainpulse.cli --format json
    python -m chainpulse.cli --format minimal --timeout 10 --no-exit-on-failure

Every dependency is judged on this single probe: one failure makes it
unhealthy.

Exit codes: 0 healthy or degraded, 1 unhealthy, 2 configuration error or timeout.
"""

import argparse
import asyncio
import json
import logging
import platform
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, TextIO

import psutil

from chainpulse import __version__
from chainpulse.config import setup_cli_logging
from chainpulse.core.exceptions import ConfigurationError
from chainpulse.core.health import HealthService
from chainpulse.core.settings import settings
from chainpulse.models.health import AlertSeverity, HealthStatus, SystemHealth

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNHEALTHY = 1
EXIT_ERROR = 2

DEFAULT_TIMEOUT = 30.0

# A single run has no later cycles to confirm a failure
ONE_SHOT_FAILURE_THRESHOLD = 1

STATUS_MARKERS = {
    HealthStatus.HEALTHY.value: "[OK]",
    HealthStatus.DEGRADED.value: "[WARN]",
    HealthStatus.UNHEALTHY.value: "[FAIL]",
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="chainpulse-check",
        description="Probe every configured dependency once and print a health report",
    )
    parser.add_argument(
        "--format",
        "-f",
        choices=["console", "json", "minimal"],
        default="console",
        help="Output format (default: console)",
    )
    parser.add_argument(
        "--timeout",
        "-t",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Overall timeout in seconds (default: {DEFAULT_TIMEOUT:g})",
    )
    parser.add_argument(
        "--no-exit-on-failure",
        dest="exit_on_failure",
        action="store_false",
        help="Exit 0 even when the system is unhealthy",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show probe errors and include debug logs on stderr",
    )
    return parser


def build_report(
    service: HealthService, health: SystemHealth, duration_ms: float
) -> Dict[str, Any]:
    """Collect the cycle result and monitor state into one report."""
    metrics = service.get_metrics()
    active = service.alerts.get_active_alerts()
    memory = psutil.virtual_memory()

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checkDuration": round(duration_ms, 2),
        "overall": {
            "status": health.overall.value,
            "healthScore": health.health_score,
            "trend": service.get_health_trend().value,
        },
        "services": [
            {
                "name": r.service,
                "status": r.status.value,
                "responseTime": r.response_time,
                "error": r.error,
                "consecutiveFailures": r.consecutive_failures,
            }
            for r in health.services
        ],
        "metrics": {
            "api": metrics.to_response(),
            "rateLimit": service.rate_limits.to_response(),
            "system": {
                "memoryPercent": memory.percent,
                "processMemoryMb": round(
                    psutil.Process().memory_info().rss / 1024 / 1024, 2
                ),
                "python": platform.python_version(),
                "platform": platform.system().lower(),
            },
        },
        "alerts": {
            "active": len(active),
            **{
                severity.value: sum(1 for a in active if a.severity == severity)
                for severity in reversed(list(AlertSeverity))
            },
        },
        "version": __version__,
    }


def render_console(report: Dict[str, Any], verbose: bool = False) -> str:
    """Human-readable report."""
    overall = report["overall"]
    lines: List[str] = [
        "Chainpulse Health Check",
        "=======================",
        "",
        f"{STATUS_MARKERS[overall['status']]} Overall Status: {overall['status'].upper()}",
        f"Health Score: {overall['healthScore']}/100",
        f"Trend: {overall['trend']}",
        f"Check Duration: {report['checkDuration']:.0f}ms",
        "",
        "Services:",
    ]
    for svc in report["services"]:
        failures = svc["consecutiveFailures"]
        suffix = f" ({failures} failures)" if failures else ""
        lines.append(
            f"  {STATUS_MARKERS[svc['status']]} {svc['name']}: {svc['status']} "
            f"({svc['responseTime']:.0f}ms){suffix}"
        )
        if verbose and svc["error"]:
            lines.append(f"      Error: {svc['error']}")

    api = report["metrics"]["api"]
    lines += [
        "",
        "API Metrics:",
        f"  Requests: {api['requestCount']} "
        f"({api['successCount']} success, {api['errorCount']} errors)",
        f"  Error Rate: {api['errorRate']:.2f}%",
        f"  Avg Response Time: {api['averageResponseTime']:.2f}ms",
        f"  Uptime: {api['uptimePercentage']:.2f}%",
    ]

    rate_limit = report["metrics"]["rateLimit"]
    if rate_limit:
        lines += [
            "",
            "Rate Limiting:",
            f"  Remaining: {rate_limit['remaining']}",
            f"  Reset: {rate_limit['reset']}",
            f"  Limited: {'Yes' if rate_limit['isLimited'] else 'No'}",
        ]

    system = report["metrics"]["system"]
    lines += [
        "",
        "System:",
        f"  Memory: {system['memoryPercent']}% used, process {system['processMemoryMb']}MB",
        f"  Python: {system['python']} ({system['platform']})",
    ]

    alerts = report["alerts"]
    if alerts["active"]:
        lines += ["", "Active Alerts:", f"  Total: {alerts['active']}"]
        for severity in reversed(list(AlertSeverity)):
            if alerts[severity.value]:
                lines.append(f"  {severity.value.capitalize()}: {alerts[severity.value]}")
    else:
        lines += ["", "No active alerts"]

    lines += ["", f"Timestamp: {report['timestamp']}", ""]
    if overall["status"] == HealthStatus.HEALTHY.value:
        lines.append("All systems operational.")
    elif overall["status"] == HealthStatus.DEGRADED.value:
        lines.append("Some issues detected, but the system is functional.")
    else:
        lines.append("Critical issues detected. Immediate attention required.")
    return "\n".join(lines)


def render(report: Dict[str, Any], output_format: str, verbose: bool = False) -> str:
    if output_format == "json":
        return json.dumps(report, indent=2)
    if output_format == "minimal":
        overall = report["overall"]
        return f"{overall['status']}|{overall['healthScore']}|{report['checkDuration']:.0f}ms"
    return render_console(report, verbose)


def _render_failure(message: str, output_format: str) -> str:
    if output_format == "json":
        return json.dumps(
            {
                "success": False,
                "error": message,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            indent=2,
        )
    return f"Health check failed: {message}"


async def run_check(service: HealthService, timeout: float) -> Dict[str, Any]:
    """Run one cycle within ``timeout`` seconds and build the report."""
    start = time.perf_counter()
    try:
        health = await asyncio.wait_for(service.perform_health_check(), timeout)
    finally:
        await service.stop()
    return build_report(service, health, (time.perf_counter() - start) * 1000)


def main(
    argv: Optional[List[str]] = None,
    service: Optional[HealthService] = None,
    out: TextIO = sys.stdout,
) -> int:
    """Entry point; returns the process exit code."""
    args = create_parser().parse_args(argv)
    setup_cli_logging(verbose=args.verbose)

    try:
        service = service or HealthService.from_settings(
            settings, failure_threshold=ONE_SHOT_FAILURE_THRESHOLD
        )
        report = asyncio.run(run_check(service, args.timeout))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}", extra={"details": e.details})
        print(_render_failure(e.message, args.format), file=out)
        return EXIT_ERROR
    except asyncio.TimeoutError:
        message = f"Health check timeout after {args.timeout:g}s"
        logger.error(message)
        print(_render_failure(message, args.format), file=out)
        return EXIT_ERROR

    print(render(report, args.format, args.verbose), file=out)

    if args.exit_on_failure and report["overall"]["status"] == HealthStatus.UNHEALTHY.value:
        return EXIT_UNHEALTHY
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
