"""Check engine — runs the probes a target needs and fuses them into a result.

Supports: ping, api (HTTP(S) + optional JSON body assertion), ssh
(update-motd maintenance signals) and ``all`` (ping + api + optional ssh).
Evaluation is synchronous; the orchestrator runs it in worker threads.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from servermon.health.fusion import NO_CODE, Verdict, fuse_api, fuse_ping, fuse_ssh, fuse_unified
from servermon.health.models import CheckResult, Status
from servermon.health.probes import probe_api, probe_ping
from servermon.health.ssh_cache import SshCache
from servermon.targets.registry import TargetKind, TargetSpec

logger = logging.getLogger(__name__)


# ── Per-kind runners ─────────────────────────────────────────────────────────


def _run_ping(target: TargetSpec, cache: SshCache) -> tuple[str, Verdict, datetime | None]:
    reachable = probe_ping(target.address, target.timeout_ms)
    return target.address, fuse_ping(reachable), None


def _run_api(target: TargetSpec, cache: SshCache) -> tuple[str, Verdict, datetime | None]:
    api = probe_api(
        target.api_address, target.timeout_ms, target.expected_status, target.expected_response,
    )
    return target.api_address, fuse_api(api, target.expected_status), None


def _run_ssh(target: TargetSpec, cache: SshCache) -> tuple[str, Verdict, datetime | None]:
    if target.ssh is None:
        raise ValueError(f"SSH target '{target.name}' has no ssh config")
    cfg = target.ssh
    outcome = cache.get_or_refresh(cfg.host, cfg.port, cfg.username, cfg.cache_ttl_ms)
    # A cached outcome is shown with the time it was actually captured
    return cfg.display, fuse_ssh(outcome), outcome.captured_at


def _run_unified(target: TargetSpec, cache: SshCache) -> tuple[str, Verdict, datetime | None]:
    ping_ok = probe_ping(target.address, target.timeout_ms)
    api = probe_api(
        target.api_address, target.timeout_ms, target.expected_status, target.expected_response,
    )
    ssh = None
    if target.ssh is not None and target.ssh.enabled:
        cfg = target.ssh
        ssh = cache.get_or_refresh(cfg.host, cfg.port, cfg.username, cfg.cache_ttl_ms)
    verdict = fuse_unified(ping_ok, api, target.expected_status, ssh)
    return f"{target.address} / {target.api_address}", verdict, None


# Dispatcher
CHECK_RUNNERS: dict[TargetKind, Callable[[TargetSpec, SshCache], tuple[str, Verdict, datetime | None]]] = {
    TargetKind.PING: _run_ping,
    TargetKind.API: _run_api,
    TargetKind.SSH: _run_ssh,
    TargetKind.UNIFIED: _run_unified,
}


def evaluate_target(target: TargetSpec, cache: SshCache) -> CheckResult:
    """Probe one target and fuse the outcomes. May raise on unexpected faults."""
    runner = CHECK_RUNNERS[target.kind]
    display_target, verdict, captured_at = runner(target, cache)
    return CheckResult(
        name=target.name,
        kind=target.kind.value,
        display_target=display_target,
        status=verdict.status,
        code_label=verdict.code_label,
        checked_at=captured_at or datetime.now(timezone.utc),
        error=verdict.error,
        detail_lines=verdict.detail_lines,
        group=target.group,
    )


def error_result(target: TargetSpec, exc: BaseException) -> CheckResult:
    """Result row for a target whose evaluation raised."""
    message = str(exc) or type(exc).__name__
    display = target.ssh.display if target.kind is TargetKind.SSH and target.ssh else ""
    return CheckResult(
        name=target.name,
        kind=target.kind.value,
        display_target=display or target.address or target.api_address,
        status=Status.ERROR,
        code_label=NO_CODE,
        error=message,
        detail_lines=[message],
        group=target.group,
    )


def execute_check(target: TargetSpec, cache: SshCache) -> CheckResult:
    """Evaluate a target, mapping any escaping exception to an ERROR result."""
    try:
        return evaluate_target(target, cache)
    except Exception as e:
        logger.exception("Check failed for %s", target.name)
        return error_result(target, e)
