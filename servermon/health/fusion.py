"""Probe fusion — pure rules turning probe outcomes into one status.

No I/O here. Each ``fuse_*`` function maps the outcomes of one target kind
to a Verdict: the status, the short code shown in the Code column, an
optional error message and the ordered detail lines for the dashboard.

Unified targets combine ping + API first and only then look at SSH. The SSH
overlay can escalate a baseline UP to DEGRADED or MAINTENANCE but never
touches a status already set by the ping/API rules.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from servermon.health.models import ApiOutcome, BodyCheckDetail, BodyMatch, SshOutcome, Status

OK_MARK = "✓"
FAIL_MARK = "✗"
WARN_MARK = "⚠"
NO_CODE = "N/A"

REBOOT_LINE = "⚠ Reboot required"


@dataclass
class Verdict:
    status: Status
    code_label: str
    error: str | None = None
    detail_lines: list[str] = field(default_factory=list)


# ── Formatting helpers ───────────────────────────────────────────────────────


def display_value(value: Any) -> str:
    """Render a JSON value the way it reads in the response body."""
    if value is None or isinstance(value, bool):
        return json.dumps(value)
    return str(value)


def body_mismatch_line(detail: BodyCheckDetail) -> str:
    return (
        f'{detail.path}: "{display_value(detail.actual)}" '
        f'(expected "{display_value(detail.expected)}")'
    )


def http_mismatch_line(api: ApiOutcome, expected_status: int) -> str:
    actual = api.http_status if api.http_status is not None else NO_CODE
    return f"HTTP {actual} (expected {expected_status})"


def api_failed(api: ApiOutcome) -> bool:
    return not (
        api.status_matched
        and api.body_match in (BodyMatch.NOT_APPLICABLE, BodyMatch.MATCHED)
    )


def ssh_lines(ssh: SshOutcome) -> list[str]:
    lines = []
    if ssh.reboot_required:
        lines.append(REBOOT_LINE)
    if ssh.pending_updates:
        lines.append(ssh.pending_updates)
    return lines


# ── Rule sets ────────────────────────────────────────────────────────────────


def fuse_ping(reachable: bool) -> Verdict:
    if reachable:
        return Verdict(Status.UP, OK_MARK)
    return Verdict(Status.DOWN, FAIL_MARK)


def fuse_api(api: ApiOutcome, expected_status: int) -> Verdict:
    """Api-only targets. First matching rule wins."""
    code = str(api.http_status) if api.http_status is not None else NO_CODE

    if (
        not api.status_matched
        and api.body_match is BodyMatch.NOT_APPLICABLE
        and api.transport_error
    ):
        return Verdict(
            Status.DOWN, code, error=api.transport_error, detail_lines=[api.transport_error],
        )

    if not api.status_matched:
        return Verdict(Status.DOWN, code, detail_lines=[http_mismatch_line(api, expected_status)])

    if api.body_match is BodyMatch.MISMATCHED:
        lines = [body_mismatch_line(api.body_detail)] if api.body_detail else []
        return Verdict(Status.UNHEALTHY, code, error="Health check failed", detail_lines=lines)

    return Verdict(Status.UP, code)


def fuse_ssh(ssh: SshOutcome) -> Verdict:
    if not ssh.reachable:
        lines = [ssh.transport_error] if ssh.transport_error else []
        return Verdict(Status.DOWN, FAIL_MARK, error=ssh.transport_error, detail_lines=lines)
    if ssh.needs_maintenance:
        return Verdict(Status.MAINTENANCE, WARN_MARK, detail_lines=ssh_lines(ssh))
    return Verdict(Status.UP, OK_MARK)


def fuse_unified(
    ping_ok: bool,
    api: ApiOutcome,
    expected_status: int,
    ssh: SshOutcome | None = None,
) -> Verdict:
    """Ping + API (+ optional SSH) for one host."""
    code = OK_MARK if ping_ok else FAIL_MARK
    api_lines: list[str] = []
    error: str | None = None

    if not ping_ok and api_failed(api):
        status, headline = Status.DOWN, "Both ping and API failed"
        error = headline
        if api.transport_error:
            api_lines.append(api.transport_error)
        elif not api.status_matched:
            api_lines.append(http_mismatch_line(api, expected_status))
        elif api.body_detail:
            api_lines.append(body_mismatch_line(api.body_detail))
    elif not ping_ok:
        status, headline = Status.DEGRADED, "Network issue: ping failed, API responding"
        error = "Network issue (ping failed)"
    elif not api.status_matched and api.transport_error:
        status, headline = Status.DEGRADED, "Ping OK but API unreachable"
        error = api.transport_error
        api_lines.append(api.transport_error)
    elif not api.status_matched:
        status, headline = Status.DEGRADED, "Ping OK, wrong HTTP status"
        error = "API returned wrong status"
        api_lines.append(http_mismatch_line(api, expected_status))
    elif api.body_match is BodyMatch.MISMATCHED:
        status, headline = Status.UNHEALTHY, "Ping OK, health check failed"
        error = "Health check failed"
        if api.body_detail:
            api_lines.append(body_mismatch_line(api.body_detail))
    else:
        status, headline = Status.UP, None

    ssh_detail: list[str] = []
    if ssh is not None:
        if not ssh.reachable:
            if status is Status.UP:
                status, headline = Status.DEGRADED, "SSH check failed"
                error = ssh.transport_error
                if ssh.transport_error:
                    ssh_detail.append(ssh.transport_error)
        elif ssh.needs_maintenance and status is Status.UP:
            status, headline = Status.MAINTENANCE, "Updates/reboot pending"
        if ssh.reachable:
            ssh_detail.extend(ssh_lines(ssh))

    lines = ([headline] if headline else []) + api_lines + ssh_detail
    return Verdict(status, code, error=error, detail_lines=lines)
