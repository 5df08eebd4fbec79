"""Probe primitives — ping, HTTP(S) health endpoint, SSH maintenance notice.

Every probe performs exactly one attempt and folds transport failures and
timeouts into its outcome instead of raising.

Known fragility: the ``-W`` wait argument of ``ping`` is seconds on Linux
(iputils) and milliseconds on macOS/BSD. ``ping_wait_arg`` isolates that
conversion; other platforms' ping flavours are not supported.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
import sys
import time
from typing import Any

import httpx

from servermon.config import settings
from servermon.health.models import ApiOutcome, BodyCheckDetail, BodyMatch, SshOutcome
from servermon.targets.registry import BodyAssertion

logger = logging.getLogger(__name__)


# ── Ping ─────────────────────────────────────────────────────────────────────

_PING_OK = re.compile(
    r"1 packets transmitted, 1 (?:packets )?received, 0(?:\.0+)?% packet loss"
)


def ping_wait_arg(timeout_ms: int, platform: str) -> str:
    """Value for ``ping -W`` in the unit the host's ping expects."""
    if platform.startswith("linux"):
        # iputils: seconds, and 0 would mean "wait forever"
        return str(max(1, timeout_ms // 1000))
    return str(max(1, timeout_ms))


def ping_command(address: str, timeout_ms: int, platform: str) -> list[str]:
    return ["ping", "-c", "1", "-W", ping_wait_arg(timeout_ms, platform), address]


def probe_ping(address: str, timeout_ms: int, platform: str | None = None) -> bool:
    """Send a single echo request. True only on 0% packet loss."""
    cmd = ping_command(address, timeout_ms, platform or sys.platform)
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout_ms / 1000,
            encoding="utf-8",
            errors="replace",
        )
    except subprocess.TimeoutExpired:
        logger.debug("ping %s timed out after %dms", address, timeout_ms)
        return False
    except OSError as e:
        logger.debug("ping %s could not start: %s", address, e)
        return False

    if result.returncode != 0 or result.stderr:
        return False
    return bool(_PING_OK.search(result.stdout))


# ── API ──────────────────────────────────────────────────────────────────────

_MISSING = object()


def resolve_path(data: Any, path: str) -> Any:
    """Descend ``a.b.0.c`` through dicts and lists. Missing → None."""
    current = data
    for segment in path.split("."):
        if isinstance(current, dict):
            current = current.get(segment, _MISSING)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else _MISSING
        else:
            current = _MISSING
        if current is _MISSING:
            return None
    return current


def strict_equals(actual: Any, expected: Any) -> bool:
    """Equality without type coercion: "200" != 200, True != 1."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual is expected
    if isinstance(actual, (int, float)) and isinstance(expected, (int, float)):
        return actual == expected
    if isinstance(actual, (dict, list)) or isinstance(expected, (dict, list)):
        return False
    return type(actual) is type(expected) and actual == expected


def check_body(text: str, assertion: BodyAssertion) -> tuple[BodyMatch, BodyCheckDetail]:
    """Evaluate a body assertion against a raw response body."""
    try:
        payload = json.loads(text)
    except (ValueError, RecursionError):
        # RecursionError: nesting deeper than the decoder's stack allows
        return BodyMatch.MISMATCHED, BodyCheckDetail(
            path=assertion.path, expected=assertion.value, actual=None, parse_failed=True,
        )
    actual = resolve_path(payload, assertion.path)
    match = BodyMatch.MATCHED if strict_equals(actual, assertion.value) else BodyMatch.MISMATCHED
    return match, BodyCheckDetail(path=assertion.path, expected=assertion.value, actual=actual)


_TIMED_OUT = ApiOutcome(status_matched=False, transport_error="Timeout")


def probe_api(
    url: str,
    timeout_ms: int,
    expected_status: int = 200,
    assertion: BodyAssertion | None = None,
    transport: httpx.BaseTransport | None = None,
) -> ApiOutcome:
    """GET a health endpoint and compare status (and optionally body).

    httpx applies ``timeout_ms`` to each phase (connect, every read); the
    overall deadline is checked between body chunks, so a server dripping
    its response still times out. The body is always read in full.
    """
    deadline = time.monotonic() + timeout_ms / 1000
    try:
        with httpx.Client(
            timeout=timeout_ms / 1000, follow_redirects=False, transport=transport,
        ) as client:
            with client.stream("GET", url) as resp:
                chunks: list[bytes] = []
                for chunk in resp.iter_bytes():
                    if time.monotonic() > deadline:
                        return _TIMED_OUT
                    chunks.append(chunk)
                if time.monotonic() > deadline:
                    return _TIMED_OUT
                text = b"".join(chunks).decode(resp.encoding or "utf-8", errors="replace")
    except httpx.TimeoutException:
        return _TIMED_OUT
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return ApiOutcome(status_matched=False, transport_error=str(e) or type(e).__name__)

    status_matched = resp.status_code == expected_status
    if not status_matched or assertion is None:
        return ApiOutcome(http_status=resp.status_code, status_matched=status_matched)

    body_match, detail = check_body(text, assertion)
    return ApiOutcome(
        http_status=resp.status_code,
        status_matched=True,
        body_match=body_match,
        body_detail=detail,
    )


# ── SSH ──────────────────────────────────────────────────────────────────────

MOTD_COMMAND = "run-parts /etc/update-motd.d/"
REBOOT_MARKER = "System restart required"

_UPDATES = re.compile(r"(\d+)\s+updates?\s+can be applied immediately", re.IGNORECASE)
_SECURITY = re.compile(
    r"(\d+)\s+of these updates?\s+(?:is|are)\s+(?:a )?standard security updates?",
    re.IGNORECASE,
)


def ssh_command(host: str, port: int | None = None, username: str | None = None) -> list[str]:
    cmd = [
        "ssh",
        "-o", "BatchMode=yes",
        "-o", f"ConnectTimeout={settings.ssh_connect_timeout}",
        "-o", "StrictHostKeyChecking=accept-new",
    ]
    if port:
        cmd += ["-p", str(port)]
    cmd.append(f"{username}@{host}" if username else host)
    cmd.append(MOTD_COMMAND)
    return cmd


def parse_motd(output: str) -> tuple[bool, str | None]:
    """Extract (reboot_required, pending_updates) from update-motd output."""
    updates = None
    m = _UPDATES.search(output)
    if m and int(m.group(1)) != 0:
        updates = f"{m.group(1)} updates"
        sec = _SECURITY.search(output)
        if sec:
            updates += f" ({sec.group(1)} security)"
    return REBOOT_MARKER in output, updates


def probe_ssh(
    host: str,
    port: int | None = None,
    username: str | None = None,
    session_timeout: float | None = None,
) -> SshOutcome:
    """Run the host's update-motd scripts over a non-interactive session.

    Reachability is decided by the transport only: a session that ends
    before the hard timeout is reachable even if the remote command failed.
    """
    timeout = session_timeout if session_timeout is not None else settings.ssh_session_timeout
    try:
        result = subprocess.run(
            ssh_command(host, port, username),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
            encoding="utf-8",
            errors="replace",
        )
    except subprocess.TimeoutExpired:
        logger.info("SSH session to %s killed after %.0fs", host, timeout)
        return SshOutcome(reachable=False, transport_error="SSH timeout")
    except OSError as e:
        logger.warning("Could not start ssh for %s: %s", host, e)
        return SshOutcome(reachable=False, transport_error=f"SSH error: {e}")

    output = result.stdout or ""
    reboot_required, updates = parse_motd(output)
    return SshOutcome(
        reachable=True,
        reboot_required=reboot_required,
        pending_updates=updates,
        output=output,
    )
