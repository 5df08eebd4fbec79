"""Health data models — probe outcomes, statuses and per-cycle check results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ── Enums ────────────────────────────────────────────────────────────────────


class Status(str, Enum):
    UP = "up"
    DOWN = "down"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    MAINTENANCE = "maintenance"
    ERROR = "error"

    @property
    def is_healthy(self) -> bool:
        """Maintenance still counts as serving traffic."""
        return self in (Status.UP, Status.MAINTENANCE)


class BodyMatch(str, Enum):
    """Outcome of the JSON body assertion.

    NOT_APPLICABLE means the assertion was never evaluated (no assertion
    configured, or the HTTP status already mismatched).
    """

    MATCHED = "matched"
    MISMATCHED = "mismatched"
    NOT_APPLICABLE = "not_applicable"


# ── Probe outcomes ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BodyCheckDetail:
    path: str
    expected: Any
    actual: Any
    parse_failed: bool = False


@dataclass(frozen=True)
class ApiOutcome:
    """Result of one GET against a health endpoint."""

    status_matched: bool
    body_match: BodyMatch = BodyMatch.NOT_APPLICABLE
    http_status: int | None = None
    body_detail: BodyCheckDetail | None = None
    transport_error: str | None = None


@dataclass(frozen=True)
class SshOutcome:
    """Maintenance signals pulled from one SSH session."""

    reachable: bool
    transport_error: str | None = None
    reboot_required: bool = False
    pending_updates: str | None = None
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    output: str = ""

    @property
    def needs_maintenance(self) -> bool:
        return self.reboot_required or bool(self.pending_updates)


# ── Check result ─────────────────────────────────────────────────────────────


@dataclass
class CheckResult:
    """One row of the dashboard, produced fresh every cycle."""

    name: str
    kind: str
    display_target: str
    status: Status
    code_label: str
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None
    detail_lines: list[str] = field(default_factory=list)
    group: str | None = None
