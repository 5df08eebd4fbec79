"""Shared test fixtures."""

from __future__ import annotations

import pytest

from servermon.health.models import ApiOutcome, BodyMatch, SshOutcome
from servermon.health.ssh_cache import SshCache


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingProbe:
    """Stand-in for probe_ssh that counts calls per connection key."""

    def __init__(self, outcome: SshOutcome | None = None) -> None:
        self.outcome = outcome or SshOutcome(reachable=True)
        self.calls: list[tuple[str, int | None, str | None]] = []

    def __call__(self, host: str, port: int | None, username: str | None) -> SshOutcome:
        self.calls.append((host, port, username))
        return self.outcome


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ssh_probe() -> RecordingProbe:
    return RecordingProbe()


@pytest.fixture
def ssh_cache(ssh_probe: RecordingProbe, clock: FakeClock) -> SshCache:
    return SshCache(probe=ssh_probe, clock=clock)


@pytest.fixture
def api_ok() -> ApiOutcome:
    return ApiOutcome(http_status=200, status_matched=True, body_match=BodyMatch.MATCHED)

