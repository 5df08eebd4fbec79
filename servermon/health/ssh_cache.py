"""Read-through TTL cache in front of the SSH probe.

SSH sessions are slow and the maintenance notice changes rarely, so each
``(host, port, username)`` is probed at most once per TTL. Entries are only
ever replaced by a fresh probe; there is no other eviction.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from servermon.health.models import SshOutcome
from servermon.health.probes import probe_ssh

logger = logging.getLogger(__name__)

CacheKey = tuple[str, Optional[int], Optional[str]]


@dataclass(frozen=True)
class _Entry:
    outcome: SshOutcome
    fetched_at: float


class SshCache:
    """Process-lifetime memo of SSH outcomes keyed by connection identity.

    ``clock`` returns seconds and is injectable so TTL expiry can be tested
    without sleeping. Two tasks refreshing the same stale key both probe and
    the last write wins; the entries are snapshots of the same remote fact.
    """

    def __init__(
        self,
        probe: Callable[[str, int | None, str | None], SshOutcome] = probe_ssh,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._probe = probe
        self._clock = clock
        self._entries: dict[CacheKey, _Entry] = {}

    def get_or_refresh(
        self,
        host: str,
        port: int | None = None,
        username: str | None = None,
        ttl_ms: int = 3_600_000,
    ) -> SshOutcome:
        key: CacheKey = (host, port, username)
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.fetched_at < ttl_ms / 1000:
            return entry.outcome

        outcome = self._probe(host, port, username)
        self._entries[key] = _Entry(outcome=outcome, fetched_at=self._clock())
        logger.debug(
            "SSH %s refreshed (reachable=%s, reboot=%s, updates=%s)",
            key, outcome.reachable, outcome.reboot_required, outcome.pending_updates,
        )
        return outcome

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
