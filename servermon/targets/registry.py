"""Target registry — loads targets.yaml (+ local override) into typed specs.

The orchestrator and the dashboard loop both consume this.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Union

import yaml

from servermon.config import settings

logger = logging.getLogger(__name__)

DEFAULT_SSH_CACHE_TTL_MS = 3_600_000  # 1 hour


# ── Data models ──────────────────────────────────────────────────────────────


class TargetKind(str, Enum):
    PING = "ping"
    API = "api"
    SSH = "ssh"
    UNIFIED = "all"  # ping + api + optional ssh


_KIND_ALIASES = {"unified": TargetKind.UNIFIED}


@dataclass(frozen=True)
class BodyAssertion:
    """Dot-path into the JSON body and the scalar it must equal."""

    path: str
    value: Any


@dataclass(frozen=True)
class SshConfig:
    host: str
    port: int | None = None
    username: str | None = None
    enabled: bool = True
    cache_ttl_ms: int = DEFAULT_SSH_CACHE_TTL_MS

    @property
    def display(self) -> str:
        user = f"{self.username}@" if self.username else ""
        port = f":{self.port}" if self.port else ""
        return f"{user}{self.host}{port}"


@dataclass(frozen=True)
class TargetSpec:
    """A single monitored target. ``kind`` decides which fields matter."""

    name: str
    kind: TargetKind
    address: str = ""  # ping target (Ping / Unified)
    api_address: str = ""  # Api / Unified
    timeout_ms: int = 5_000
    expected_status: int = 200
    expected_response: BodyAssertion | None = None
    ssh: SshConfig | None = None
    group: str | None = None


@dataclass(frozen=True)
class TargetGroup:
    """A named group of leaf targets, rendered under a shared header."""

    label: str
    targets: tuple[TargetSpec, ...] = ()


TargetEntry = Union[TargetSpec, TargetGroup]


class TargetConfigError(ValueError):
    """Raised when a target entry cannot be parsed."""


# ── Registry ─────────────────────────────────────────────────────────────────


class TargetRegistry:
    """Loads and caches target definitions from YAML."""

    def __init__(self, path: Path | None = None, local_path: Path | None = None) -> None:
        self._path = path or Path(settings.targets_file)
        self._local_path = local_path or Path(settings.targets_local_file)
        self._entries: list[TargetEntry] = []
        self._refresh_interval_ms = settings.refresh_interval_ms
        self._loaded = False

    def load(self, force: bool = False) -> list[TargetEntry]:
        """Parse the targets file (and local override) into entries."""
        if self._loaded and not force:
            return self._entries

        self._entries = []
        raw = self._read(self._path)
        if raw is None:
            self._loaded = True
            return self._entries

        local = self._read(self._local_path) if self._local_path.exists() else None
        if local:
            deep_merge(raw, local)
            logger.info("Applied local overrides from %s", self._local_path)

        interval = raw.get("refresh_interval_ms")
        if interval:
            self._refresh_interval_ms = int(interval)

        for entry in raw.get("targets", []) or []:
            try:
                self._entries.append(_parse_entry(entry))
            except (TargetConfigError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed target entry: %s", e)

        self._loaded = True
        logger.info("Loaded %d target entries from %s", len(self._entries), self._path)
        return self._entries

    def _read(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            logger.warning("Targets file not found: %s", path)
            return None
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to parse %s: %s", path, e)
            return None
        if not isinstance(raw, dict):
            logger.error("Expected a mapping at the top of %s", path)
            return None
        return raw

    @property
    def entries(self) -> list[TargetEntry]:
        return self.load()

    @property
    def refresh_interval(self) -> float:
        """Seconds between cycles."""
        self.load()
        return self._refresh_interval_ms / 1000

    def reload(self) -> list[TargetEntry]:
        """Force reload from disk."""
        return self.load(force=True)


# ── Parsers ──────────────────────────────────────────────────────────────────


def deep_merge(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Merge ``source`` into ``target`` in place. Lists and scalars replace."""
    for key, value in source.items():
        if isinstance(value, dict):
            existing = target.get(key)
            target[key] = deep_merge(existing if isinstance(existing, dict) else {}, value)
        else:
            target[key] = value
    return target


def parse_kind(raw: Any) -> TargetKind:
    value = str(raw or "").strip().lower()
    if value in _KIND_ALIASES:
        return _KIND_ALIASES[value]
    try:
        return TargetKind(value)
    except ValueError:
        raise TargetConfigError(f"Unknown target type: {raw!r}") from None


def _parse_entry(raw: dict[str, Any]) -> TargetEntry:
    if not isinstance(raw, dict):
        raise TargetConfigError(f"Expected a mapping, got {type(raw).__name__}")
    if str(raw.get("type", "")).lower() == "group":
        label = raw.get("name")
        if not label:
            raise TargetConfigError("Group entry needs a 'name'")
        children = raw.get("targets") or raw.get("servers") or []
        leaves = []
        for child in children:
            try:
                leaves.append(parse_target(child, group=label))
            except (TargetConfigError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed target in group '%s': %s", label, e)
        return TargetGroup(label=label, targets=tuple(leaves))
    return parse_target(raw)


def parse_target(raw: dict[str, Any], group: str | None = None) -> TargetSpec:
    """Build a TargetSpec from one YAML mapping."""
    if not isinstance(raw, dict):
        raise TargetConfigError(f"Expected a mapping, got {type(raw).__name__}")
    name = raw.get("name")
    if not name:
        raise TargetConfigError("Target entry needs a 'name'")
    kind = parse_kind(raw.get("type"))

    address = raw.get("target", "") or ""
    api_address = raw.get("api_target", "") or ""
    if kind is TargetKind.API and not api_address:
        # api-only entries may put the URL under `target`
        api_address = address

    if kind in (TargetKind.PING, TargetKind.UNIFIED) and not address:
        raise TargetConfigError(f"'{name}': 'target' is required for type {kind.value}")
    if kind in (TargetKind.API, TargetKind.UNIFIED) and not api_address:
        raise TargetConfigError(f"'{name}': an API URL is required for type {kind.value}")

    assertion = None
    raw_expected = raw.get("expected_response")
    if raw_expected:
        if "path" not in raw_expected:
            raise TargetConfigError(f"'{name}': expected_response needs a 'path'")
        assertion = BodyAssertion(path=str(raw_expected["path"]), value=raw_expected.get("value"))

    ssh = None
    if kind is TargetKind.SSH:
        if not raw.get("host"):
            raise TargetConfigError(f"'{name}': 'host' is required for type ssh")
        ssh = _parse_ssh(raw, default_host=raw["host"], enabled=True)
    elif kind is TargetKind.UNIFIED and raw.get("ssh"):
        ssh = _parse_ssh(raw["ssh"], default_host=address, enabled=False)

    return TargetSpec(
        name=str(name),
        kind=kind,
        address=address,
        api_address=api_address,
        timeout_ms=int(raw.get("timeout_ms", settings.default_timeout_ms)),
        expected_status=int(raw.get("expected_status", 200)),
        expected_response=assertion,
        ssh=ssh,
        group=group,
    )


def _parse_ssh(raw: dict[str, Any], default_host: str, enabled: bool) -> SshConfig:
    port = raw.get("port")
    return SshConfig(
        host=raw.get("host") or default_host,
        port=int(port) if port else None,
        username=raw.get("username") or None,
        enabled=bool(raw.get("enabled", enabled)),
        cache_ttl_ms=int(raw.get("check_interval_ms", DEFAULT_SSH_CACHE_TTL_MS)),
    )
