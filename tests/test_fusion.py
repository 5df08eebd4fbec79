"""Tests for the probe-fusion rules."""

from __future__ import annotations

import itertools

import pytest

from servermon.health.fusion import (
    FAIL_MARK,
    OK_MARK,
    REBOOT_LINE,
    WARN_MARK,
    api_failed,
    display_value,
    fuse_api,
    fuse_ping,
    fuse_ssh,
    fuse_unified,
)
from servermon.health.models import ApiOutcome, BodyCheckDetail, BodyMatch, SshOutcome, Status

REFUSED = ApiOutcome(status_matched=False, transport_error="Connection refused")


# ── Ping ─────────────────────────────────────────────────────────────────────


class TestFusePing:
    def test_reachable_is_up(self) -> None:
        v = fuse_ping(True)
        assert v.status == Status.UP
        assert v.code_label == OK_MARK

    def test_unreachable_is_down(self) -> None:
        v = fuse_ping(False)
        assert v.status == Status.DOWN
        assert v.code_label == FAIL_MARK

    def test_only_two_outcomes(self) -> None:
        assert {fuse_ping(b).status for b in (True, False)} == {Status.UP, Status.DOWN}


# ── Api ──────────────────────────────────────────────────────────────────────


class TestFuseApi:
    def test_transport_error_is_down(self) -> None:
        v = fuse_api(ApiOutcome(status_matched=False, transport_error="Timeout"), 200)
        assert v.status == Status.DOWN
        assert v.detail_lines == ["Timeout"]
        assert v.error == "Timeout"
        assert v.code_label == "N/A"

    def test_wrong_status_is_down(self) -> None:
        v = fuse_api(ApiOutcome(http_status=503, status_matched=False), 200)
        assert v.status == Status.DOWN
        assert v.detail_lines == ["HTTP 503 (expected 200)"]
        assert v.code_label == "503"

    def test_body_match_is_up(self) -> None:
        api = ApiOutcome(http_status=200, status_matched=True, body_match=BodyMatch.MATCHED)
        v = fuse_api(api, 200)
        assert v.status == Status.UP
        assert v.detail_lines == []

    def test_no_assertion_is_up(self) -> None:
        v = fuse_api(ApiOutcome(http_status=204, status_matched=True), 204)
        assert v.status == Status.UP
        assert v.code_label == "204"

    def test_body_mismatch_is_unhealthy(self) -> None:
        api = ApiOutcome(
            http_status=200, status_matched=True, body_match=BodyMatch.MISMATCHED,
            body_detail=BodyCheckDetail(path="status", expected="ok", actual="degraded"),
        )
        v = fuse_api(api, 200)
        assert v.status == Status.UNHEALTHY
        assert v.detail_lines == ['status: "degraded" (expected "ok")']

    def test_parse_failure_shows_null(self) -> None:
        api = ApiOutcome(
            http_status=200, status_matched=True, body_match=BodyMatch.MISMATCHED,
            body_detail=BodyCheckDetail(path="a.b", expected=True, actual=None, parse_failed=True),
        )
        v = fuse_api(api, 200)
        assert v.status == Status.UNHEALTHY
        assert v.detail_lines == ['a.b: "null" (expected "true")']

    @pytest.mark.parametrize(
        "status_matched,body_match,transport_error",
        list(itertools.product(
            [True, False], list(BodyMatch), [None, "boom"],
        )),
    )
    def test_table_is_total(self, status_matched, body_match, transport_error) -> None:
        api = ApiOutcome(
            http_status=None if transport_error else (200 if status_matched else 500),
            status_matched=status_matched,
            body_match=body_match,
            transport_error=transport_error,
        )
        v = fuse_api(api, 200)
        assert v.status in {Status.UP, Status.DOWN, Status.UNHEALTHY}
        if not status_matched:
            assert v.status == Status.DOWN
        elif body_match is BodyMatch.MISMATCHED:
            assert v.status == Status.UNHEALTHY
        else:
            assert v.status == Status.UP


# ── Ssh ──────────────────────────────────────────────────────────────────────


class TestFuseSsh:
    def test_unreachable_is_down(self) -> None:
        v = fuse_ssh(SshOutcome(reachable=False, transport_error="SSH timeout"))
        assert v.status == Status.DOWN
        assert v.error == "SSH timeout"
        assert v.code_label == FAIL_MARK

    def test_reboot_is_maintenance(self) -> None:
        v = fuse_ssh(SshOutcome(reachable=True, reboot_required=True))
        assert v.status == Status.MAINTENANCE
        assert v.code_label == WARN_MARK
        assert v.detail_lines == [REBOOT_LINE]

    def test_updates_is_maintenance(self) -> None:
        v = fuse_ssh(SshOutcome(reachable=True, pending_updates="4 updates (2 security)"))
        assert v.status == Status.MAINTENANCE
        assert v.detail_lines == ["4 updates (2 security)"]

    def test_clean_is_up(self) -> None:
        v = fuse_ssh(SshOutcome(reachable=True))
        assert v.status == Status.UP
        assert v.detail_lines == []


# ── Unified ──────────────────────────────────────────────────────────────────


class TestFuseUnified:
    def test_all_ok_is_up(self, api_ok: ApiOutcome) -> None:
        v = fuse_unified(True, api_ok, 200)
        assert v.status == Status.UP
        assert v.code_label == OK_MARK
        assert v.detail_lines == []

    def test_ping_failed_api_ok_is_degraded(self, api_ok: ApiOutcome) -> None:
        v = fuse_unified(False, api_ok, 200)
        assert v.status == Status.DEGRADED
        assert v.detail_lines[0] == "Network issue: ping failed, API responding"
        assert v.code_label == FAIL_MARK

    def test_both_failed_is_down(self) -> None:
        v = fuse_unified(False, REFUSED, 200)
        assert v.status == Status.DOWN
        assert v.detail_lines[0] == "Both ping and API failed"
        assert "Connection refused" in v.detail_lines

    def test_ping_failed_body_mismatch_is_down(self) -> None:
        api = ApiOutcome(http_status=200, status_matched=True, body_match=BodyMatch.MISMATCHED)
        assert fuse_unified(False, api, 200).status == Status.DOWN

    def test_api_unreachable_is_degraded(self) -> None:
        v = fuse_unified(True, REFUSED, 200)
        assert v.status == Status.DEGRADED
        assert v.detail_lines == ["Ping OK but API unreachable", "Connection refused"]

    def test_wrong_status_is_degraded(self) -> None:
        v = fuse_unified(True, ApiOutcome(http_status=500, status_matched=False), 200)
        assert v.status == Status.DEGRADED
        assert v.detail_lines == ["Ping OK, wrong HTTP status", "HTTP 500 (expected 200)"]

    def test_body_mismatch_is_unhealthy(self) -> None:
        api = ApiOutcome(
            http_status=200, status_matched=True, body_match=BodyMatch.MISMATCHED,
            body_detail=BodyCheckDetail(path="db", expected="up", actual="down"),
        )
        v = fuse_unified(True, api, 200)
        assert v.status == Status.UNHEALTHY
        assert v.detail_lines == ["Ping OK, health check failed", 'db: "down" (expected "up")']

    def test_reboot_required_is_maintenance(self, api_ok: ApiOutcome) -> None:
        v = fuse_unified(True, api_ok, 200, SshOutcome(reachable=True, reboot_required=True))
        assert v.status == Status.MAINTENANCE
        assert v.detail_lines == ["Updates/reboot pending", REBOOT_LINE]

    def test_ssh_failure_degrades_up(self, api_ok: ApiOutcome) -> None:
        ssh = SshOutcome(reachable=False, transport_error="SSH timeout")
        v = fuse_unified(True, api_ok, 200, ssh)
        assert v.status == Status.DEGRADED
        assert v.detail_lines == ["SSH check failed", "SSH timeout"]
        assert v.error == "SSH timeout"

    def test_clean_ssh_keeps_up(self, api_ok: ApiOutcome) -> None:
        assert fuse_unified(True, api_ok, 200, SshOutcome(reachable=True)).status == Status.UP

    @pytest.mark.parametrize(
        "ping_ok,api,expected",
        [
            (False, REFUSED, Status.DOWN),
            (False, ApiOutcome(http_status=200, status_matched=True), Status.DEGRADED),
            (True, REFUSED, Status.DEGRADED),
            (True, ApiOutcome(http_status=500, status_matched=False), Status.DEGRADED),
            (
                True,
                ApiOutcome(http_status=200, status_matched=True, body_match=BodyMatch.MISMATCHED),
                Status.UNHEALTHY,
            ),
        ],
    )
    @pytest.mark.parametrize(
        "ssh",
        [
            SshOutcome(reachable=False, transport_error="SSH timeout"),
            SshOutcome(reachable=True, reboot_required=True),
            SshOutcome(reachable=True, pending_updates="12 updates"),
        ],
    )
    def test_ssh_overlay_only_escalates_up(self, ping_ok, api, expected, ssh) -> None:
        """Known quirk, kept on purpose: once ping/API put a target in
        DOWN/DEGRADED/UNHEALTHY, SSH failures and maintenance flags are
        ignored for the status. Only a baseline UP is escalated."""
        without_ssh = fuse_unified(ping_ok, api, 200)
        with_ssh = fuse_unified(ping_ok, api, 200, ssh)
        assert without_ssh.status == expected
        assert with_ssh.status == expected
        assert with_ssh.detail_lines[0] == without_ssh.detail_lines[0]

    def test_maintenance_lines_shown_even_when_not_escalated(self) -> None:
        ssh = SshOutcome(reachable=True, reboot_required=True, pending_updates="3 updates")
        v = fuse_unified(False, ApiOutcome(http_status=200, status_matched=True), 200, ssh)
        assert v.status == Status.DEGRADED
        assert v.detail_lines[-2:] == [REBOOT_LINE, "3 updates"]


# ── Helpers ──────────────────────────────────────────────────────────────────


class TestHelpers:
    def test_api_failed(self) -> None:
        assert not api_failed(ApiOutcome(status_matched=True))
        assert not api_failed(ApiOutcome(status_matched=True, body_match=BodyMatch.MATCHED))
        assert api_failed(ApiOutcome(status_matched=True, body_match=BodyMatch.MISMATCHED))
        assert api_failed(ApiOutcome(status_matched=False))

    @pytest.mark.parametrize(
        "value,expected",
        [(None, "null"), (True, "true"), (False, "false"), (200, "200"), ("ok", "ok")],
    )
    def test_display_value(self, value, expected) -> None:
        assert display_value(value) == expected
