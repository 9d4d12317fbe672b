"""Tests for TmuxSessionControl against small stand-in executables.

Each stand-in is a shell script in the test's temporary directory that
mimics one tmux behaviour: echoing its arguments, failing because the
session is gone, or failing for another reason.
"""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from agent_oversight.session import SessionControl, TmuxSessionControl
from agent_oversight.session.control import SessionControlError, SessionNotFoundError


def make_script(directory: Path, name: str, body: str) -> str:
    path = directory / name
    path.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture()
def echo_tmux(tmp_path) -> str:
    return make_script(tmp_path, "echo-tmux", 'printf "%s\\n" "$@"')


@pytest.fixture()
def gone_tmux(tmp_path) -> str:
    return make_script(tmp_path, "gone-tmux", 'echo "can\'t find session: agent-1" >&2\nexit 1')


@pytest.fixture()
def broken_tmux(tmp_path) -> str:
    return make_script(tmp_path, "broken-tmux", 'echo "protocol version mismatch" >&2\nexit 1')


class TestCommands:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(TmuxSessionControl(), SessionControl)

    def test_capture_pane_arguments(self, echo_tmux) -> None:
        output = TmuxSessionControl(tmux_binary=echo_tmux).capture_pane("agent-1")
        assert output.splitlines() == ["capture-pane", "-p", "-J", "-t", "agent-1"]

    def test_socket_name(self, echo_tmux) -> None:
        control = TmuxSessionControl(tmux_binary=echo_tmux, socket_name="oversight")
        assert control.capture_pane("agent-1").splitlines()[:2] == ["-L", "oversight"]

    def test_send_keys_literal(self, echo_tmux) -> None:
        TmuxSessionControl(tmux_binary=echo_tmux).send_keys("agent-1", "echo hi")

    def test_has_session(self, echo_tmux, gone_tmux) -> None:
        assert TmuxSessionControl(tmux_binary=echo_tmux).has_session("agent-1") is True
        assert TmuxSessionControl(tmux_binary=gone_tmux).has_session("agent-1") is False


class TestErrors:
    def test_session_gone(self, gone_tmux) -> None:
        with pytest.raises(SessionNotFoundError, match="can't find session"):
            TmuxSessionControl(tmux_binary=gone_tmux).capture_pane("agent-1")

    def test_other_failure(self, broken_tmux) -> None:
        with pytest.raises(SessionControlError, match="exited with 1") as exc_info:
            TmuxSessionControl(tmux_binary=broken_tmux).send_keys("agent-1", "Enter", literal=False)
        assert not isinstance(exc_info.value, SessionNotFoundError)

    def test_missing_binary(self, tmp_path) -> None:
        control = TmuxSessionControl(tmux_binary=str(tmp_path / "no-such-tmux"))
        with pytest.raises(SessionControlError, match="not found"):
            control.capture_pane("agent-1")

    def test_kill_tolerates_gone_session(self, gone_tmux) -> None:
        TmuxSessionControl(tmux_binary=gone_tmux).kill_session("agent-1")

    def test_kill_reports_other_failures(self, broken_tmux) -> None:
        with pytest.raises(SessionControlError):
            TmuxSessionControl(tmux_binary=broken_tmux).kill_session("agent-1")

    def test_timeout(self, tmp_path) -> None:
        slow = make_script(tmp_path, "slow-tmux", "sleep 5")
        control = TmuxSessionControl(tmux_binary=slow, timeout=0.2)
        with pytest.raises(SessionControlError, match="timed out"):
            control.capture_pane("agent-1")
