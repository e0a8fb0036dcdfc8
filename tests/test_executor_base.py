"""Tests for the subprocess helper shared by the local executors."""

from __future__ import annotations

import sys

import pytest

from miniide.executor import CodeExecutor
from miniide.executor import base


class ShellExecutor(CodeExecutor):
    async def run(self, code, stdin, on_output):
        raise NotImplementedError


class LateTimer:
    """Fires its callback when cancelled, as if the deadline hit just after exit."""

    def __init__(self, interval, function):
        self.function = function

    def start(self):
        pass

    def cancel(self):
        self.function()


def test_process_finishing_at_the_deadline_is_not_a_timeout(monkeypatch, tmp_path):
    monkeypatch.setattr(base.threading, "Timer", LateTimer)
    outcome = ShellExecutor()._run_subprocess([sys.executable, "-c", "print('done')"], tmp_path)
    assert outcome.timed_out is False
    assert outcome.exit_code == 0
    assert outcome.stdout == "done\n"
    assert "timed out" not in outcome.stderr


def test_slow_process_is_killed(tmp_path):
    outcome = ShellExecutor(timeout=0.3)._run_subprocess(
        [sys.executable, "-c", "import time; time.sleep(30)"], tmp_path
    )
    assert outcome.timed_out is True
    assert outcome.exit_code == -9
    assert outcome.stderr.endswith("Execution timed out after 300 ms.")


def test_stdin_is_passed_through(tmp_path):
    outcome = ShellExecutor()._run_subprocess(
        [sys.executable, "-c", "print(input().upper())"], tmp_path, stdin_data="abc\n"
    )
    assert outcome.stdout == "ABC\n"


def test_missing_program_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ShellExecutor()._run_subprocess(["miniide-no-such-program"], tmp_path)
