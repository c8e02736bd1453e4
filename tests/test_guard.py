from __future__ import annotations

import importlib

import pytest

from tools import guard


def test_every_guard_module_exposes_run_and_main() -> None:
    assert len(guard.GUARD_MODULES) == len(guard.GUARDS)
    for module_path in guard.GUARD_MODULES:
        module = importlib.import_module(module_path)
        assert callable(module.run)
        assert callable(module.main)


def test_run_guard_rejects_unknown_name(capsys: pytest.CaptureFixture[str]) -> None:
    rc = guard.run_guard("no-such-check", ["."])

    assert rc == 2
    assert "Unknown validator: no-such-check" in capsys.readouterr().err


def test_run_guards_runs_all_and_reports_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[str] = []

    def _ok(roots: list[str]) -> int:
        seen.append("ok")
        return 0

    def _bad(roots: list[str]) -> int:
        seen.append("bad")
        return 1

    monkeypatch.setattr(guard, "GUARDS", {"first": _bad, "second": _ok})

    assert guard.run_guards(["."]) == 1
    assert seen == ["bad", "ok"]


def test_run_guards_passes_when_all_pass(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(guard, "GUARDS", {"only": lambda roots: 0})

    assert guard.run_guards(["."]) == 0
