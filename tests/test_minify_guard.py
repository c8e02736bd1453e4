from __future__ import annotations

from pathlib import Path

import pytest

from tools.guards import minify_guard

CONFIG_OK = """\
const shared = { bundle: true, minify: true }

export const buildConfig = {
  entryPoints: ['src/index.ts'],
  // a comment with a { brace
  define: { 'process.env.X': '"}"' },
  minify: false,
}

export const watchConfig = {
  ...buildConfig,
  minify: false,
  plugins: [{ name: 'x', setup() { return { minify: true } } }],
}
"""


def _write_config(root: Path, text: str) -> None:
    config = root / ".config"
    config.mkdir()
    (config / "esbuild.config.mjs").write_text(text, encoding="utf-8")


def test_check_text_accepts_disabled_minify() -> None:
    assert minify_guard.check_text(CONFIG_OK) == []


def test_check_text_reports_value_and_line() -> None:
    text = "export const buildConfig = {\n  bundle: true,\n  minify: true,\n}\n"

    (violation,) = minify_guard.check_text(text)

    assert violation.config == "buildConfig"
    assert violation.value == "true"
    assert violation.line == 3


def test_trailing_comments_are_not_part_of_the_value() -> None:
    text = (
        "export const buildConfig = {\n  minify: false // keep readable\n}\n"
        "export const watchConfig = { minify: /* off */ false }\n"
    )

    assert minify_guard.check_text(text) == []

    prod = "export const buildConfig = { minify: true /* prod */ }\n"
    (violation,) = minify_guard.check_text(prod)
    assert violation.value == "true"


def test_missing_minify_key_is_undefined() -> None:
    text = "export const watchConfig = { bundle: true, nested: { minify: false } }\n"

    (violation,) = minify_guard.check_text(text)

    assert violation.config == "watchConfig"
    assert violation.value == "undefined"


def test_run_reports_failures(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _write_config(tmp_path, "export const buildConfig = { minify: !dev }\n")

    rc = minify_guard.run([str(tmp_path)])
    err = capsys.readouterr().err

    assert rc == 1
    assert "buildConfig.minify must be false" in err
    assert "Found: minify: !dev" in err


def test_run_passes_and_fails_on_missing_config(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert minify_guard.run([str(tmp_path)]) == 1
    assert "Failed to load esbuild config" in capsys.readouterr().err

    _write_config(tmp_path, CONFIG_OK)
    assert minify_guard.run([str(tmp_path)]) == 0
