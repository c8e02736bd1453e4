from __future__ import annotations

import json
from pathlib import Path

from runner.errors import ConfigurationError, GenerationError
from runner.models import CommandSpec
from runner.types import RunnerProtocol

# Binary payloads have no useful TS shape, so they are typed as never.
OPENAPI_TS_SCRIPT = """\
import { pathToFileURL } from 'node:url'
import openapiTS from 'openapi-typescript'

const output = await openapiTS(pathToFileURL(process.argv[1]), {
  transform(schemaObject) {
    if ('format' in schemaObject && schemaObject.format === 'binary') {
      return 'never'
    }
  },
})
process.stdout.write(typeof output === 'string' ? output : String(output))
"""


def _read_json(path: Path) -> object:
    if not path.is_file():
        raise ConfigurationError(f"OpenAPI document not found: {path}")
    try:
        data: object = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    return data


def prettify_openapi(path: Path) -> Path:
    """Rewrite the document with two-space indentation, keeping key order."""
    data = _read_json(path)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def generate_baseline_types(
    openapi_path: Path, runner: RunnerProtocol, *, cwd: str | None = None
) -> str:
    """Run openapi-typescript over ``openapi_path`` and return the module source."""
    if not openapi_path.is_file():
        raise ConfigurationError(f"OpenAPI document not found: {openapi_path}")
    spec = CommandSpec(
        command="node",
        args=["--input-type=module", "-e", OPENAPI_TS_SCRIPT, str(openapi_path)],
        cwd=cwd,
    )
    result = runner.run_quiet(spec)
    if not result.ok:
        detail = result.stderr.strip() or f"exit code {result.exit_code}"
        raise GenerationError(f"openapi-typescript failed: {detail}")
    return result.stdout


def write_baseline_types(
    openapi_path: Path, types_path: Path, runner: RunnerProtocol, *, cwd: str | None = None
) -> Path:
    source = generate_baseline_types(openapi_path, runner, cwd=cwd)
    types_path.parent.mkdir(parents=True, exist_ok=True)
    types_path.write_text(source, encoding="utf-8")
    return types_path
