"""Strict TypeScript declarations derived from openapi-typescript output.

The baseline generator marks nearly every response field optional. This module
parses that output, walks to the configured operation payloads and re-emits
them with guaranteed fields required and optional fields typed
``T | undefined``.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping, Sequence
from functools import lru_cache
from pathlib import Path
from typing import Final, Protocol

from pydantic import ValidationError

from core.models import FieldSpec, PropertySpec, StrictTypeEntry
from core.openapi import generate_baseline_types
from core.tsast import (
    ArrayType,
    Declaration,
    IndexSignature,
    InterfaceDeclaration,
    Node,
    ParenthesizedType,
    Program,
    PropertySignature,
    TSParseError,
    TypeLiteral,
    TypeReference,
    members_of,
    parse,
)
from runner.config import Settings
from runner.errors import ConfigurationError, GenerationError
from runner.logging import get_logger
from runner.types import RunnerProtocol

_log = get_logger(__name__)

STRICT_TYPE_CONFIG: Final[dict[str, StrictTypeEntry]] = {
    "createFullScanOptions": StrictTypeEntry(
        operation_id="CreateOrgFullScan",
        extract_type="query_params",
        type_name="CreateFullScanOptions",
        required_params=["repo"],
        additional_fields=[
            FieldSpec(name="pathsRelativeTo", type="string | undefined", optional=True)
        ],
    ),
    "fullScanItem": StrictTypeEntry(
        operation_id="getOrgFullScanList",
        response_code=200,
        type_name="FullScanItem",
        source_path=["results", "Array", "items"],
        required_fields=[
            "api_url",
            "created_at",
            "html_report_url",
            "id",
            "integration_repo_url",
            "integration_type",
            "organization_id",
            "organization_slug",
            "repo",
            "repository_id",
            "repository_slug",
            "updated_at",
        ],
    ),
    "fullScanListData": StrictTypeEntry(
        operation_id="getOrgFullScanList",
        response_code=200,
        type_name="FullScanListData",
        required_fields=["results"],
        type_overrides={"results": "FullScanItem[]"},
    ),
    "getRepositoryOptions": StrictTypeEntry(
        operation_id="getOrgRepo",
        extract_type="query_params",
        type_name="GetRepositoryOptions",
    ),
    "listFullScansOptions": StrictTypeEntry(
        operation_id="getOrgFullScanList",
        extract_type="query_params",
        type_name="ListFullScansOptions",
    ),
    "listRepositoriesOptions": StrictTypeEntry(
        operation_id="getOrgRepoList",
        extract_type="query_params",
        type_name="ListRepositoriesOptions",
    ),
    "organizationItem": StrictTypeEntry(
        operation_id="getOrganizations",
        response_code=200,
        type_name="OrganizationItem",
        source_path=["organizations", "Record", "value"],
        required_fields=["created_at", "id", "plan", "slug", "updated_at"],
    ),
    "repositoriesListData": StrictTypeEntry(
        operation_id="getOrgRepoList",
        response_code=200,
        type_name="RepositoriesListData",
        required_fields=["results"],
        type_overrides={"results": "RepositoryItem[]"},
    ),
    "repositoryItem": StrictTypeEntry(
        operation_id="getOrgRepo",
        response_code=200,
        type_name="RepositoryItem",
        required_fields=[
            "archived",
            "created_at",
            "default_branch",
            "description",
            "head_full_scan_id",
            "homepage",
            "id",
            "integration_meta",
            "name",
            "slug",
            "updated_at",
            "visibility",
            "workspace",
        ],
    ),
    "repositoryLabelItem": StrictTypeEntry(
        operation_id="getOrgRepoLabel",
        response_code=200,
        type_name="RepositoryLabelItem",
        required_fields=["id", "name"],
    ),
    "repositoryLabelsListData": StrictTypeEntry(
        operation_id="getOrgRepoLabelList",
        response_code=200,
        type_name="RepositoryLabelsListData",
        required_fields=["results"],
        type_overrides={"results": "RepositoryLabelItem[]"},
    ),
}

MODULE_HEADER: Final[str] = """\
/**
 * @fileoverview Strict type definitions for Socket SDK v3.
 * AUTO-GENERATED from OpenAPI definitions using AST parsing - DO NOT EDIT MANUALLY.
 * These types provide better TypeScript DX by marking guaranteed fields as required
 * and only keeping truly optional fields as optional.
 *
 * Generated by: sdk-scripts generate-strict-types
 */
/* c8 ignore start - Type definitions only, no runtime code to test. */
"""

COVERAGE_STOP: Final[str] = "/* c8 ignore stop */\n"


def _result_type(name: str, description: str, data: str) -> str:
    return (
        f"/**\n * {description}\n */\n"
        f"export type {name} = {{\n"
        "  cause?: undefined | undefined\n"
        f"  data: {data}\n"
        "  error?: undefined | undefined\n"
        "  status: number\n"
        "  success: true\n"
        "}\n"
    )


WRAPPER_TYPES: Final[str] = "\n" + "\n".join(
    [
        """\
/**
 * Error result type for all SDK operations.
 */
export type StrictErrorResult = {
  cause?: string | undefined
  data?: undefined | undefined
  error: string
  status: number
  success: false
}
""",
        """\
/**
 * Generic strict result type combining success and error.
 */
export type StrictResult<T> =
  | {
      cause?: undefined | undefined
      data: T
      error?: undefined | undefined
      status: number
      success: true
    }
  | StrictErrorResult
""",
        _result_type(
            "FullScanListResult",
            "Strict type for full scan list result.",
            "FullScanListData",
        ),
        _result_type(
            "FullScanResult", "Strict type for single full scan result.", "FullScanItem"
        ),
        """\
/**
 * Options for streaming a full scan.
 */
export type StreamFullScanOptions = {
  output?: boolean | string | undefined
}
""",
        _result_type(
            "OrganizationsResult",
            "Strict type for organizations list result.",
            "{\n    organizations: OrganizationItem[]\n  }",
        ),
        _result_type(
            "RepositoriesListResult",
            "Strict type for repositories list result.",
            "RepositoriesListData",
        ),
        _result_type(
            "DeleteResult",
            "Strict type for delete operation result.",
            "{ success: boolean }",
        ),
        _result_type(
            "RepositoryResult",
            "Strict type for single repository result.",
            "RepositoryItem",
        ),
        _result_type(
            "RepositoryLabelsListResult",
            "Strict type for repository labels list result.",
            "RepositoryLabelsListData",
        ),
        _result_type(
            "RepositoryLabelResult",
            "Strict type for single repository label result.",
            "RepositoryLabelItem",
        ),
        _result_type(
            "DeleteRepositoryLabelResult",
            "Strict type for delete repository label result.",
            "{ status: string }",
        ),
    ]
)


def load_config(path: Path) -> dict[str, StrictTypeEntry]:
    """Load a replacement table: a JSON object of key -> entry."""
    try:
        raw: object = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Strict type config not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    table: dict[str, StrictTypeEntry] = {}
    for key, value in raw.items():
        try:
            table[str(key)] = StrictTypeEntry.model_validate(value)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid entry {key!r} in {path}: {exc}") from exc
    return table


# -- AST navigation ----------------------------------------------------------


def find_export(program: Program, name: str) -> Declaration | None:
    for decl in program.body:
        if decl.exported and decl.name == name:
            return decl
    return None


def declaration_body(decl: Declaration) -> Node:
    if isinstance(decl, InterfaceDeclaration):
        return decl.body
    return decl.type


def unwrap_type(node: Node | None) -> Node | None:
    while isinstance(node, ParenthesizedType):
        node = node.inner
    return node


def find_property(node: Node | None, name: str | int) -> PropertySignature | None:
    wanted = str(name)
    for member in members_of(unwrap_type(node)):
        if isinstance(member, PropertySignature) and member.key == wanted:
            return member
    return None


def _property_type(node: Node | None, name: str | int) -> Node | None:
    prop = find_property(node, name)
    return prop.type if prop is not None else None


def navigate_to_path(node: Node | None, path: Sequence[str]) -> Node | None:
    """Follow ``path`` from ``node``; None when any step cannot be taken.

    ``Array`` steps into an array's element, ``Record`` into the value type of
    ``Record<K, V>`` or an index signature; ``items`` and ``value`` mark a
    position already reached. Other segments are property names.
    """
    current = unwrap_type(node)
    for segment in path:
        if current is None:
            return None
        if segment == "Array" and isinstance(current, ArrayType):
            current = unwrap_type(current.element)
            continue
        if segment == "items" and isinstance(current, TypeLiteral):
            continue
        if segment == "Record" and isinstance(current, TypeReference):
            if len(current.type_args) > 1:
                current = unwrap_type(current.type_args[1])
                continue
        if segment == "Record" and isinstance(current, TypeLiteral):
            index = next(
                (m for m in current.members if isinstance(m, IndexSignature)), None
            )
            if index is not None:
                current = unwrap_type(index.type)
                continue
        if segment == "value":
            continue
        current = unwrap_type(_property_type(current, segment))
        if current is None:
            return None
    return current


# -- extraction ----------------------------------------------------------------


def _type_text(node: Node | None, source: str) -> str:
    return node.text(source) if node is not None else "unknown"


def _loosen(type_text: str) -> str:
    return type_text if "| undefined" in type_text else f"{type_text} | undefined"


class _Collator(Protocol):
    def getSortKey(self, source: str) -> bytes: ...


@lru_cache
def _collator() -> _Collator:
    import icu  # local import to avoid hard dependency at module import time

    c: _Collator = icu.Collator.createInstance(icu.Locale.getRoot())
    return c


def sort_properties(properties: Iterable[PropertySpec]) -> list[PropertySpec]:
    """Order properties the way Unicode collation orders their names.

    Punctuation sorts before digits and lowercase before uppercase, so the
    emitted declarations match what a locale-aware comparison produces.
    """
    key = _collator().getSortKey
    return sorted(properties, key=lambda p: key(p.name))


def _properties(
    node: Node | None,
    source: str,
    *,
    required: Iterable[str],
    overrides: Mapping[str, str] | None = None,
) -> list[PropertySpec]:
    required_names = set(required)
    overrides = overrides or {}
    out: list[PropertySpec] = []
    for member in members_of(node):
        if not isinstance(member, PropertySignature) or member.key_kind != "identifier":
            continue
        is_required = member.key in required_names
        type_text = overrides.get(member.key) or _type_text(member.type, source)
        if not is_required:
            type_text = _loosen(type_text)
        out.append(PropertySpec(name=member.key, optional=not is_required, type=type_text))
    return out


def extract_query_params(
    operations: Node, entry: StrictTypeEntry, source: str
) -> list[PropertySpec] | None:
    operation = _property_type(operations, entry.operation_id)
    if find_property(operation, "parameters") is None:
        return None
    parameters = _property_type(operation, "parameters")
    if find_property(parameters, "query") is None:
        return None
    query = unwrap_type(_property_type(parameters, "query"))
    properties = _properties(query, source, required=entry.required_params)
    properties.extend(
        PropertySpec(name=f.name, optional=f.optional, type=f.type)
        for f in entry.additional_fields
    )
    return sort_properties(properties)


def extract_response_type(
    operations: Node, entry: StrictTypeEntry, source: str
) -> list[PropertySpec] | None:
    node: Node | None = _property_type(operations, entry.operation_id)
    for step in ("responses", entry.response_code, "content", "application/json"):
        if find_property(node, step) is None:
            return None
        node = _property_type(node, step)
    if entry.source_path:
        node = navigate_to_path(node, entry.source_path)
    if node is None:
        return None
    return sort_properties(
        _properties(
            unwrap_type(node),
            source,
            required=entry.required_fields,
            overrides=entry.type_overrides,
        )
    )


def extract_entry(
    operations: Node, entry: StrictTypeEntry, source: str
) -> list[PropertySpec] | None:
    if entry.extract_type == "query_params":
        return extract_query_params(operations, entry, source)
    return extract_response_type(operations, entry, source)


# -- rendering -------------------------------------------------------------------


def _words(name: str) -> str:
    return re.sub(r"([A-Z])", r" \1", name).lower().strip()


def describe(entry: StrictTypeEntry) -> str:
    if entry.extract_type == "query_params":
        return f"Options for {_words(re.sub(r'Options$', '', entry.type_name))}."
    return f"Strict type for {_words(entry.type_name)}."


def render_type_definition(
    name: str, properties: Sequence[PropertySpec], description: str
) -> str:
    lines = ["/**", f" * {description}", " */", f"export type {name} = {{"]
    for prop in properties:
        opt = "?" if prop.optional else ""
        lines.append(f"  {prop.name}{opt}: {prop.type}")
    lines.append("}")
    return "\n".join(lines)


def render_module(definitions: Sequence[str]) -> str:
    body = "\n\n".join(definitions)
    return f"{MODULE_HEADER}\n{body}\n{WRAPPER_TYPES}\n{COVERAGE_STOP}"


# -- pipeline --------------------------------------------------------------------


def build_strict_types(
    source: str, config: Mapping[str, StrictTypeEntry] | None = None
) -> str:
    """Parse baseline declarations and render the strict module text."""
    table = STRICT_TYPE_CONFIG if config is None else config
    try:
        program = parse(source)
    except TSParseError as exc:
        raise GenerationError(f"Could not parse generated types: {exc}") from exc
    operations_decl = find_export(program, "operations")
    if operations_decl is None:
        raise GenerationError("Could not find operations interface in generated types")
    operations = declaration_body(operations_decl)

    definitions: list[str] = []
    for key, entry in table.items():
        properties = extract_entry(operations, entry, source)
        kind = "query params" if entry.extract_type == "query_params" else "response type"
        if properties is None:
            _log.warning("Could not extract %s for %s", kind, key)
            continue
        definitions.append(
            render_type_definition(entry.type_name, properties, describe(entry))
        )
        unit = "params" if entry.extract_type == "query_params" else "fields"
        _log.info(
            "  Generated %s with %d %s",
            entry.type_name,
            len(properties),
            unit,
            extra={"step": "extract"},
        )
    return render_module(definitions)


def generate_strict_types(
    settings: Settings,
    runner: RunnerProtocol,
    config: Mapping[str, StrictTypeEntry] | None = None,
) -> Path:
    _log.info("Generating strict types from OpenAPI schema...")
    _log.info("  Running openapi-typescript...", extra={"step": "fetch"})
    source = generate_baseline_types(
        settings.resolve(settings.openapi_path), runner, cwd=str(settings.root)
    )
    _log.info("  Parsing generated TypeScript...", extra={"step": "parse"})
    output = build_strict_types(source, config)
    target = settings.resolve(settings.strict_types_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(output, encoding="utf-8")
    _log.info("  Written to %s", target, extra={"step": "write"})
    _log.info("Strict type generation complete")
    return target
