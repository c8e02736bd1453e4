from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_CI_VARS = ("CI", "GITHUB_ACTIONS", "GITLAB_CI", "CIRCLECI", "TRAVIS")


def _env(name: str, default: str) -> str:
    return os.getenv(f"SDK_SCRIPTS_{name}", default).strip() or default


def is_ci() -> bool:
    return any(os.getenv(name) for name in _CI_VARS)


@dataclass(frozen=True)
class Settings:
    """Script settings loaded from environment in a type-safe, framework-free way."""

    root_path: str
    package_manager: str
    type_checker: str
    tsconfig_check_path: str
    eslint_config_path: str
    openapi_path: str
    types_path: str
    strict_types_path: str
    registry_url: str
    log_level: str
    log_format: str
    ci: bool

    @property
    def root(self) -> Path:
        return Path(self.root_path).resolve()

    def resolve(self, relative: str) -> Path:
        return self.root / relative

    @staticmethod
    def from_env() -> Settings:
        log_format = _env("LOG_FORMAT", "text").lower()
        if log_format not in {"text", "json"}:
            log_format = "text"
        return Settings(
            root_path=_env("ROOT", "."),
            package_manager=_env("PACKAGE_MANAGER", "pnpm"),
            type_checker=_env("TYPE_CHECKER", "tsgo"),
            tsconfig_check_path=_env(
                "TSCONFIG_CHECK", ".config/tsconfig.check.json"
            ),
            eslint_config_path=_env("ESLINT_CONFIG", ".config/eslint.config.mjs"),
            openapi_path=_env("OPENAPI_PATH", "openapi.json"),
            types_path=_env("TYPES_PATH", "types/api.d.ts"),
            strict_types_path=_env("STRICT_TYPES_PATH", "src/types-strict.ts"),
            registry_url=_env("REGISTRY_URL", "https://registry.npmjs.org").rstrip(
                "/"
            ),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_format=log_format,
            ci=is_ci(),
        )
