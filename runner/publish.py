from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict, ValidationError

from runner.errors import ConfigurationError, PublishError
from runner.logging import get_logger
from runner.models import CommandSpec
from runner.types import (
    HttpGetProtocol,
    HttpResponseProtocol,
    ReleaseGitProtocol,
    RunnerProtocol,
)

_log = get_logger(__name__)

RELEASE_BRANCHES = frozenset({"main", "master"})
COMPLEX_SCRIPT = Path("scripts") / "publish-packages.mjs"


class PackageInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    version: str


def read_package_json(root: Path) -> PackageInfo:
    path = root / "package.json"
    try:
        data: object = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"package.json not found in {root}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    try:
        return PackageInfo.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"{path} needs a name and version: {exc}") from exc


def _requests_get(url: str, *, timeout: float, headers: dict[str, str]) -> HttpResponseProtocol:
    return requests.get(url, timeout=timeout, headers=headers)


def registry_url_for(registry: str, name: str, version: str) -> str:
    """``@scope/pkg`` is addressed as ``@scope%2fpkg`` by the npm registry."""
    encoded = quote(name, safe="@").replace("%2F", "%2f")
    return f"{registry.rstrip('/')}/{encoded}/{quote(version, safe='')}"


@dataclass(frozen=True)
class PublishOptions:
    dry_run: bool = False
    force: bool = False
    skip_checks: bool = False
    skip_build: bool = False
    skip_git: bool = False
    skip_tag: bool = False
    complex: bool = False
    tag: str = "latest"
    access: str = "public"
    otp: str | None = None


def publish_args(options: PublishOptions) -> list[str]:
    args = ["publish", "--access", options.access, "--tag", options.tag]
    if options.dry_run:
        args.append("--dry-run")
    else:
        args.append("--provenance")
    if options.otp:
        args.extend(["--otp", options.otp])
    return args


class Publisher:
    """Release pipeline: checks, build, registry check, publish, tag.

    Every external effect goes through the injected runner, git wrapper and
    HTTP getter.
    """

    def __init__(
        self,
        *,
        runner: RunnerProtocol,
        git: ReleaseGitProtocol,
        root: Path,
        package_manager: str = "pnpm",
        registry_url: str = "https://registry.npmjs.org",
        http_get: HttpGetProtocol = _requests_get,
    ) -> None:
        self._runner = runner
        self._git = git
        self._root = root
        self._pm = package_manager
        self._registry = registry_url
        self._http_get = http_get

    def _spec(self, command: str, *args: str, quiet: bool = False) -> CommandSpec:
        return CommandSpec(command=command, args=list(args), cwd=str(self._root), quiet=quiet)

    def _quiet_then_loud(self, label: str, *args: str) -> bool:
        """Run quietly; on failure run again with output so the user sees why."""
        if self._runner.run(self._spec(self._pm, *args, quiet=True)) == 0:
            _log.info("  %s passed", label)
            return True
        _log.error("  %s failed", label)
        self._runner.run(self._spec(self._pm, *args))
        return False

    # stages

    def git_checks(self, *, force: bool) -> bool:
        porcelain = self._git.status()
        if porcelain.strip():
            _log.error("Working directory is not clean")
            _log.info("Uncommitted changes:\n%s", porcelain.rstrip())
            return False
        _log.info("  Git status clean")
        branch = self._git.current_branch()
        if branch not in RELEASE_BRANCHES:
            _log.warning("Not on main/master branch (current: %s)", branch)
            if not force:
                return False
            _log.info("  Branch check skipped (forced)")
        else:
            _log.info("  On main/master branch")
        return True

    def pre_publish_checks(self, *, skip_git: bool, force: bool) -> bool:
        _log.info("Running pre-publish checks", extra={"step": "checks"})
        if not skip_git and not self.git_checks(force=force):
            return False
        if not self._quiet_then_loud("Tests", "test", "--all"):
            return False
        return self._quiet_then_loud("Checks", "check", "--all")

    def build(self) -> bool:
        _log.info("Building project", extra={"step": "build"})
        if self._runner.run(self._spec(self._pm, "clean", "--dist", quiet=True)) != 0:
            _log.error("  Clean failed")
            return False
        _log.info("  Build directories cleaned")
        return self._quiet_then_loud("Build", "build")

    def version_exists(self, name: str, version: str) -> bool:
        url = registry_url_for(self._registry, name, version)
        try:
            resp = self._http_get(url, timeout=15.0, headers={"Accept": "application/json"})
        except requests.RequestException as exc:
            raise PublishError(f"Could not reach npm registry: {exc}") from exc
        return resp.status_code == 200

    def publish_simple(self, package: PackageInfo, options: PublishOptions) -> bool:
        _log.info(
            "Publishing %s@%s", package.name, package.version, extra={"step": "publish"}
        )
        if self.version_exists(package.name, package.version):
            _log.warning("Version %s already exists on npm", package.version)
            if not options.force:
                return False
        _log.info("  Version check complete")
        _log.info("  %s", "Running dry-run publish" if options.dry_run else "Publishing to npm")
        if self._runner.run(self._spec("npm", *publish_args(options))) != 0:
            _log.error("  Publish failed")
            return False
        if options.dry_run:
            _log.info("  Dry-run publish complete")
        else:
            _log.info("  Published %s@%s to npm", package.name, package.version)
        return True

    def publish_complex(self, package: PackageInfo, options: PublishOptions) -> bool:
        script = self._root / COMPLEX_SCRIPT
        if script.exists():
            _log.info("Running project-specific publish script")
            return self._runner.run(self._spec("node", str(script))) == 0
        _log.info("No project-specific publish script found, using simple flow")
        return self.publish_simple(package, options)

    def create_git_tag(self, version: str, *, force: bool) -> bool:
        tag = f"v{version}"
        _log.info("Creating git tag", extra={"step": "tag"})
        if self._git.tag_exists(tag):
            if not force:
                _log.warning("Tag %s already exists", tag)
                return False
            _log.warning("Tag %s already exists (will overwrite)", tag)
        if self._git.create_tag(tag, f"Release {tag}", force=force) != 0:
            _log.error("  Tag creation failed")
            return False
        _log.info("  Created tag %s", tag)
        if self._git.push_tag(tag, force=force) != 0:
            _log.error("  Tag push failed")
            return False
        _log.info("  Pushed tag to remote")
        return True

    def run(self, options: PublishOptions) -> int:
        package = read_package_json(self._root)
        _log.info("Current version: %s", package.version)

        if not options.skip_checks:
            ok = self.pre_publish_checks(skip_git=options.skip_git, force=options.force)
            if not ok and not options.force:
                _log.error("Pre-publish checks failed")
                return 1
        if not options.skip_build:
            if not self.build() and not options.force:
                _log.error("Build failed")
                return 1

        if options.complex:
            published = self.publish_complex(package, options)
        else:
            published = self.publish_simple(package, options)
        if not published and not options.force:
            _log.error("Publish failed")
            return 1

        if not options.skip_tag and not options.dry_run:
            self.create_git_tag(package.version, force=options.force)
        _log.info("Publish completed successfully!")
        return 0
