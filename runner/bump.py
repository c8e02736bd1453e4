"""Release version bump: package.json, lockfile, changelog, commit and tag.

Version arithmetic follows npm's ``semver.inc`` rules, built on python-semver.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Final

import semver

from runner.errors import ConfigurationError
from runner.logging import get_logger
from runner.models import CommandSpec
from runner.publish import RELEASE_BRANCHES, read_package_json
from runner.types import BumpGitProtocol, RunnerProtocol

_log = get_logger(__name__)

RELEASE_TYPES: Final = (
    "major",
    "minor",
    "patch",
    "premajor",
    "preminor",
    "prepatch",
    "prerelease",
)

CHANGELOG: Final = "CHANGELOG.md"
CHANGELOG_HEADER: Final = (
    "# Changelog\n"
    "\n"
    "All notable changes to this project will be documented in this file.\n"
    "\n"
    "The format is based on [Keep a Changelog](https://keepachangelog.com/),\n"
    "and this project adheres to [Semantic Versioning](https://semver.org/).\n"
    "\n"
)

# package manager -> (lockfile, args that refresh only the lockfile)
LOCKFILES: Final[dict[str, tuple[str, tuple[str, ...]]]] = {
    "pnpm": ("pnpm-lock.yaml", ("install", "--lockfile-only")),
    "npm": ("package-lock.json", ("install", "--package-lock-only")),
    "yarn": ("yarn.lock", ("install", "--mode=update-lockfile")),
}


def _strip_v(text: str) -> str:
    return text[1:] if text[:1] in ("v", "V") else text


def _next_prerelease(version: semver.Version) -> semver.Version:
    if not version.prerelease:
        return version.bump_patch().replace(prerelease="0")
    parts = version.prerelease.split(".")
    for i in range(len(parts) - 1, -1, -1):
        if parts[i].isdigit():
            parts[i] = str(int(parts[i]) + 1)
            break
    else:
        parts.append("0")
    return version.replace(prerelease=".".join(parts), build=None)


def _increment(version: semver.Version, bump: str) -> semver.Version:
    # a prerelease of the target version is finalized rather than skipped over
    if bump == "major":
        if version.prerelease and version.minor == 0 and version.patch == 0:
            return version.finalize_version()
        return version.bump_major()
    if bump == "minor":
        if version.prerelease and version.patch == 0:
            return version.finalize_version()
        return version.bump_minor()
    if bump == "patch":
        if version.prerelease:
            return version.finalize_version()
        return version.bump_patch()
    if bump == "premajor":
        return version.bump_major().replace(prerelease="0")
    if bump == "preminor":
        return version.bump_minor().replace(prerelease="0")
    if bump == "prepatch":
        return version.bump_patch().replace(prerelease="0")
    return _next_prerelease(version)


def next_version(current: str, bump: str) -> str:
    """Resolve ``bump`` (a release type or an explicit version) against ``current``."""
    explicit = _strip_v(bump)
    if semver.Version.is_valid(explicit):
        return str(semver.Version.parse(explicit))
    if bump not in RELEASE_TYPES:
        raise ConfigurationError(
            f"Invalid bump type: {bump}. Must be one of: "
            f"{', '.join(RELEASE_TYPES)} or a valid semver version"
        )
    try:
        version = semver.Version.parse(_strip_v(current))
    except ValueError as exc:
        raise ConfigurationError(f"Current version {current!r} is not valid semver") from exc
    return str(_increment(version, bump))


def changelog_entry(version: str, subjects: Sequence[str], today: date) -> str:
    lines = [f"## [{version}] - {today.isoformat()}", "", "### Changed", ""]
    lines.extend(f"- {subject}" for subject in subjects or ["Version bump"])
    return "\n".join(lines)


def update_changelog(path: Path, entry: str) -> None:
    """Insert ``entry`` above the newest release, creating the file if needed."""
    existing = path.read_text(encoding="utf-8") if path.exists() else CHANGELOG_HEADER
    first_release = existing.find("\n## ")
    if first_release > 0:
        text = f"{existing[:first_release]}\n{entry}\n{existing[first_release:]}"
    else:
        text = existing.rstrip() + "\n\n" + entry + "\n"
    path.write_text(text, encoding="utf-8")


def write_package_version(root: Path, version: str) -> None:
    """Rewrite the version field, keeping key order and two-space indentation."""
    path = root / "package.json"
    data: object = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    data["version"] = version
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


@dataclass(frozen=True)
class BumpOptions:
    bump: str = "patch"
    dry_run: bool = False
    force: bool = False
    skip_checks: bool = False
    skip_push: bool = False
    no_changelog: bool = False


class Bumper:
    """Cuts a release commit and tag for the next version."""

    def __init__(
        self,
        *,
        runner: RunnerProtocol,
        git: BumpGitProtocol,
        root: Path,
        package_manager: str = "pnpm",
        today: Callable[[], date] = date.today,
    ) -> None:
        self._runner = runner
        self._git = git
        self._root = root
        self._pm = package_manager
        self._today = today

    def _lockfile(self) -> tuple[str, tuple[str, ...]]:
        try:
            return LOCKFILES[self._pm]
        except KeyError as exc:
            raise ConfigurationError(
                f"Cannot refresh the lockfile for package manager {self._pm!r}"
            ) from exc

    def preflight(self, *, force: bool) -> bool:
        porcelain = self._git.status()
        if porcelain.strip():
            _log.error("Working directory is not clean")
            _log.info("Uncommitted changes:\n%s", porcelain.rstrip())
            if not force:
                return False
        else:
            _log.info("  Git status clean")
        branch = self._git.current_branch()
        if branch not in RELEASE_BRANCHES:
            _log.warning("Not on main/master branch (current: %s)", branch)
            if not force:
                return False
        else:
            _log.info("  On main/master branch")
        return True

    def run(self, options: BumpOptions) -> int:
        package = read_package_json(self._root)
        new_version = next_version(package.version, options.bump)
        lockfile, refresh_args = self._lockfile()
        tag = f"v{new_version}"
        message = f"Bump to {tag}"
        _log.info("Current version: %s", package.version)
        _log.info("New version: %s", new_version)

        if not options.skip_checks:
            _log.info("Checking prerequisites", extra={"step": "checks"})
            if not self.preflight(force=options.force):
                return 1
        if self._git.tag_exists(tag) and not options.force:
            _log.error("Tag %s already exists", tag)
            return 1

        if options.dry_run:
            _log.info("Dry run, nothing is written")
            _log.info("  Would update package.json and %s", lockfile)
            if not options.no_changelog:
                _log.info("  Would add a %s entry for %s", CHANGELOG, new_version)
            _log.info("  Would commit %r and tag %s", message, tag)
            if not options.skip_push:
                _log.info("  Would push commits and tags")
            return 0

        _log.info("Updating version", extra={"step": "version"})
        write_package_version(self._root, new_version)
        _log.info("  Updated package.json")
        spec = CommandSpec(
            command=self._pm, args=list(refresh_args), cwd=str(self._root), quiet=True
        )
        if self._runner.run(spec) != 0:
            _log.error("  Lockfile update failed")
            return 1
        _log.info("  Updated %s", lockfile)

        paths = ["package.json"]
        if (self._root / lockfile).exists():
            paths.append(lockfile)
        if not options.no_changelog:
            subjects = self._git.commit_subjects(self._git.last_tag())
            entry = changelog_entry(new_version, subjects, self._today())
            update_changelog(self._root / CHANGELOG, entry)
            paths.append(CHANGELOG)
            _log.info("  Updated %s", CHANGELOG)

        _log.info("Creating commit", extra={"step": "commit"})
        if self._git.add(paths) != 0 or self._git.commit(message) != 0:
            _log.error("  Commit failed")
            return 1
        _log.info("  Created commit: %s", message)
        if self._git.create_tag(tag, f"Release {tag}", force=options.force) != 0:
            _log.error("  Tag creation failed")
            return 1
        _log.info("  Created tag: %s", tag)

        if not options.skip_push:
            _log.info("Pushing to remote", extra={"step": "push"})
            if self._git.push() != 0 or self._git.push(tags=True) != 0:
                _log.error("  Push failed")
                return 1
            _log.info("  Pushed commits and tags")

        _log.info("Version bumped to %s!", new_version)
        _log.info("Next: run publish to release it to npm")
        return 0
