"""
Skill installation by symlink.

A skill is installed by linking its source directory (inside a cloned
repository, or a local skill directory) into each selected platform's skills
directory, e.g. ``~/.claude/skills/<slug> -> <source dir>``. Every link that is
created gets an ``InstallationRecord``; the record set is the ledger of where a
skill is installed and ``Skill.is_installed`` is kept equal to "the ledger has
at least one record for this skill" after every mutation.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass

from .errors import (
    InstallError,
    InvalidSkillError,
    LocationOutcome,
    NoLocationsSpecifiedError,
    NoSourceError,
    NoToolsSelectedError,
    SkillNotFoundError,
    SkillportError,
    SourceNotFoundError,
    StoreError,
    SymlinkFailedError,
    UninstallError,
)
from .models import InstallationRecord, Skill, Source
from .paths import PathResolver
from .platforms import all_platforms, parse_platforms, platform_from_string
from .reconcile import Reconciler, SkillLookup, SyncResult
from .scopes import SCOPE_GLOBAL, InstallLocation, new_install_location, skill_path_for_scope
from .store import PreferenceStore, Store
from .symlinks import SymlinkManager

logger = logging.getLogger(__name__)

# Failures the installer accumulates per location instead of aborting.
_STEP_ERRORS = (OSError, SkillportError)


@dataclass(frozen=True)
class InstallReport:
    skill_id: str
    source_path: str
    installed: tuple[LocationOutcome, ...]
    failed: tuple[LocationOutcome, ...]
    skipped: tuple[InstallLocation, ...]

    @property
    def locations(self) -> list[InstallLocation]:
        return [o.location for o in self.installed if o.location is not None]


def _validate_skill(skill: Skill | None) -> Skill:
    if skill is None or not skill.slug:
        raise InvalidSkillError()
    return skill


def _missing_dirs(path: str) -> list[str]:
    """Ancestors of (and including) ``path`` that do not exist yet, deepest first."""
    missing: list[str] = []
    current = os.path.abspath(path)
    while not os.path.lexists(current):
        missing.append(current)
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return missing


def _remove_dirs_if_empty(dirs: list[str]) -> None:
    for d in dirs:
        try:
            if os.path.isdir(d) and not os.path.islink(d) and not os.listdir(d):
                os.rmdir(d)
        except OSError as e:
            logger.debug("could not remove directory %s: %s", d, e)


def _holds_source(target: str, source_path: str) -> bool:
    """True when ``target`` is a real entry that is, or contains, the skill source."""
    if not os.path.lexists(target) or os.path.islink(target):
        return False
    real_target = os.path.realpath(target)
    real_source = os.path.realpath(source_path)
    return os.path.commonpath([real_target, real_source]) == real_target


def _clear_target(target: str) -> None:
    if not os.path.lexists(target):
        return
    if os.path.islink(target) or not os.path.isdir(target):
        os.unlink(target)
        return
    shutil.rmtree(target)


class Installer:
    def __init__(
        self,
        *,
        store: Store,
        paths: PathResolver,
        preferences: PreferenceStore | None = None,
        links: SymlinkManager | None = None,
        lookup: SkillLookup | None = None,
    ) -> None:
        self.store = store
        self.paths = paths
        self.preferences = preferences
        self.links = links or SymlinkManager()
        self.lookup = lookup

    # -- install ------------------------------------------------------------

    def install(self, skill: Skill, source: Source | None) -> InstallReport:
        """Install to every preferred platform at global scope."""
        _validate_skill(skill)
        if source is None:
            raise NoSourceError(f"Source is required to install {skill.slug}.")

        tools = self.preferences.get_ai_tools() if self.preferences is not None else []
        platforms = parse_platforms(tools)
        if not platforms:
            raise NoToolsSelectedError()

        locations = [new_install_location(p, SCOPE_GLOBAL) for p in platforms]
        return self.install_to(skill, source, locations)

    def install_to(self, skill: Skill, source: Source | None, locations: list[InstallLocation]) -> InstallReport:
        _validate_skill(skill)
        if source is None:
            raise NoSourceError(f"Source is required to install {skill.slug}.")
        if not locations:
            raise NoLocationsSpecifiedError()

        source_path = self.paths.source_path_for(skill, source)
        self._require_source(source_path)
        return self._install_to_locations(skill, source_path, locations)

    def install_local_skill_to(self, skill: Skill, source_path: str, locations: list[InstallLocation]) -> InstallReport:
        _validate_skill(skill)
        if not source_path:
            raise NoSourceError(f"Source path is required to install local skill {skill.slug}.")
        if not locations:
            raise NoLocationsSpecifiedError()

        self._require_source(source_path)
        return self._install_to_locations(skill, source_path, locations)

    def reinstall(self, skill: Skill, source: Source | None) -> InstallReport:
        self.uninstall(skill)
        return self.install(skill, source)

    def _require_source(self, source_path: str) -> None:
        if not os.path.exists(source_path):
            raise SourceNotFoundError(f"Skill directory not found: {source_path}")

    def _install_to_locations(self, skill: Skill, source_path: str, locations: list[InstallLocation]) -> InstallReport:
        installed: list[LocationOutcome] = []
        failed: list[LocationOutcome] = []
        skipped: list[InstallLocation] = []
        created_dirs: list[str] = []

        for loc in locations:
            target = loc.skill_path(skill.slug)
            if not target:
                skipped.append(loc)
                continue

            if _holds_source(target, source_path):
                logger.warning("not replacing %s: it holds the source %s", target, source_path)
                error = SymlinkFailedError(f"{target} holds the skill source; not replacing it.")
                failed.append(LocationOutcome(loc, target, error))
                continue

            target_dir = os.path.dirname(target)
            missing = _missing_dirs(target_dir)
            try:
                os.makedirs(target_dir, exist_ok=True)
            except OSError as e:
                logger.warning("mkdir failed for %s: %s", target_dir, e)
                failed.append(LocationOutcome(loc, target, e))
                continue
            created_dirs.extend(d for d in missing if d not in created_dirs)

            try:
                _clear_target(target)
                os.symlink(source_path, target)
            except OSError as e:
                logger.warning("symlink failed %s -> %s: %s", target, source_path, e)
                failed.append(LocationOutcome(loc, target, e))
                continue

            record = InstallationRecord(
                skill_id=skill.id,
                platform=loc.platform,
                scope=loc.scope,
                base_path=loc.base_path,
                symlink_path=target,
            )
            try:
                self.store.add_installation(record)
            except _STEP_ERRORS as e:
                logger.warning("recording %s failed, rolling back symlink: %s", target, e)
                self._discard_link(target)
                failed.append(LocationOutcome(loc, target, e))
                continue

            installed.append(LocationOutcome(loc, target))

        if not installed:
            _remove_dirs_if_empty(sorted(created_dirs, key=len, reverse=True))
            if failed:
                raise InstallError(failed)
            raise SymlinkFailedError(f"No installable location for {skill.slug}.")

        # Commit point: a skill must never have live links without being flagged installed.
        try:
            self.store.set_installed(skill.id, True)
        except _STEP_ERRORS as e:
            logger.warning("marking %s installed failed, rolling back %d location(s)", skill.slug, len(installed))
            for outcome in installed:
                self._discard_link(outcome.path)
                if outcome.location is not None:
                    self._discard_record(skill.id, outcome.location)
            _remove_dirs_if_empty(sorted(created_dirs, key=len, reverse=True))
            raise StoreError(f"Could not mark {skill.slug} as installed: {e}") from e

        return InstallReport(
            skill_id=skill.id,
            source_path=source_path,
            installed=tuple(installed),
            failed=tuple(failed),
            skipped=tuple(skipped),
        )

    def _discard_link(self, target: str) -> None:
        try:
            self.links.remove(target)
        except SkillportError as e:
            logger.warning("rollback: could not remove %s: %s", target, e)

    def _discard_record(self, skill_id: str, loc: InstallLocation) -> None:
        try:
            self.store.remove_installation(skill_id, loc.platform, loc.scope, loc.base_path)
        except _STEP_ERRORS as e:
            logger.warning("rollback: could not remove record %s for %s: %s", loc.id, skill_id, e)

    # -- uninstall ----------------------------------------------------------

    def uninstall(self, skill: Skill) -> None:
        self.uninstall_all(skill)

    def uninstall_from(self, skill: Skill, locations: list[InstallLocation]) -> None:
        _validate_skill(skill)

        outcomes: list[LocationOutcome] = []
        for loc in locations:
            target = loc.skill_path(skill.slug)
            if not target:
                continue

            error: Exception | None = None
            if self.links.is_symlink(target):
                try:
                    self.links.remove(target)
                except SkillportError as e:
                    error = e

            try:
                self.store.remove_installation(skill.id, loc.platform, loc.scope, loc.base_path)
            except _STEP_ERRORS as e:
                error = error or e

            outcomes.append(LocationOutcome(loc, target, error))

        if not self.store.has_installations(skill.id):
            self.store.set_installed(skill.id, False)

        if any(not o.ok for o in outcomes):
            raise UninstallError(outcomes)

    def uninstall_all(self, skill: Skill) -> None:
        _validate_skill(skill)

        outcomes: list[LocationOutcome] = []
        try:
            records = self.store.get_installations(skill.id)
        except _STEP_ERRORS as e:
            records = []
            outcomes.append(LocationOutcome(None, "", e))

        for record in records:
            loc = InstallLocation(platform=record.platform, scope=record.scope, base_path=record.base_path)
            if record.symlink_path and self.links.is_symlink(record.symlink_path):
                try:
                    self.links.remove(record.symlink_path)
                except SkillportError as e:
                    outcomes.append(LocationOutcome(loc, record.symlink_path, e))

        try:
            self.store.remove_all_installations(skill.id)
        except _STEP_ERRORS as e:
            outcomes.append(LocationOutcome(None, "", e))

        # Links created before installations were recorded only ever went to global scope.
        for platform in all_platforms():
            target = skill_path_for_scope(platform, SCOPE_GLOBAL, skill.slug)
            if not target or not self.links.is_symlink(target):
                continue
            try:
                self.links.remove(target)
            except SkillportError as e:
                outcomes.append(LocationOutcome(new_install_location(platform, SCOPE_GLOBAL), target, e))

        # Cleared unconditionally, even after failures above.
        try:
            self.store.set_installed(skill.id, False)
        except _STEP_ERRORS as e:
            outcomes.append(LocationOutcome(None, "", e))

        if outcomes:
            raise UninstallError(outcomes)

    # -- queries ------------------------------------------------------------

    def is_installed(self, skill_id: str) -> bool:
        if self.store.get_skill(skill_id) is None:
            raise SkillNotFoundError(f"Skill not found: {skill_id}")
        return self.store.has_installations(skill_id)

    def get_install_locations(self, skill_id: str) -> list[InstallLocation]:
        return [
            InstallLocation(
                platform=platform_from_string(record.platform),
                scope=record.scope,
                base_path=record.base_path,
            )
            for record in self.store.get_installations(skill_id)
        ]

    def sync_install_state(self) -> SyncResult:
        return Reconciler(store=self.store, lookup=self.lookup).run()
