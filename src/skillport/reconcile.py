"""
Reconciliation of the installation ledger with the links actually on disk.

Links can be created or deleted behind our back (manual ``rm``, other tools, a
crash between creating a link and recording it). ``Reconciler.run`` scans every
platform/scope skills directory, treats each symlink name as a skill slug, and
then adds missing records, drops orphaned ones and recomputes each skill's
``is_installed`` flag.

The run is best-effort: a directory that cannot be scanned or a skill that
cannot be reconciled is skipped and the rest carries on.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Protocol

from .errors import SkillportError
from .models import InstallationRecord, Skill
from .platforms import Platform, all_platforms, info
from .scopes import InstallLocation, Scope, all_scopes, resolve_scope
from .store import Store
from .symlinks import is_symlink

logger = logging.getLogger(__name__)


class SkillLookup(Protocol):
    def find(self, slug: str) -> Skill | None:
        ...


class HistoricalSlugLookup:
    """
    Maps a link name back to a skill.

    Tries the slug itself first, then the id conventions older releases used
    for local skills (``local-<slug>``, ``cwd-<slug>``) and finally the raw
    slug as an id.
    """

    ID_PATTERNS = ("local-{slug}", "cwd-{slug}", "{slug}")

    def __init__(self, store: Store) -> None:
        self.store = store

    def find(self, slug: str) -> Skill | None:
        skill = self.store.get_skill_by_slug(slug)
        if skill is not None:
            return skill
        for pattern in self.ID_PATTERNS:
            skill = self.store.get_skill(pattern.format(slug=slug))
            if skill is not None:
                return skill
        return None


@dataclass(frozen=True)
class SyncResult:
    added: tuple[InstallationRecord, ...]
    removed: tuple[InstallationRecord, ...]
    flags_changed: tuple[str, ...]  # slugs whose is_installed flag was rewritten
    skipped_units: tuple[str, ...]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.flags_changed)


class Reconciler:
    def __init__(self, *, store: Store, lookup: SkillLookup | None = None) -> None:
        self.store = store
        self.lookup = lookup or HistoricalSlugLookup(store)

    def scan(self, skipped: list[str] | None = None) -> dict[str, list[InstallLocation]]:
        """Return skill id -> locations where a link for that skill currently exists."""
        found: dict[str, list[InstallLocation]] = {}
        for platform in all_platforms():
            for scope in all_scopes():
                try:
                    self._scan_platform_scope(platform, scope, found)
                except (OSError, SkillportError) as e:
                    logger.debug("reconcile: skipping %s:%s: %s", platform, scope, e)
                    if skipped is not None:
                        skipped.append(f"{platform}:{scope}")
        return found

    def run(self) -> SyncResult:
        skipped: list[str] = []
        found = self.scan(skipped)

        # Not caught: failing to list skills fails the whole run.
        skills = self.store.get_all_skills()

        added: list[InstallationRecord] = []
        removed: list[InstallationRecord] = []
        flags_changed: list[str] = []
        for skill in skills:
            try:
                self._reconcile_skill(skill, found.get(skill.id, []), added, removed, flags_changed)
            except (OSError, SkillportError) as e:
                logger.debug("reconcile: skipping skill %s: %s", skill.slug, e)
                skipped.append(skill.slug)

        if added or removed or flags_changed:
            logger.info(
                "reconcile: %d record(s) added, %d removed, %d flag(s) updated",
                len(added),
                len(removed),
                len(flags_changed),
            )
        return SyncResult(
            added=tuple(added),
            removed=tuple(removed),
            flags_changed=tuple(flags_changed),
            skipped_units=tuple(skipped),
        )

    def _scan_platform_scope(self, platform: Platform, scope: Scope, found: dict[str, list[InstallLocation]]) -> None:
        skills_path = info(platform).skills_path
        if not skills_path:
            return
        base_path = resolve_scope(scope)
        skills_dir = os.path.join(base_path, skills_path)
        if not os.path.isdir(skills_dir):
            return

        for name in sorted(os.listdir(skills_dir)):
            if name.startswith("."):
                continue
            if not is_symlink(os.path.join(skills_dir, name)):
                continue
            try:
                skill = self.lookup.find(name)
            except SkillportError as e:
                logger.debug("reconcile: lookup failed for %s: %s", name, e)
                continue
            if skill is None:
                continue
            location = InstallLocation(platform=platform, scope=scope, base_path=base_path)
            found.setdefault(skill.id, []).append(location)

    def _reconcile_skill(
        self,
        skill: Skill,
        found: list[InstallLocation],
        added: list[InstallationRecord],
        removed: list[InstallationRecord],
        flags_changed: list[str],
    ) -> None:
        recorded = self.store.get_installations(skill.id)
        recorded_keys = {r.key for r in recorded}
        found_keys = {loc.key for loc in found}

        for loc in found:
            if loc.key in recorded_keys:
                continue
            record = InstallationRecord(
                skill_id=skill.id,
                platform=loc.platform,
                scope=loc.scope,
                base_path=loc.base_path,
                symlink_path=loc.skill_path(skill.slug),
            )
            try:
                self.store.add_installation(record)
            except SkillportError as e:
                logger.debug("reconcile: could not add record %s for %s: %s", loc.id, skill.slug, e)
                continue
            recorded_keys.add(loc.key)
            added.append(record)

        for record in recorded:
            if record.key in found_keys:
                continue
            try:
                self.store.remove_installation(record.skill_id, record.platform, record.scope, record.base_path)
            except SkillportError as e:
                logger.debug("reconcile: could not remove orphan %s for %s: %s", record.key, skill.slug, e)
                continue
            removed.append(record)

        has_installs = bool(found)
        if skill.is_installed != has_installs:
            self.store.set_installed(skill.id, has_installs)
            flags_changed.append(skill.slug)
