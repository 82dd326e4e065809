"""
Slug-level façade over the installer.

Front-ends (the CLI, scripts) talk to ``InstallService``: it resolves a slug to
a skill, fills in platform and scope defaults and picks the right installer
entry point for local and repository skills.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .detect import detect_platform
from .errors import NoSourceError, SkillNotFoundError, SkillportError
from .installer import Installer, InstallReport
from .models import Skill
from .platforms import DEFAULT_PLATFORM, Platform, all_platforms, info, parse_platforms
from .scopes import SCOPE_GLOBAL, InstallLocation, Scope, new_install_location, parse_scopes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallOptions:
    platforms: tuple[str, ...] = ()  # empty = user's preferred tools, then the default platform
    scopes: tuple[str, ...] = ()  # empty = global


@dataclass(frozen=True)
class InstallResult:
    slug: str
    skill: Skill | None = None
    locations: tuple[InstallLocation, ...] = ()
    report: InstallReport | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class InstalledSkillSummary:
    slug: str
    title: str
    locations: dict[Platform, list[Scope]] = field(default_factory=dict)


@dataclass(frozen=True)
class DetectedPlatform:
    id: Platform
    name: str
    path: str
    detected: bool


class InstallService:
    def __init__(self, installer: Installer) -> None:
        self.installer = installer
        self.store = installer.store

    def _require_skill(self, slug: str) -> Skill:
        skill = self.store.get_skill_by_slug(slug)
        if skill is None:
            raise SkillNotFoundError(f"Skill not found: {slug}")
        return skill

    def _default_platforms(self) -> list[str]:
        prefs = self.installer.preferences
        tools = prefs.get_ai_tools() if prefs is not None else []
        return tools or [DEFAULT_PLATFORM]

    def build_locations(self, options: InstallOptions | None = None) -> list[InstallLocation]:
        options = options or InstallOptions()
        platforms = parse_platforms(list(options.platforms) or self._default_platforms())
        scopes = parse_scopes(list(options.scopes) or [SCOPE_GLOBAL])
        return [new_install_location(p, s) for p in platforms for s in scopes]

    def install(self, slug: str, options: InstallOptions | None = None) -> InstallResult:
        skill = self._require_skill(slug)
        locations = self.build_locations(options)

        if skill.is_local:
            source_path = self.installer.paths.local_source_path(skill)
            report = self.installer.install_local_skill_to(skill, source_path, locations)
        elif skill.source_id:
            source = self.store.get_source(skill.source_id)
            if source is None:
                raise NoSourceError(f"Source {skill.source_id} for {slug} is not registered.")
            report = self.installer.install_to(skill, source, locations)
        else:
            raise NoSourceError(f"Cannot install skill without source: {slug}")

        for outcome in report.failed:
            logger.warning("%s: %s", slug, outcome.describe())
        return InstallResult(
            slug=slug,
            skill=self.store.get_skill(skill.id),
            locations=tuple(self.installer.get_install_locations(skill.id)),
            report=report,
        )

    def install_batch(self, slugs: list[str], options: InstallOptions | None = None) -> list[InstallResult]:
        results: list[InstallResult] = []
        for slug in slugs:
            try:
                results.append(self.install(slug, options))
            except SkillportError as e:
                logger.warning("install %s failed: %s", slug, e)
                results.append(InstallResult(slug=slug, skill=self.store.get_skill_by_slug(slug), error=e))
        return results

    def uninstall(self, slug: str, locations: list[InstallLocation]) -> None:
        skill = self._require_skill(slug)
        if not locations:
            return
        self.installer.uninstall_from(skill, locations)

    def uninstall_all(self, slug: str) -> None:
        skill = self.store.get_skill_by_slug(slug)
        if skill is None:
            return
        self.installer.uninstall_all(skill)

    def get_install_locations(self, slug: str) -> list[InstallLocation]:
        skill = self.store.get_skill_by_slug(slug)
        if skill is None:
            return []
        return self.installer.get_install_locations(skill.id)

    def get_installed_skills_summary(self) -> list[InstalledSkillSummary]:
        grouped: dict[str, InstalledSkillSummary] = {}
        for record in self.store.get_all_installations():
            summary = grouped.get(record.skill_id)
            if summary is None:
                skill = self.store.get_skill(record.skill_id)
                if skill is None:
                    continue
                summary = InstalledSkillSummary(slug=skill.slug, title=skill.title)
                grouped[record.skill_id] = summary
            scopes = summary.locations.setdefault(record.platform, [])
            if record.scope not in scopes:
                scopes.append(record.scope)
        return sorted(grouped.values(), key=lambda s: s.slug)

    def detect_platforms(self) -> list[DetectedPlatform]:
        out: list[DetectedPlatform] = []
        for platform in all_platforms():
            out.append(
                DetectedPlatform(
                    id=platform,
                    name=info(platform).name,
                    path=self.installer.paths.skills_dir(platform, SCOPE_GLOBAL),
                    detected=detect_platform(platform),
                )
            )
        return out
