from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import InvalidScopeError
from .platforms import Platform, info

Scope = str

SCOPE_GLOBAL: Scope = "global"
SCOPE_PROJECT: Scope = "project"

_DISPLAY_NAMES = {
    SCOPE_GLOBAL: "Global (Home)",
    SCOPE_PROJECT: "Project (CWD)",
}


def all_scopes() -> list[Scope]:
    return [SCOPE_GLOBAL, SCOPE_PROJECT]


def is_valid_scope(scope: str) -> bool:
    return scope in (SCOPE_GLOBAL, SCOPE_PROJECT)


def scope_display_name(scope: str) -> str:
    return _DISPLAY_NAMES.get(scope, scope)


def parse_scopes(values: list[str] | tuple[str, ...] | None) -> list[Scope]:
    out: list[Scope] = []
    for raw in values or ():
        scope = (raw or "").strip().lower()
        if not is_valid_scope(scope):
            raise InvalidScopeError(f"Invalid installation scope {raw!r}. Expected 'global' or 'project'.")
        if scope not in out:
            out.append(scope)
    return out


def resolve_scope(scope: str) -> str:
    """Return the base directory for ``scope``: home for global, cwd for project."""
    if scope == SCOPE_GLOBAL:
        return str(Path.home())
    if scope == SCOPE_PROJECT:
        return os.getcwd()
    raise InvalidScopeError(f"Invalid installation scope {scope!r}. Expected 'global' or 'project'.")


def skill_path_for_scope(platform: Platform, scope: Scope, slug: str) -> str:
    """Full target path of ``slug`` for a platform/scope, or "" when the platform has no skills dir."""
    skills_path = info(platform).skills_path
    if not skills_path:
        return ""
    return os.path.join(resolve_scope(scope), skills_path, slug)


@dataclass(frozen=True)
class InstallLocation:
    platform: Platform
    scope: Scope
    # Captured at construction so a later chdir does not move the location.
    base_path: str = field(default="", compare=False)

    @property
    def id(self) -> str:
        return f"{self.platform}:{self.scope}"

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.platform, self.scope, self.base_path)

    def skills_dir(self) -> str:
        skills_path = info(self.platform).skills_path
        if not skills_path:
            return ""
        return os.path.join(self.base_path, skills_path)

    def skill_path(self, slug: str) -> str:
        skills_dir = self.skills_dir()
        if not skills_dir:
            return ""
        return os.path.join(skills_dir, slug)

    def __str__(self) -> str:
        return f"{info(self.platform).name or self.platform} - {scope_display_name(self.scope)}"


def new_install_location(platform: Platform, scope: Scope) -> InstallLocation:
    return InstallLocation(platform=platform, scope=scope, base_path=resolve_scope(scope))
