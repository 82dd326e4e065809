from __future__ import annotations

import os
from pathlib import Path

from .models import Skill, Source
from .platforms import Platform, info
from .scopes import Scope, resolve_scope

REPOSITORIES_DIRNAME = "repositories"


class PathResolver:
    """Resolves where skill content lives on disk and where it gets linked to."""

    def __init__(self, base_dir: Path | str) -> None:
        self.base_dir = Path(base_dir).expanduser()

    def repositories_dir(self) -> str:
        return str(self.base_dir / REPOSITORIES_DIRNAME)

    def source_path(self, owner: str, repo: str, skill_file_path: str) -> str:
        # file_path points at SKILL.md (e.g. "skills/my-skill/SKILL.md"); the link source is its directory.
        repo_dir = os.path.join(self.repositories_dir(), owner, repo)
        skill_dir = os.path.dirname(skill_file_path)
        if not skill_dir:
            return repo_dir
        return os.path.join(repo_dir, skill_dir)

    def source_path_for(self, skill: Skill, source: Source) -> str:
        return self.source_path(source.owner, source.repo, skill.file_path)

    def local_source_path(self, skill: Skill) -> str:
        path = os.path.expanduser(skill.file_path)
        if os.path.basename(path) == "SKILL.md":
            return os.path.dirname(path)
        return path

    def skills_dir(self, platform: Platform, scope: Scope) -> str:
        skills_path = info(platform).skills_path
        if not skills_path:
            return ""
        return os.path.join(resolve_scope(scope), skills_path)
