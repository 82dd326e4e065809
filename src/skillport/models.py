from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _filter_fields(cls: type, raw: dict[str, Any]) -> dict[str, Any]:
    allowed = {f.name for f in fields(cls)}
    return {k: v for k, v in raw.items() if k in allowed}


@dataclass
class Skill:
    id: str
    slug: str
    title: str = ""
    description: str = ""
    # Repository skills: path of SKILL.md inside the repo. Local skills: the skill directory.
    file_path: str = ""
    source_id: str | None = None
    is_local: bool = False
    is_installed: bool = False
    updated_at: str = field(default_factory=_utc_now)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Skill":
        return cls(**_filter_fields(cls, raw))


@dataclass
class Source:
    id: str  # owner/repo
    owner: str
    repo: str
    url: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_owner_repo(cls, value: str) -> "Source":
        owner, sep, repo = value.strip().partition("/")
        owner, repo = owner.strip(), repo.strip()
        if not sep or not owner or not repo or "/" in repo:
            raise ValueError(f"Invalid source {value!r}. Expected <owner>/<repo>.")
        return cls(id=f"{owner}/{repo}", owner=owner, repo=repo, url=f"https://github.com/{owner}/{repo}")

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Source":
        return cls(**_filter_fields(cls, raw))


def installation_id(skill_id: str, platform: str, scope: str, base_path: str) -> str:
    data = f"{skill_id}:{platform}:{scope}:{base_path}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]


@dataclass
class InstallationRecord:
    skill_id: str
    platform: str
    scope: str
    base_path: str
    symlink_path: str = ""
    installed_at: str = field(default_factory=_utc_now)

    @property
    def id(self) -> str:
        return installation_id(self.skill_id, self.platform, self.scope, self.base_path)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.platform, self.scope, self.base_path)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "InstallationRecord":
        return cls(**_filter_fields(cls, raw))
