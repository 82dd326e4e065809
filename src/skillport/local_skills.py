"""
Discovery and registration of skills that live on local disk rather than in a
cloned repository.

A local skill is any directory holding a ``SKILL.md``. Layouts supported::

    skills/<name>/SKILL.md
    skills/<category>/<name>/SKILL.md

The directory name is the slug. Title and description come from the YAML
front matter of ``SKILL.md`` when present.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import InvalidSkillError, SkillportError, SourceNotFoundError
from .models import Skill, Source
from .paths import PathResolver

logger = logging.getLogger(__name__)

SKILL_FILENAME = "SKILL.md"
LOCAL_ID_PREFIX = "local-"


@dataclass(frozen=True)
class LocalSkill:
    slug: str
    path: Path  # skill directory
    title: str = ""
    description: str = ""


@dataclass(frozen=True)
class RegisterResult:
    added: tuple[str, ...]
    updated: tuple[str, ...]
    skipped: tuple[str, ...]


def parse_front_matter(text: str) -> dict[str, Any]:
    """Return the YAML mapping between the leading ``---`` fences, or {} when there is none."""
    content = text.lstrip("\ufeff").strip()
    if not content.startswith("---"):
        return {}
    end = content.find("\n---", 3)
    if end == -1:
        raise InvalidSkillError("SKILL.md front matter is not closed (missing second ---).")

    try:
        data = yaml.safe_load(content[3:end])
    except yaml.YAMLError as e:
        raise InvalidSkillError(f"Invalid YAML front matter: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidSkillError("SKILL.md front matter must be a mapping.")
    return data


def _str_field(data: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def load_local_skill(skill_dir: Path) -> LocalSkill:
    skill_md = skill_dir / SKILL_FILENAME
    try:
        text = skill_md.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidSkillError(f"Could not read {skill_md}: {e}") from e

    meta = parse_front_matter(text)
    return LocalSkill(
        slug=skill_dir.name,
        path=skill_dir,
        title=_str_field(meta, "title", "name") or skill_dir.name,
        description=_str_field(meta, "description"),
    )


def _candidate_dirs(root: Path) -> list[Path]:
    out: list[Path] = []
    for child in sorted(root.iterdir()):
        if child.name.startswith(".") or not child.is_dir():
            continue
        if (child / SKILL_FILENAME).is_file():
            out.append(child)
            continue
        # One level of grouping: <category>/<name>/SKILL.md
        for grandchild in sorted(child.iterdir()):
            if grandchild.name.startswith(".") or not grandchild.is_dir():
                continue
            if (grandchild / SKILL_FILENAME).is_file():
                out.append(grandchild)
    return out


def scan_local_skills(root: Path | str, skipped: list[str] | None = None) -> list[LocalSkill]:
    root = Path(root).expanduser()
    if not root.is_dir():
        return []

    found: dict[str, LocalSkill] = {}
    for skill_dir in _candidate_dirs(root):
        try:
            skill = load_local_skill(skill_dir)
        except InvalidSkillError as e:
            logger.warning("skipping %s: %s", skill_dir, e)
            if skipped is not None:
                skipped.append(str(skill_dir))
            continue
        if skill.slug in found:
            logger.warning("duplicate local skill %r at %s (keeping %s)", skill.slug, skill_dir, found[skill.slug].path)
            if skipped is not None:
                skipped.append(str(skill_dir))
            continue
        found[skill.slug] = skill
    return [found[k] for k in sorted(found)]


def register_local_skills(store: Any, root: Path | str, *, id_prefix: str = LOCAL_ID_PREFIX) -> RegisterResult:
    """Upsert every skill found under ``root`` into ``store`` as a local skill."""
    added: list[str] = []
    updated: list[str] = []
    skipped: list[str] = []

    for local in scan_local_skills(root, skipped):
        skill_id = id_prefix + local.slug
        existing = store.get_skill(skill_id)
        other = store.get_skill_by_slug(local.slug)
        if other is not None and other.id != skill_id:
            logger.warning("slug %r already belongs to %s; not registering %s", local.slug, other.id, local.path)
            skipped.append(str(local.path))
            continue

        skill = Skill(
            id=skill_id,
            slug=local.slug,
            title=local.title,
            description=local.description,
            file_path=str(local.path),
            is_local=True,
        )
        if existing is not None:
            skill = replace(skill, is_installed=existing.is_installed)
        try:
            store.upsert_skill(skill)
        except SkillportError as e:
            logger.warning("could not register %s: %s", local.slug, e)
            skipped.append(str(local.path))
            continue
        (updated if existing is not None else added).append(local.slug)

    return RegisterResult(added=tuple(added), updated=tuple(updated), skipped=tuple(skipped))


def repository_skill_id(source: Source, slug: str) -> str:
    return f"{source.id}:{slug}"


def register_repository_skills(store: Any, paths: PathResolver, source: Source) -> RegisterResult:
    """
    Register the skills of an already-cloned repository.

    The checkout must already exist at ``<repositories>/<owner>/<repo>``; skills
    are recorded with ``file_path`` relative to the checkout so that
    ``PathResolver.source_path`` can find them again.
    """
    repo_dir = Path(paths.repositories_dir()) / source.owner / source.repo
    if not repo_dir.is_dir():
        raise SourceNotFoundError(f"Repository checkout not found: {repo_dir}")

    added: list[str] = []
    updated: list[str] = []
    skipped: list[str] = []

    store.upsert_source(source)
    for found in scan_local_skills(repo_dir, skipped):
        skill_id = repository_skill_id(source, found.slug)
        other = store.get_skill_by_slug(found.slug)
        if other is not None and other.id != skill_id:
            logger.warning("slug %r already belongs to %s; not registering %s", found.slug, other.id, found.path)
            skipped.append(str(found.path))
            continue

        existing = store.get_skill(skill_id)
        skill = Skill(
            id=skill_id,
            slug=found.slug,
            title=found.title,
            description=found.description,
            file_path=(found.path.relative_to(repo_dir) / SKILL_FILENAME).as_posix(),
            source_id=source.id,
            is_installed=existing.is_installed if existing is not None else False,
        )
        store.upsert_skill(skill)
        (updated if existing is not None else added).append(found.slug)

    return RegisterResult(added=tuple(added), updated=tuple(updated), skipped=tuple(skipped))
