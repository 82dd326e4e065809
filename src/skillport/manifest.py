"""
Project manifest (``skillport.json``).

A project can commit the list of skills it expects so that another checkout can
recreate the same project-scope links with ``skillport sync``::

    {"version": 1, "skills": {"teach": "acme/skills", "notes": "local"}}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import SkillportError
from .scopes import SCOPE_PROJECT
from .service import InstallOptions, InstallResult, InstallService
from .store import Store, _write_json_atomic

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "skillport.json"
MANIFEST_VERSION = 1
LOCAL_SOURCE = "local"


@dataclass
class Manifest:
    version: int = MANIFEST_VERSION
    skills: dict[str, str] = field(default_factory=dict)  # slug -> "owner/repo" | "local"


@dataclass(frozen=True)
class SyncReport:
    results: tuple[InstallResult, ...]
    skipped: tuple[str, ...]


def manifest_path(project_dir: Path | str) -> Path:
    return Path(project_dir) / MANIFEST_FILENAME


def read_manifest(project_dir: Path | str) -> Manifest | None:
    path = manifest_path(project_dir)
    if not path.exists():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise SkillportError(f"Could not read {path}: {e}") from e
    if not isinstance(raw, dict):
        raise SkillportError(f"Invalid manifest {path}: expected a JSON object.")

    skills: dict[str, str] = {}
    raw_skills = raw.get("skills")
    if isinstance(raw_skills, dict):
        for slug, source in raw_skills.items():
            if isinstance(slug, str) and isinstance(source, str) and slug.strip():
                skills[slug.strip()] = source.strip()
    version = raw.get("version")
    return Manifest(version=version if isinstance(version, int) else MANIFEST_VERSION, skills=skills)


def write_manifest(project_dir: Path | str, manifest: Manifest) -> Path:
    path = manifest_path(project_dir)
    payload: dict[str, Any] = {
        "version": manifest.version,
        "skills": {k: manifest.skills[k] for k in sorted(manifest.skills)},
    }
    try:
        _write_json_atomic(path, payload)
    except OSError as e:
        raise SkillportError(f"Could not write {path}: {e}") from e
    return path


def collect_project_manifest(store: Store, project_dir: Path | str) -> Manifest:
    """Build a manifest from the project-scope installations recorded for ``project_dir``."""
    base_path = str(Path(project_dir))
    manifest = Manifest()
    for record in store.get_project_installations(base_path):
        skill = store.get_skill(record.skill_id)
        if skill is None:
            continue
        if skill.is_local:
            manifest.skills[skill.slug] = LOCAL_SOURCE
        elif skill.source_id:
            manifest.skills[skill.slug] = skill.source_id
    return manifest


def sync_manifest(service: InstallService, manifest: Manifest, *, platforms: tuple[str, ...] = ()) -> SyncReport:
    """Install every manifest entry at project scope; unknown or mismatched entries are skipped."""
    store = service.store
    to_install: list[str] = []
    skipped: list[str] = []
    for slug in sorted(manifest.skills):
        expected = manifest.skills[slug]
        skill = store.get_skill_by_slug(slug)
        if skill is None:
            logger.warning("manifest: skill %r is not known here; skipping", slug)
            skipped.append(slug)
            continue
        actual = LOCAL_SOURCE if skill.is_local else (skill.source_id or "")
        if actual != expected:
            logger.warning("manifest: %r comes from %r here, manifest expects %r; skipping", slug, actual, expected)
            skipped.append(slug)
            continue
        to_install.append(slug)

    options = InstallOptions(platforms=platforms, scopes=(SCOPE_PROJECT,))
    results = service.install_batch(to_install, options)
    return SyncReport(results=tuple(results), skipped=tuple(skipped))
