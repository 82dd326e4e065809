"""
Persistence for skills, sources, installation records and user preferences.

``Store`` and ``PreferenceStore`` are the interfaces the installer consumes.
``JsonStore`` implements both on top of a single JSON document that is
rewritten atomically after every mutation.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Protocol

from .errors import StoreError
from .models import InstallationRecord, Skill, Source

logger = logging.getLogger(__name__)

STORE_FILENAME = "state.json"
SCHEMA_VERSION = 1


class Store(Protocol):
    def get_skill(self, skill_id: str) -> Skill | None:
        ...

    def get_skill_by_slug(self, slug: str) -> Skill | None:
        ...

    def get_source(self, source_id: str) -> Source | None:
        ...

    def get_all_skills(self) -> list[Skill]:
        ...

    def set_installed(self, skill_id: str, installed: bool) -> None:
        ...

    def add_installation(self, record: InstallationRecord) -> None:
        ...

    def remove_installation(self, skill_id: str, platform: str, scope: str, base_path: str) -> None:
        ...

    def remove_all_installations(self, skill_id: str) -> None:
        ...

    def get_installations(self, skill_id: str) -> list[InstallationRecord]:
        ...

    def get_all_installations(self) -> list[InstallationRecord]:
        ...

    def has_installations(self, skill_id: str) -> bool:
        ...

    def get_project_installations(self, base_path: str) -> list[InstallationRecord]:
        ...


class PreferenceStore(Protocol):
    def get_ai_tools(self) -> list[str]:
        ...

    def set_ai_tools(self, tools: list[str]) -> None:
        ...


def _write_json_atomic(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    tmp.replace(path)


def _clean_tools(tools: list[str] | tuple[str, ...]) -> list[str]:
    out: list[str] = []
    for tool in tools:
        if not isinstance(tool, str):
            continue
        t = tool.strip()
        if t and t not in out:
            out.append(t)
    return out


class JsonStore:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self._lock = threading.RLock()
        self._skills: dict[str, Skill] = {}
        self._sources: dict[str, Source] = {}
        self._installations: dict[str, InstallationRecord] = {}
        self._ai_tools: list[str] = []
        self._load()

    # -- loading / saving -------------------------------------------------

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read store {self.path}: {e}") from e
        if not isinstance(raw, dict):
            return

        skills = raw.get("skills")
        if isinstance(skills, dict):
            for item in skills.values():
                if isinstance(item, dict) and isinstance(item.get("id"), str) and isinstance(item.get("slug"), str):
                    skill = Skill.from_dict(item)
                    self._skills[skill.id] = skill

        sources = raw.get("sources")
        if isinstance(sources, dict):
            for item in sources.values():
                if isinstance(item, dict) and all(isinstance(item.get(k), str) for k in ("id", "owner", "repo")):
                    source = Source.from_dict(item)
                    self._sources[source.id] = source

        installations = raw.get("installations")
        if isinstance(installations, list):
            for item in installations:
                if not isinstance(item, dict):
                    continue
                if not all(isinstance(item.get(k), str) for k in ("skill_id", "platform", "scope", "base_path")):
                    continue
                record = InstallationRecord.from_dict(item)
                self._installations[record.id] = record

        user_state = raw.get("user_state")
        if isinstance(user_state, dict) and isinstance(user_state.get("ai_tools"), list):
            self._ai_tools = _clean_tools(user_state["ai_tools"])

    def _payload(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "skills": {k: asdict(v) for k, v in sorted(self._skills.items())},
            "sources": {k: asdict(v) for k, v in sorted(self._sources.items())},
            "installations": [asdict(r) for r in self._installations.values()],
            "user_state": {"ai_tools": list(self._ai_tools)},
        }

    @contextmanager
    def _mutate(self) -> Iterator[None]:
        with self._lock:
            snapshot = (
                copy.deepcopy(self._skills),
                copy.deepcopy(self._sources),
                copy.deepcopy(self._installations),
                list(self._ai_tools),
            )
            yield
            try:
                _write_json_atomic(self.path, self._payload())
            except OSError as e:
                self._skills, self._sources, self._installations, self._ai_tools = snapshot
                logger.warning("write to %s failed, in-memory state rolled back", self.path)
                raise StoreError(f"Could not write store {self.path}: {e}") from e

    # -- skills & sources -------------------------------------------------

    def get_skill(self, skill_id: str) -> Skill | None:
        with self._lock:
            skill = self._skills.get(skill_id)
            return replace(skill) if skill else None

    def get_skill_by_slug(self, slug: str) -> Skill | None:
        with self._lock:
            for skill in self._skills.values():
                if skill.slug == slug:
                    return replace(skill)
            return None

    def get_all_skills(self) -> list[Skill]:
        with self._lock:
            return [replace(s) for s in sorted(self._skills.values(), key=lambda s: (s.slug, s.id))]

    def upsert_skill(self, skill: Skill) -> None:
        with self._mutate():
            self._skills[skill.id] = replace(skill)

    def delete_skill(self, skill_id: str) -> None:
        with self._mutate():
            self._skills.pop(skill_id, None)
            for key in [k for k, r in self._installations.items() if r.skill_id == skill_id]:
                del self._installations[key]

    def get_source(self, source_id: str) -> Source | None:
        with self._lock:
            source = self._sources.get(source_id)
            return replace(source) if source else None

    def upsert_source(self, source: Source) -> None:
        with self._mutate():
            self._sources[source.id] = replace(source)

    def set_installed(self, skill_id: str, installed: bool) -> None:
        with self._lock:
            # Unknown ids match no row: nothing to update.
            if skill_id not in self._skills:
                logger.debug("set_installed: no skill %s", skill_id)
                return
            with self._mutate():
                self._skills[skill_id].is_installed = bool(installed)

    # -- installation records ---------------------------------------------

    def add_installation(self, record: InstallationRecord) -> None:
        # Upsert: re-installing to the same location replaces the earlier record.
        with self._mutate():
            self._installations[record.id] = replace(record)

    def remove_installation(self, skill_id: str, platform: str, scope: str, base_path: str) -> None:
        probe = InstallationRecord(skill_id=skill_id, platform=platform, scope=scope, base_path=base_path)
        with self._lock:
            if probe.id not in self._installations:
                return
            with self._mutate():
                del self._installations[probe.id]

    def remove_all_installations(self, skill_id: str) -> None:
        with self._lock:
            keys = [k for k, r in self._installations.items() if r.skill_id == skill_id]
            if not keys:
                return
            with self._mutate():
                for key in keys:
                    del self._installations[key]

    def get_installations(self, skill_id: str) -> list[InstallationRecord]:
        with self._lock:
            return [replace(r) for r in self._installations.values() if r.skill_id == skill_id]

    def get_all_installations(self) -> list[InstallationRecord]:
        with self._lock:
            return [replace(r) for r in self._installations.values()]

    def get_project_installations(self, base_path: str) -> list[InstallationRecord]:
        with self._lock:
            return [
                replace(r) for r in self._installations.values() if r.scope == "project" and r.base_path == base_path
            ]

    def has_installations(self, skill_id: str) -> bool:
        with self._lock:
            return any(r.skill_id == skill_id for r in self._installations.values())

    # -- user preferences -------------------------------------------------

    def get_ai_tools(self) -> list[str]:
        with self._lock:
            return list(self._ai_tools)

    def set_ai_tools(self, tools: list[str]) -> None:
        with self._mutate():
            self._ai_tools = _clean_tools(tools)
