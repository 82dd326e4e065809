from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

from platformdirs import user_config_path, user_data_path

from .errors import SkillportError

APP_NAME = "skillport"
DEFAULT_LOG_LEVEL = "WARNING"
STATE_FILENAME = "state.json"
LOCAL_SKILLS_DIRNAME = "skills"


@dataclass(frozen=True)
class Config:
    base_dir: str | None = None  # data root; None = platform data dir
    log_level: str = DEFAULT_LOG_LEVEL
    backup_existing: bool = False  # `link` moves an occupying file/dir aside instead of failing


def config_path(path_override: str | Path | None = None) -> Path:
    if path_override is not None:
        return Path(path_override).expanduser()
    if env := os.getenv("SKILLPORT_CONFIG_PATH"):
        return Path(env).expanduser()
    return user_config_path(APP_NAME) / "config.json"


def load_config(path_override: str | Path | None = None) -> Config:
    path = config_path(path_override)
    cfg = Config()
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SkillportError(f"Could not read config {path}: {e}") from e
        if isinstance(raw, dict):
            allowed = {f.name for f in fields(Config)}
            filtered: dict[str, Any] = {k: v for k, v in raw.items() if k in allowed}
            cfg = Config(**filtered)

    # Environment wins over the file.
    if env := os.getenv("SKILLPORT_HOME"):
        cfg = replace(cfg, base_dir=env)
    if env := os.getenv("SKILLPORT_LOG_LEVEL"):
        cfg = replace(cfg, log_level=env)
    return cfg


def save_config(cfg: Config, path_override: str | Path | None = None) -> Path:
    path = config_path(path_override)
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    tmp.replace(path)
    return path


def base_dir(cfg: Config) -> Path:
    if cfg.base_dir:
        return Path(cfg.base_dir).expanduser()
    return user_data_path(APP_NAME)


def state_path(cfg: Config) -> Path:
    return base_dir(cfg) / STATE_FILENAME


def local_skills_dir(cfg: Config) -> Path:
    return base_dir(cfg) / LOCAL_SKILLS_DIRNAME
