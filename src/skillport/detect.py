from __future__ import annotations

import os
import shutil

from .platforms import Platform, info


def detect_platform(platform: Platform) -> bool:
    """Best-effort check that a tool is present on this machine or in the current project."""
    p = info(platform)
    if not p.skills_path:
        return False

    if p.command and shutil.which(p.command):
        return True

    if p.project_dir and os.path.isdir(os.path.join(os.getcwd(), p.project_dir)):
        return True

    # ~/.claude for "~/.claude/skills/"
    if p.global_dir:
        marker = os.path.dirname(os.path.expanduser(p.global_dir).rstrip("/"))
        if marker != os.path.expanduser("~") and os.path.isdir(marker):
            return True

    for path in p.platform_specific_paths:
        if os.path.exists(os.path.expanduser(path)):
            return True

    return False
