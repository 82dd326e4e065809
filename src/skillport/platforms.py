"""
Registry of supported AI tools ("platforms") and where each one looks for skills.

Every platform shares the same schema; all differences between tools are data
in the ``PLATFORMS`` table below.
"""

from __future__ import annotations

from dataclasses import dataclass, field

Platform = str

INVALID_PLATFORM: Platform = ""
DEFAULT_PLATFORM: Platform = "claude"


@dataclass(frozen=True)
class PlatformInfo:
    name: str = ""
    skills_path: str = ""  # relative to the scope base dir, e.g. ".claude/skills"

    # Detection hints
    command: str = ""  # CLI command looked up on PATH
    project_dir: str = ""  # project-level marker dir, e.g. ".claude"
    global_dir: str = ""  # e.g. "~/.claude/skills/"
    aliases: tuple[str, ...] = field(default_factory=tuple)
    platform_specific_paths: tuple[str, ...] = field(default_factory=tuple)


def _p(name: str, skills_path: str, command: str, project_dir: str, global_dir: str, **kw) -> PlatformInfo:
    return PlatformInfo(
        name=name,
        skills_path=skills_path,
        command=command,
        project_dir=project_dir,
        global_dir=global_dir,
        **kw,
    )


# Insertion order is display order.
PLATFORMS: dict[Platform, PlatformInfo] = {
    "claude": _p(
        "Claude Code", ".claude/skills", "claude", ".claude", "~/.claude/skills/", aliases=("claude-code",)
    ),
    "cursor": _p(
        "Cursor",
        ".cursor/skills",
        "cursor",
        ".cursor",
        "~/.cursor/skills/",
        platform_specific_paths=("/Applications/Cursor.app",),
    ),
    "copilot": _p(
        "GitHub Copilot", ".github/skills", "", ".github", "~/.copilot/skills/", aliases=("github-copilot",)
    ),
    "codex": _p("OpenAI Codex", ".codex/skills", "codex", ".codex", "~/.codex/skills/"),
    "opencode": _p("OpenCode", ".opencode/skills", "opencode", ".opencode", "~/.config/opencode/skills/"),
    "windsurf": _p("Windsurf", ".windsurf/skills", "windsurf", ".windsurf", "~/.codeium/windsurf/skills/"),
    "amp": _p("Amp", ".agents/skills", "amp", ".agents", "~/.config/agents/skills/"),
    "kimi-cli": _p(
        "Kimi Code CLI", ".agents/skills", "kimi-cli", ".agents", "~/.config/agents/skills/", aliases=("kimi",)
    ),
    "antigravity": _p(
        "Antigravity", ".agent/skills", "antigravity", ".agent", "~/.gemini/antigravity/global_skills/"
    ),
    "moltbot": _p("Moltbot", "skills", "moltbot", "skills", "~/.moltbot/skills/"),
    "cline": _p("Cline", ".cline/skills", "cline", ".cline", "~/.cline/skills/"),
    "codebuddy": _p("CodeBuddy", ".codebuddy/skills", "codebuddy", ".codebuddy", "~/.codebuddy/skills/"),
    "command-code": _p(
        "Command Code", ".commandcode/skills", "command-code", ".commandcode", "~/.commandcode/skills/"
    ),
    "continue": _p("Continue", ".continue/skills", "continue", ".continue", "~/.continue/skills/"),
    "crush": _p("Crush", ".crush/skills", "crush", ".crush", "~/.config/crush/skills/"),
    "droid": _p("Droid", ".factory/skills", "droid", ".factory", "~/.factory/skills/"),
    "gemini-cli": _p("Gemini CLI", ".gemini/skills", "gemini", ".gemini", "~/.gemini/skills/", aliases=("gemini",)),
    "goose": _p("Goose", ".goose/skills", "goose", ".goose", "~/.config/goose/skills/"),
    "junie": _p("Junie", ".junie/skills", "junie", ".junie", "~/.junie/skills/"),
    "kilo": _p("Kilo Code", ".kilocode/skills", "kilo", ".kilocode", "~/.kilocode/skills/"),
    "kiro-cli": _p("Kiro CLI", ".kiro/skills", "kiro-cli", ".kiro", "~/.kiro/skills/", aliases=("kiro",)),
    "kode": _p("Kode", ".kode/skills", "kode", ".kode", "~/.kode/skills/"),
    "mcpjam": _p("MCPJam", ".mcpjam/skills", "mcpjam", ".mcpjam", "~/.mcpjam/skills/"),
    "mux": _p("Mux", ".mux/skills", "mux", ".mux", "~/.mux/skills/"),
    "openhands": _p("OpenHands", ".openhands/skills", "openhands", ".openhands", "~/.openhands/skills/"),
    "pi": _p("Pi", ".pi/skills", "pi", ".pi", "~/.pi/agent/skills/"),
    "qoder": _p("Qoder", ".qoder/skills", "qoder", ".qoder", "~/.qoder/skills/"),
    "qwen-code": _p("Qwen Code", ".qwen/skills", "qwen-code", ".qwen", "~/.qwen/skills/", aliases=("qwen",)),
    "roo": _p("Roo Code", ".roo/skills", "roo", ".roo", "~/.roo/skills/", aliases=("roo-code",)),
    "trae": _p("Trae", ".trae/skills", "trae", ".trae", "~/.trae/skills/"),
    "zencoder": _p("Zencoder", ".zencoder/skills", "zencoder", ".zencoder", "~/.zencoder/skills/"),
    "neovate": _p("Neovate", ".neovate/skills", "neovate", ".neovate", "~/.neovate/skills/"),
    "pochi": _p("Pochi", ".pochi/skills", "pochi", ".pochi", "~/.pochi/skills/"),
}

_EMPTY_INFO = PlatformInfo()


def all_platforms() -> list[Platform]:
    return list(PLATFORMS)


def is_valid(platform: str) -> bool:
    return platform in PLATFORMS


def info(platform: str) -> PlatformInfo:
    # Unknown platforms get an empty record so callers iterating the registry never have to guard.
    return PLATFORMS.get(platform, _EMPTY_INFO)


def platform_from_string(value: str) -> Platform:
    value = (value or "").strip()
    return value if is_valid(value) else INVALID_PLATFORM


def platform_from_string_or_alias(value: str) -> Platform:
    direct = platform_from_string(value)
    if direct:
        return direct
    value = (value or "").strip()
    for platform, meta in PLATFORMS.items():
        if value in meta.aliases:
            return platform
    return INVALID_PLATFORM


def parse_platforms(values: list[str] | tuple[str, ...] | None) -> list[Platform]:
    """Keep the known platform ids from ``values`` (in order, without duplicates)."""
    out: list[Platform] = []
    for raw in values or ():
        platform = platform_from_string(raw)
        if platform and platform not in out:
            out.append(platform)
    return out
