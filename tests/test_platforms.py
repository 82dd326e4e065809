import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from skillport.errors import InvalidScopeError
from skillport.paths import PathResolver
from skillport.models import Skill, Source
from skillport.platforms import (
    INVALID_PLATFORM,
    PLATFORMS,
    PlatformInfo,
    all_platforms,
    info,
    is_valid,
    parse_platforms,
    platform_from_string,
    platform_from_string_or_alias,
)
from skillport.scopes import (
    SCOPE_GLOBAL,
    SCOPE_PROJECT,
    InstallLocation,
    all_scopes,
    new_install_location,
    parse_scopes,
    resolve_scope,
    scope_display_name,
    skill_path_for_scope,
)


class TestPlatformRegistry(unittest.TestCase):
    def test_registry_has_every_platform_in_display_order(self) -> None:
        platforms = all_platforms()
        self.assertEqual(len(platforms), 33)
        self.assertEqual(platforms[:3], ["claude", "cursor", "copilot"])
        self.assertEqual(len(set(platforms)), len(platforms))

    def test_every_platform_has_a_skills_path(self) -> None:
        for platform, meta in PLATFORMS.items():
            self.assertTrue(meta.name, platform)
            self.assertTrue(meta.skills_path, platform)

    def test_unknown_platform_is_empty_not_an_error(self) -> None:
        self.assertFalse(is_valid("vim"))
        self.assertEqual(info("vim"), PlatformInfo())
        self.assertEqual(platform_from_string("vim"), INVALID_PLATFORM)
        self.assertEqual(platform_from_string(" claude "), "claude")

    def test_aliases_resolve_only_through_alias_lookup(self) -> None:
        self.assertEqual(platform_from_string("claude-code"), INVALID_PLATFORM)
        self.assertEqual(platform_from_string_or_alias("claude-code"), "claude")
        self.assertEqual(platform_from_string_or_alias("gemini"), "gemini-cli")
        self.assertEqual(platform_from_string_or_alias("cursor"), "cursor")
        self.assertEqual(platform_from_string_or_alias("nope"), INVALID_PLATFORM)

    def test_parse_platforms_drops_unknown_and_duplicates(self) -> None:
        self.assertEqual(parse_platforms(["cursor", "bogus", "claude", "cursor", ""]), ["cursor", "claude"])
        self.assertEqual(parse_platforms(None), [])


class TestScopes(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.addCleanup(self._td.cleanup)
        root = Path(self._td.name).resolve()
        self.home = root / "home"
        self.project = root / "project"
        self.home.mkdir()
        self.project.mkdir()

        env = patch.dict(os.environ, {"HOME": str(self.home)})
        env.start()
        self.addCleanup(env.stop)
        old_cwd = os.getcwd()
        os.chdir(self.project)
        self.addCleanup(os.chdir, old_cwd)

    def test_resolve_scope(self) -> None:
        self.assertEqual(all_scopes(), [SCOPE_GLOBAL, SCOPE_PROJECT])
        self.assertEqual(resolve_scope(SCOPE_GLOBAL), str(self.home))
        self.assertEqual(resolve_scope(SCOPE_PROJECT), str(self.project))
        with self.assertRaises(InvalidScopeError):
            resolve_scope("system")

    def test_parse_scopes_rejects_unknown(self) -> None:
        self.assertEqual(parse_scopes(["Project", "global", "project"]), ["project", "global"])
        with self.assertRaises(InvalidScopeError):
            parse_scopes(["everywhere"])
        self.assertEqual(scope_display_name(SCOPE_GLOBAL), "Global (Home)")

    def test_skill_path_for_scope(self) -> None:
        self.assertEqual(
            skill_path_for_scope("claude", SCOPE_GLOBAL, "teach"),
            str(self.home / ".claude" / "skills" / "teach"),
        )
        self.assertEqual(
            skill_path_for_scope("copilot", SCOPE_PROJECT, "teach"),
            str(self.project / ".github" / "skills" / "teach"),
        )
        self.assertEqual(skill_path_for_scope("bogus", SCOPE_GLOBAL, "teach"), "")

    def test_location_captures_base_path_at_construction(self) -> None:
        loc = new_install_location("cursor", SCOPE_PROJECT)
        os.chdir(self.home)
        self.assertEqual(loc.base_path, str(self.project))
        self.assertEqual(loc.skill_path("teach"), str(self.project / ".cursor" / "skills" / "teach"))

    def test_location_equality_ignores_base_path(self) -> None:
        a = InstallLocation(platform="claude", scope=SCOPE_PROJECT, base_path="/a")
        b = InstallLocation(platform="claude", scope=SCOPE_PROJECT, base_path="/b")
        self.assertEqual(a, b)
        self.assertEqual(len({a, b}), 1)
        self.assertNotEqual(a.key, b.key)
        self.assertEqual(a.id, "claude:project")

    def test_location_without_skills_path(self) -> None:
        loc = InstallLocation(platform="bogus", scope=SCOPE_GLOBAL, base_path=str(self.home))
        self.assertEqual(loc.skills_dir(), "")
        self.assertEqual(loc.skill_path("teach"), "")


class TestPathResolver(unittest.TestCase):
    def test_source_path_uses_skill_md_directory(self) -> None:
        paths = PathResolver("/data")
        source = Source.from_owner_repo("acme/skills")
        skill = Skill(id="s1", slug="teach", file_path="skills/teach/SKILL.md", source_id=source.id)
        self.assertEqual(paths.source_path_for(skill, source), "/data/repositories/acme/skills/skills/teach")
        self.assertEqual(paths.source_path("acme", "skills", "SKILL.md"), "/data/repositories/acme/skills")

    def test_local_source_path_strips_skill_md(self) -> None:
        paths = PathResolver("/data")
        self.assertEqual(paths.local_source_path(Skill(id="x", slug="x", file_path="/s/x/SKILL.md")), "/s/x")
        self.assertEqual(paths.local_source_path(Skill(id="x", slug="x", file_path="/s/x")), "/s/x")

    def test_invalid_source_string(self) -> None:
        with self.assertRaises(ValueError):
            Source.from_owner_repo("acme")
        with self.assertRaises(ValueError):
            Source.from_owner_repo("acme/skills/extra")


if __name__ == "__main__":
    unittest.main()
