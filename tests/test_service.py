import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from skillport.errors import NoLocationsSpecifiedError, NoSourceError, SkillNotFoundError
from skillport.installer import Installer
from skillport.models import Skill, Source
from skillport.paths import PathResolver
from skillport.scopes import SCOPE_GLOBAL, SCOPE_PROJECT, new_install_location
from skillport.service import InstallOptions, InstallService
from skillport.store import JsonStore


class TestInstallService(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.addCleanup(self._td.cleanup)
        root = Path(self._td.name).resolve()
        self.home = root / "home"
        self.project = root / "project"
        self.data = root / "data"
        for d in (self.home, self.project, self.data):
            d.mkdir()

        env = patch.dict(os.environ, {"HOME": str(self.home), "PATH": str(root / "bin")})
        env.start()
        self.addCleanup(env.stop)
        old_cwd = os.getcwd()
        os.chdir(self.project)
        self.addCleanup(os.chdir, old_cwd)

        self.store = JsonStore(self.data / "state.json")
        self.paths = PathResolver(self.data)
        self.service = InstallService(Installer(store=self.store, paths=self.paths, preferences=self.store))

        source = Source.from_owner_repo("acme/skills")
        self.store.upsert_source(source)
        for slug in ("teach", "review"):
            skill = Skill(
                id=f"acme/skills:{slug}",
                slug=slug,
                title=slug.title(),
                file_path=f"skills/{slug}/SKILL.md",
                source_id=source.id,
            )
            Path(self.paths.source_path_for(skill, source)).mkdir(parents=True)
            self.store.upsert_skill(skill)

        self.local_dir = self.data / "skills" / "notes"
        self.local_dir.mkdir(parents=True)
        (self.local_dir / "SKILL.md").write_text("---\nname: notes\n---\n", encoding="utf-8")
        self.store.upsert_skill(
            Skill(id="local-notes", slug="notes", file_path=str(self.local_dir / "SKILL.md"), is_local=True)
        )

    def test_defaults_to_claude_at_global_scope(self) -> None:
        result = self.service.install("teach")
        self.assertTrue(result.ok)
        self.assertEqual([(loc.platform, loc.scope) for loc in result.locations], [("claude", "global")])
        self.assertTrue(result.skill.is_installed)
        self.assertTrue((self.home / ".claude" / "skills" / "teach").is_symlink())

    def test_defaults_to_preferred_tools(self) -> None:
        self.store.set_ai_tools(["cursor", "codex"])
        result = self.service.install("teach")
        self.assertEqual(sorted(loc.platform for loc in result.locations), ["codex", "cursor"])

    def test_explicit_platforms_and_scopes(self) -> None:
        options = InstallOptions(platforms=("cursor", "not-a-tool"), scopes=(SCOPE_GLOBAL, SCOPE_PROJECT))
        result = self.service.install("teach", options)
        self.assertEqual(len(result.locations), 2)
        self.assertTrue((self.project / ".cursor" / "skills" / "teach").is_symlink())

    def test_only_unknown_platforms(self) -> None:
        with self.assertRaises(NoLocationsSpecifiedError):
            self.service.install("teach", InstallOptions(platforms=("not-a-tool",)))

    def test_local_skill_links_its_directory(self) -> None:
        self.service.install("notes")
        self.assertEqual(os.readlink(self.home / ".claude" / "skills" / "notes"), str(self.local_dir))

    def test_skill_without_source(self) -> None:
        self.store.upsert_skill(Skill(id="orphan", slug="orphan"))
        with self.assertRaises(NoSourceError):
            self.service.install("orphan")
        with self.assertRaises(SkillNotFoundError):
            self.service.install("missing")

    def test_batch_keeps_going(self) -> None:
        results = self.service.install_batch(["teach", "missing", "review"])
        self.assertEqual([r.slug for r in results], ["teach", "missing", "review"])
        self.assertEqual([r.ok for r in results], [True, False, True])
        self.assertIsInstance(results[1].error, SkillNotFoundError)
        self.assertIsNone(results[1].skill)

    def test_summary_groups_by_skill_sorted_by_slug(self) -> None:
        self.service.install("teach", InstallOptions(platforms=("claude", "cursor")))
        self.service.install("review", InstallOptions(platforms=("claude",), scopes=("global", "project")))

        summary = self.service.get_installed_skills_summary()
        self.assertEqual([s.slug for s in summary], ["review", "teach"])
        self.assertEqual(summary[0].locations, {"claude": ["global", "project"]})
        self.assertEqual(summary[1].title, "Teach")
        self.assertEqual(sorted(summary[1].locations), ["claude", "cursor"])

    def test_uninstall(self) -> None:
        self.service.install("teach", InstallOptions(platforms=("claude", "cursor")))
        self.service.uninstall("teach", [])  # nothing requested
        self.assertEqual(len(self.service.get_install_locations("teach")), 2)

        self.service.uninstall("teach", [new_install_location("cursor", SCOPE_GLOBAL)])
        self.assertEqual([loc.platform for loc in self.service.get_install_locations("teach")], ["claude"])

        self.service.uninstall_all("teach")
        self.assertEqual(self.service.get_install_locations("teach"), [])
        self.service.uninstall_all("missing")
        self.assertEqual(self.service.get_install_locations("missing"), [])
        with self.assertRaises(SkillNotFoundError):
            self.service.uninstall("missing", [])

    def test_detect_platforms(self) -> None:
        (self.home / ".claude").mkdir()
        (self.project / ".cursor").mkdir()
        detected = {d.id: d for d in self.service.detect_platforms()}

        self.assertEqual(len(detected), 33)
        self.assertTrue(detected["claude"].detected)
        self.assertTrue(detected["cursor"].detected)
        self.assertFalse(detected["windsurf"].detected)
        self.assertEqual(detected["claude"].path, str(self.home / ".claude" / "skills"))
        self.assertEqual(detected["claude"].name, "Claude Code")

    def test_detect_platform_by_command(self) -> None:
        def which(cmd: str) -> str | None:
            return "/usr/bin/codex" if cmd == "codex" else None

        with patch("skillport.detect.shutil.which", side_effect=which):
            detected = {d.id: d.detected for d in self.service.detect_platforms()}
        self.assertTrue(detected["codex"])
        self.assertFalse(detected["junie"])

    def test_detect_platform_by_global_dir(self) -> None:
        # Copilot links into .github/skills but keeps its global skills under ~/.copilot.
        (self.home / ".github").mkdir()
        (self.home / ".config" / "opencode").mkdir(parents=True)
        detected = {d.id: d.detected for d in self.service.detect_platforms()}
        self.assertFalse(detected["copilot"])
        self.assertTrue(detected["opencode"])

        (self.home / ".copilot").mkdir()
        detected = {d.id: d.detected for d in self.service.detect_platforms()}
        self.assertTrue(detected["copilot"])


if __name__ == "__main__":
    unittest.main()
