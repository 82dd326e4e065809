import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from skillport.errors import AlreadyExistsError, NotASymlinkError, SymlinkFailedError
from skillport.symlinks import SymlinkManager, backup_path


class TestSymlinkManager(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.addCleanup(self._td.cleanup)
        self.root = Path(self._td.name)
        self.src_a = self.root / "a"
        self.src_b = self.root / "b"
        self.src_a.mkdir()
        self.src_b.mkdir()
        self.links = SymlinkManager()

    def test_create_makes_parents_and_stores_source_verbatim(self) -> None:
        target = self.root / "tool" / "skills" / "teach"
        self.links.create("../../a", str(target))
        self.assertTrue(target.is_symlink())
        self.assertEqual(os.readlink(target), "../../a")
        self.assertTrue(self.links.verify(str(target), "../../a"))

    def test_create_replaces_existing_symlink(self) -> None:
        target = str(self.root / "link")
        self.links.create(str(self.src_a), target)
        self.links.create(str(self.src_b), target)
        self.assertEqual(self.links.read_link(target), str(self.src_b))

    def test_create_refuses_to_clobber_regular_file(self) -> None:
        target = self.root / "occupied"
        target.write_text("keep me", encoding="utf-8")
        with self.assertRaises(AlreadyExistsError):
            self.links.create(str(self.src_a), str(target))
        self.assertFalse(target.is_symlink())
        self.assertEqual(target.read_text(encoding="utf-8"), "keep me")
        self.assertFalse(os.path.lexists(backup_path(str(target))))

    def test_create_with_backup_preserves_original_bytes(self) -> None:
        target = self.root / "occupied"
        target.write_bytes(b"\x00original\xff")
        self.links.create(str(self.src_a), str(target), backup_existing=True)
        self.assertTrue(target.is_symlink())
        self.assertEqual(Path(backup_path(str(target))).read_bytes(), b"\x00original\xff")

    def test_create_with_backup_never_overwrites_an_existing_backup(self) -> None:
        target = self.root / "occupied"
        target.write_text("new", encoding="utf-8")
        Path(backup_path(str(target))).write_text("old", encoding="utf-8")
        with self.assertRaises(AlreadyExistsError):
            self.links.create(str(self.src_a), str(target), backup_existing=True)
        self.assertEqual(target.read_text(encoding="utf-8"), "new")
        self.assertEqual(Path(backup_path(str(target))).read_text(encoding="utf-8"), "old")

    def test_remove(self) -> None:
        target = str(self.root / "link")
        self.links.remove(target)  # absent: no-op
        self.links.create(str(self.src_a), target)
        self.links.remove(target)
        self.assertFalse(os.path.lexists(target))
        with self.assertRaises(NotASymlinkError):
            self.links.remove(str(self.src_a))
        self.assertTrue(self.src_a.is_dir())

    def test_verify_and_read_link_on_non_links(self) -> None:
        self.assertFalse(self.links.verify(str(self.root / "missing"), "x"))
        self.assertFalse(self.links.verify(str(self.src_a), "x"))
        with self.assertRaises(NotASymlinkError):
            self.links.read_link(str(self.src_a))

    def test_dangling_link_still_exists(self) -> None:
        target = str(self.root / "dangling")
        os.symlink(str(self.root / "gone"), target)
        self.assertTrue(self.links.exists(target))
        self.assertTrue(self.links.is_symlink(target))

    def test_backup_restore_cleanup(self) -> None:
        target = self.root / "config"
        target.write_text("v1", encoding="utf-8")
        self.links.create_backup(str(target))
        self.assertFalse(target.exists())

        target.write_text("v2", encoding="utf-8")
        self.links.create_backup(str(target))  # one generation only
        self.assertEqual(target.read_text(encoding="utf-8"), "v2")

        self.links.restore_backup(str(target))
        self.assertEqual(target.read_text(encoding="utf-8"), "v1")
        self.assertFalse(os.path.lexists(backup_path(str(target))))

        with self.assertRaises(SymlinkFailedError):
            self.links.restore_backup(str(target))
        self.links.cleanup_backups(str(target))  # idempotent

    def test_create_backup_ignores_symlinks(self) -> None:
        target = str(self.root / "link")
        self.links.create(str(self.src_a), target)
        self.links.create_backup(target)
        self.assertTrue(os.path.islink(target))
        self.assertFalse(os.path.lexists(backup_path(target)))

    def test_os_errors_are_wrapped(self) -> None:
        with patch("skillport.symlinks.os.symlink", side_effect=PermissionError("denied")):
            with self.assertRaises(SymlinkFailedError) as ctx:
                self.links.create(str(self.src_a), str(self.root / "link"))
        self.assertIsInstance(ctx.exception.__cause__, PermissionError)


if __name__ == "__main__":
    unittest.main()
