"""
Tests for tar container assembly.
"""

import os
import shutil
import tarfile
import tempfile
import unittest
from pathlib import Path

from site_archive.archive_builder import ArchiveBuilder, ComponentStats
from site_archive.errors import (
    ArchiveIOError,
    NothingSelectedError,
    SensitiveDataFoundError,
)
from site_archive.models import Component
from site_archive.path_matcher import LiteralRule, PathMatcher, settings_override_rule


def _write_tree(base, files):
    for relative_path, content in files.items():
        full_path = Path(base) / relative_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_text(content, encoding="utf-8")


class TestArchiveBuilder(unittest.TestCase):
    """Test walking components into a container."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.source = os.path.join(self.temp_dir, "source")
        self.container_path = os.path.join(self.temp_dir, "archive.tar")
        self.builder = ArchiveBuilder()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _names(self):
        with tarfile.open(self.container_path) as tar:
            return tar.getnames()

    def test_iter_entries_sorted_and_pruned(self):
        _write_tree(
            self.source,
            {
                "b.txt": "b",
                "a/2.txt": "2",
                "a/1.txt": "1",
                "css/x.css": "x",
                "c.txt": "c",
            },
        )
        stats = ComponentStats("files")
        matcher = PathMatcher([LiteralRule("css")])

        entries = list(self.builder.iter_entries(self.source, matcher, stats))

        self.assertEqual(
            [relative for _, relative, _ in entries],
            ["a/1.txt", "a/2.txt", "b.txt", "c.txt"],
        )
        self.assertEqual(stats.excluded_paths, 1)

    def test_add_component_under_namespace(self):
        _write_tree(self.source, {"a.txt": "hello", "sub/b.txt": "world"})
        component = Component(name="files", root_path=self.source)

        with self.builder.open_container(self.container_path) as container:
            stats = self.builder.add(container, component)

        self.assertEqual(self._names(), ["files", "files/a.txt", "files/sub/b.txt"])
        self.assertEqual(stats.total_files, 2)
        self.assertEqual(stats.total_size, 10)

        with tarfile.open(self.container_path) as tar:
            folder = tar.getmember("files")
            self.assertTrue(folder.isdir())
            self.assertEqual(folder.mode, 0o755)
            self.assertEqual(tar.extractfile("files/a.txt").read(), b"hello")

    def test_excluded_directory_contents_never_reach_container(self):
        _write_tree(
            self.source,
            {"keep.txt": "k", "css/x.css": "x", "styles/deep/y.css": "y"},
        )
        component = Component(
            name="files",
            root_path=self.source,
            exclude_rules=(LiteralRule("css"), LiteralRule("styles")),
        )

        with self.builder.open_container(self.container_path) as container:
            stats = self.builder.add(container, component)

        self.assertEqual(self._names(), ["files", "files/keep.txt"])
        self.assertEqual(stats.excluded_paths, 2)

    @unittest.skipIf(not hasattr(os, "symlink"), "symlinks not supported")
    def test_symlinks_stored_without_following(self):
        _write_tree(self.source, {"real/data.txt": "data"})
        outside = os.path.join(self.temp_dir, "outside")
        _write_tree(outside, {"secret.txt": "secret"})
        os.symlink(outside, os.path.join(self.source, "link"))

        component = Component(name="code", root_path=self.source)
        with self.builder.open_container(self.container_path) as container:
            stats = self.builder.add(container, component)

        self.assertEqual(stats.symlinks, 1)
        with tarfile.open(self.container_path) as tar:
            link = tar.getmember("code/link")
            self.assertTrue(link.issym())
            self.assertEqual(link.linkname, outside)
            self.assertNotIn("code/link/secret.txt", tar.getnames())

    def test_settings_guard_aborts(self):
        _write_tree(
            self.source,
            {
                "index.php": "<?php",
                "sites/default/settings.php": "<?php $databases['default'] = [];",
            },
        )
        component = Component(name="code", root_path=self.source, scan_settings=True)

        with self.assertRaises(SensitiveDataFoundError):
            with self.builder.open_container(self.container_path) as container:
                self.builder.add(container, component)

    def test_settings_guard_skipped_for_excluded_override(self):
        _write_tree(
            self.source,
            {
                "sites/default/settings.php": "<?php include 'settings.local.php';",
                "sites/default/settings.local.php": "<?php $databases['a'] = 1;",
            },
        )
        component = Component(
            name="code",
            root_path=self.source,
            exclude_rules=(settings_override_rule(""),),
            scan_settings=True,
        )

        with self.builder.open_container(self.container_path) as container:
            self.builder.add(container, component)

        names = self._names()
        self.assertIn("code/sites/default/settings.php", names)
        self.assertNotIn("code/sites/default/settings.local.php", names)

    def test_settings_guard_not_run_without_scan_flag(self):
        _write_tree(
            self.source,
            {"sites/default/settings.php": "<?php $databases['default'] = [];"},
        )
        component = Component(name="files", root_path=self.source)

        with self.builder.open_container(self.container_path) as container:
            self.builder.add(container, component)

        self.assertIn("files/sites/default/settings.php", self._names())

    def test_missing_component_root(self):
        component = Component(name="files", root_path=os.path.join(self.temp_dir, "x"))
        with self.assertRaises(ArchiveIOError):
            with self.builder.open_container(self.container_path) as container:
                self.builder.add(container, component)

    def test_unwritable_container(self):
        with self.assertRaises(ArchiveIOError):
            with self.builder.open_container(
                os.path.join(self.temp_dir, "missing", "archive.tar")
            ):
                pass

    def test_build_keeps_component_order(self):
        code_root = os.path.join(self.temp_dir, "code")
        files_root = os.path.join(self.temp_dir, "files")
        _write_tree(code_root, {"index.php": "<?php"})
        _write_tree(files_root, {"a.png": "png"})

        results = self.builder.build(
            self.container_path,
            [
                Component(name="code", root_path=code_root),
                Component(name="files", root_path=files_root),
            ],
        )

        self.assertEqual(list(results), ["code", "files"])
        self.assertEqual(
            self._names(), ["code", "code/index.php", "files", "files/a.png"]
        )

    def test_build_finalize_appends_last(self):
        files_root = os.path.join(self.temp_dir, "files")
        _write_tree(files_root, {"a.png": "png"})
        manifest = os.path.join(self.temp_dir, "MANIFEST.yml")
        with open(manifest, "w", encoding="utf-8") as f:
            f.write("formatversion: '1.0'\n")
        seen = []

        def finalize(container):
            seen.append(container.getnames())
            self.builder.add_file(container, manifest, "MANIFEST.yml")

        self.builder.build(
            self.container_path,
            [Component(name="files", root_path=files_root)],
            finalize=finalize,
        )

        self.assertEqual(seen, [["files", "files/a.png"]])
        self.assertEqual(self._names(), ["files", "files/a.png", "MANIFEST.yml"])

    def test_build_requires_components(self):
        with self.assertRaises(NothingSelectedError):
            self.builder.build(self.container_path, [])

    def test_add_file(self):
        manifest = os.path.join(self.temp_dir, "MANIFEST.yml")
        with open(manifest, "w", encoding="utf-8") as f:
            f.write("formatversion: '1.0'\n")

        with self.builder.open_container(self.container_path) as container:
            self.builder.add_file(container, manifest, "MANIFEST.yml")

        self.assertEqual(self._names(), ["MANIFEST.yml"])

    def test_add_missing_file(self):
        with self.assertRaises(ArchiveIOError):
            with self.builder.open_container(self.container_path) as container:
                self.builder.add_file(
                    container, os.path.join(self.temp_dir, "nope"), "nope"
                )


class TestComponentStats(unittest.TestCase):
    """Test component statistics."""

    def test_to_dict(self):
        stats = ComponentStats("code")
        stats.total_files = 3
        self.assertEqual(
            stats.to_dict(),
            {
                "total_files": 3,
                "total_size": 0,
                "excluded_paths": 0,
                "symlinks": 0,
                "skipped_special": 0,
            },
        )


if __name__ == "__main__":
    unittest.main()
