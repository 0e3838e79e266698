"""
Tests for staging directory lifecycle and cleanup.
"""

import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from site_archive.errors import ArchiveIOError
from site_archive.path_utils import ArchivePathGenerator, TempFileManager
from site_archive.staging import PipelineContext, StagingCleaner


class TestStagingCleaner(unittest.TestCase):
    """Test idempotent cleanup."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_removes_files_and_directories(self):
        file_path = os.path.join(self.temp_dir, "MANIFEST.yml")
        dir_path = os.path.join(self.temp_dir, "database")
        os.makedirs(dir_path)
        with open(os.path.join(dir_path, "database.sql"), "w") as f:
            f.write("--")
        with open(file_path, "w") as f:
            f.write("x")

        cleaner = StagingCleaner()
        cleaner.register(file_path)
        cleaner.register(dir_path)
        cleaner.cleanup()

        self.assertFalse(os.path.exists(file_path))
        self.assertFalse(os.path.exists(dir_path))
        self.assertTrue(cleaner.done)

    def test_register_is_deduplicated(self):
        cleaner = StagingCleaner()
        cleaner.register("a")
        cleaner.register("a")
        self.assertEqual(cleaner.paths, ["a"])

    def test_missing_paths_are_ignored(self):
        cleaner = StagingCleaner()
        cleaner.register(os.path.join(self.temp_dir, "never-created"))
        cleaner.cleanup()
        self.assertTrue(cleaner.done)

    def test_cleanup_runs_once(self):
        path = os.path.join(self.temp_dir, "archive.tar")
        cleaner = StagingCleaner()
        cleaner.register(path)
        cleaner.cleanup()

        with open(path, "w") as f:
            f.write("recreated")
        cleaner.cleanup()

        self.assertTrue(os.path.exists(path))

    def test_removal_failure_is_logged_not_raised(self):
        path = os.path.join(self.temp_dir, "locked")
        with open(path, "w") as f:
            f.write("x")
        other = os.path.join(self.temp_dir, "other")
        with open(other, "w") as f:
            f.write("y")

        cleaner = StagingCleaner()
        cleaner.register(path)
        cleaner.register(other)

        real_remove = os.remove

        def flaky_remove(target):
            if target == path:
                raise PermissionError("locked")
            return real_remove(target)

        with patch("site_archive.staging.os.remove", side_effect=flaky_remove):
            cleaner.cleanup()

        self.assertTrue(os.path.exists(path))
        self.assertFalse(os.path.exists(other))


class TestPipelineContext(unittest.TestCase):
    """Test the staging context manager."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.staging_dir = os.path.join(self.temp_dir, "archives", "run", "archive")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_creates_staging_dir_and_cleans_up(self):
        with PipelineContext(self.staging_dir) as context:
            self.assertTrue(os.path.isdir(self.staging_dir))
            artifact = context.staging_path("archive.tar")
            with open(artifact, "w") as f:
                f.write("x")
            context.register_cleanup(artifact)

        self.assertFalse(os.path.exists(artifact))
        self.assertTrue(context.cleaner.done)

    def test_cleans_up_on_error(self):
        with self.assertRaises(RuntimeError):
            with PipelineContext(self.staging_dir) as context:
                artifact = context.staging_path("MANIFEST.yml")
                with open(artifact, "w") as f:
                    f.write("x")
                context.register_cleanup(artifact)
                raise RuntimeError("boom")

        self.assertFalse(os.path.exists(artifact))

    def test_unregistered_artifacts_survive(self):
        with PipelineContext(self.staging_dir) as context:
            artifact = context.staging_path("archive.tar.gz")
            with open(artifact, "w") as f:
                f.write("x")

        self.assertTrue(os.path.exists(artifact))

    @patch("site_archive.staging.atexit")
    def test_atexit_registration(self, mock_atexit):
        with PipelineContext(self.staging_dir) as context:
            mock_atexit.register.assert_called_once_with(context.cleaner.cleanup)
        mock_atexit.unregister.assert_called_once_with(context.cleaner.cleanup)

    def test_unwritable_staging_dir(self):
        blocker = os.path.join(self.temp_dir, "blocker")
        with open(blocker, "w") as f:
            f.write("x")

        with self.assertRaises(ArchiveIOError):
            with PipelineContext(os.path.join(blocker, "archive")):
                pass


class TestArchivePathGenerator(unittest.TestCase):
    """Test staging path generation."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.generator = ArchivePathGenerator()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_layout(self):
        path = self.generator.generate_staging_dir(self.temp_dir)
        parts = os.path.relpath(path, self.temp_dir).split(os.sep)
        self.assertEqual(parts[0], "archives")
        self.assertEqual(parts[2], "archive")
        self.assertRegex(parts[1], r"^\d{8}_\d{6}_\d{4}$")
        self.assertFalse(os.path.exists(path))

    def test_default_base(self):
        base = self.generator.resolve_base_directory("")
        self.assertEqual(base.name, "site-archive-backups")

    def test_regenerates_on_collision(self):
        taken = os.path.join(self.temp_dir, "archives", "20260101_000000_1111")
        os.makedirs(os.path.join(taken, "archive"))

        with patch.object(
            self.generator, "generate_timestamp", return_value="20260101_000000"
        ), patch.object(
            self.generator, "generate_random_suffix", side_effect=["1111", "2222"]
        ):
            path = self.generator.generate_staging_dir(self.temp_dir)

        self.assertIn("20260101_000000_2222", path)

    def test_temp_path(self):
        temp_path = TempFileManager.generate_temp_path("/x/site.tar.gz")
        self.assertEqual(temp_path, f"/x/site.tar.gz.tmp.{os.getpid()}")


if __name__ == "__main__":
    unittest.main()
