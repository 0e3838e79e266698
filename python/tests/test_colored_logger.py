"""
Tests for colored console logging.
"""

import io
import logging
import unittest

from colored_logger import (
    PROGRESS_LEVEL,
    SUCCESS_LEVEL,
    ColoredFormatter,
    get_colored_logger,
    setup_colored_logging,
)


class _TTYStream(io.StringIO):
    def isatty(self):
        return True


class TestColoredLogger(unittest.TestCase):
    """Test formatter coloring and the extra log levels."""

    def tearDown(self):
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        root_logger.setLevel(logging.WARNING)

    def _record(self, level, msg):
        return logging.LogRecord("test", level, __file__, 1, msg, None, None)

    def test_plain_output_when_not_a_tty(self):
        formatter = ColoredFormatter("%(message)s", stream=io.StringIO())
        self.assertEqual(formatter.format(self._record(logging.INFO, "hi")), "hi")

    def test_colored_output_on_tty(self):
        formatter = ColoredFormatter("%(message)s", stream=_TTYStream())
        output = formatter.format(self._record(logging.ERROR, "bad"))
        self.assertTrue(output.startswith("\033[31m"))
        self.assertTrue(output.endswith("\033[0m"))

    def test_extra_levels(self):
        stream = io.StringIO()
        setup_colored_logging(level=logging.INFO, stream=stream)
        logger = get_colored_logger("site_archive.test")

        logger.progress("walking %s", "code")
        logger.success("done")
        logger.debug("hidden")

        output = stream.getvalue()
        self.assertIn("PROGRESS - walking code", output)
        self.assertIn("SUCCESS - done", output)
        self.assertNotIn("hidden", output)
        self.assertEqual(logging.getLevelName(PROGRESS_LEVEL), "PROGRESS")
        self.assertEqual(logging.getLevelName(SUCCESS_LEVEL), "SUCCESS")

    def test_setup_replaces_handlers(self):
        setup_colored_logging(stream=io.StringIO())
        setup_colored_logging(stream=io.StringIO())
        self.assertEqual(len(logging.getLogger().handlers), 1)


if __name__ == "__main__":
    unittest.main()
