"""Test the logger classes"""

import logging
import os
import tempfile
import unittest

from lmchain.utils.logging import (
    ConsoleLogger,
    FileLogger,
    LoglistLogger,
    get_logger,
    set_log_level,
)


class TestLoglistLogger(unittest.TestCase):

    def test_levels(self):
        logger = LoglistLogger()
        logger.debug("d")
        logger.info("i")
        logger.warning("w")
        logger.error("e")
        self.assertListEqual(
            logger.get_logs(),
            ["DEBUG - d", "INFO - i", "WARNING - w", "ERROR - e"],
        )
        self.assertListEqual(
            logger.get_logs(logging.WARNING), ["WARNING - w", "ERROR - e"]
        )
        self.assertEqual(logger.count_logs(logging.ERROR), 1)

    def test_set_level(self):
        logger = LoglistLogger()
        logger.set_level(logging.ERROR)
        self.assertEqual(logger.get_level(), logging.ERROR)
        logger.info("discarded")
        logger.error("kept")
        self.assertListEqual(logger.get_logs(), ["ERROR - kept"])

    def test_clear(self):
        logger = LoglistLogger()
        logger.info("message")
        logger.clear_logs()
        self.assertEqual(logger.count_logs(), 0)


class TestConsoleLogger(unittest.TestCase):

    def test_console(self):
        logger = ConsoleLogger("lmchain.tests", logging.WARNING)
        self.assertEqual(logger.get_level(), logging.WARNING)
        with self.assertLogs("lmchain.tests", logging.WARNING) as cm:
            logger.info("ignored")
            logger.warning("reported")
        self.assertListEqual(cm.output, ["WARNING:lmchain.tests:reported"])

    def test_get_logger(self):
        logger = get_logger("lmchain.tests.other")
        logger.set_level(logging.DEBUG)
        self.assertEqual(logger.get_level(), logging.DEBUG)

    def test_set_log_level(self):
        set_log_level(logging.ERROR)
        self.assertEqual(
            logging.getLogger("lmchain").level, logging.ERROR
        )
        set_log_level(logging.INFO)


class TestFileLogger(unittest.TestCase):

    def test_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "test.log")
            logger = FileLogger("lmchain.tests", path)
            logger.info("written to file")
            logger.debug("below level")
            logger.close()
            with open(path, encoding="utf-8") as f:
                content = f.read()
        self.assertIn("INFO - written to file", content)
        self.assertNotIn("below level", content)


if __name__ == "__main__":
    unittest.main()
