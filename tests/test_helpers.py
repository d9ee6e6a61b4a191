# -*- coding: utf-8 -*-
# tests/test_helpers.py
import logging
import tempfile
import unittest
import sys
import os
from datetime import date

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from cardsheet.utils.helpers import dated_filename, ensure_directory, format_file_size, sanitize_filename
from cardsheet.utils.logger import setup_logging


class TestHelpers(unittest.TestCase):

    def test_sanitize_filename(self):
        self.assertEqual(sanitize_filename('card-sheet-state'), 'card-sheet-state')
        self.assertEqual(sanitize_filename('a/b:c*?'), 'a_b_c__')
        self.assertEqual(sanitize_filename('   '), 'untitled')

    def test_dated_filename(self):
        self.assertEqual(dated_filename('card-sheet', '.json', date(2024, 5, 1)), 'card-sheet-2024-05-01.json')

    def test_format_file_size(self):
        self.assertEqual(format_file_size(0), '0 B')
        self.assertEqual(format_file_size(512), '512 B')
        self.assertEqual(format_file_size(1536), '1.5 KB')
        self.assertEqual(format_file_size(3 * 1024 ** 2), '3.0 MB')

    def test_ensure_directory_nested(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = ensure_directory(os.path.join(temp_dir, 'a', 'b'))
            self.assertTrue(path.is_dir())


class TestLogging(unittest.TestCase):

    def test_setup_logging_replaces_handlers(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            setup_logging(temp_dir)
            package_logger = setup_logging(temp_dir, logging.DEBUG)
            self.assertEqual(len(package_logger.handlers), 2)
            logging.getLogger('cardsheet.session').info("written to file")
            for handler in package_logger.handlers:
                handler.flush()
            log_file = os.path.join(temp_dir, f"card_sheet_{date.today():%Y%m%d}.log")
            with open(log_file, encoding='utf-8') as f:
                self.assertIn('written to file', f.read())
            for handler in list(package_logger.handlers):
                package_logger.removeHandler(handler)
                handler.close()
            self.assertEqual(logging.getLogger('PIL').level, logging.WARNING)


if __name__ == '__main__':
    unittest.main()
