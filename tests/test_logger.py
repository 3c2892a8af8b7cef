"""Tests for logging setup and progress tracking."""

import logging
import os
import tempfile
import unittest

from bookstack_sync.logger import LOGGER_NAME, ProgressTracker, _sanitize_config, setup_logging


class TestSetupLogging(unittest.TestCase):
    def tearDown(self):
        logger = logging.getLogger(LOGGER_NAME)
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    def test_verbosity_levels(self):
        self.assertEqual(setup_logging(verbosity=0).level, logging.WARNING)
        self.assertEqual(setup_logging(verbosity=1).level, logging.INFO)
        self.assertEqual(setup_logging(verbosity=2).level, logging.DEBUG)

    def test_explicit_level_wins(self):
        self.assertEqual(setup_logging(verbosity=2, level='error').level, logging.ERROR)

    def test_invalid_level(self):
        with self.assertRaises(ValueError):
            setup_logging(level='LOUD')

    def test_file_handler(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'sync.log')
            logger = setup_logging(verbosity=1, log_file=path)
            logging.getLogger(f'{LOGGER_NAME}.tests').info('hello from a child logger')
            for handler in logger.handlers:
                handler.flush()

            with open(path, encoding='utf-8') as f:
                self.assertIn('hello from a child logger', f.read())
            self.tearDown()


class TestProgressTracker(unittest.TestCase):
    def test_counts(self):
        with ProgressTracker(3, 'pages') as tracker:
            tracker.increment()
            tracker.increment()
            tracker.increment(success=False)

        stats = tracker.get_stats()
        self.assertEqual((stats['processed'], stats['successful'], stats['failed']), (3, 2, 1))


class TestSanitizeConfig(unittest.TestCase):
    def test_token_secret_redacted(self):
        config = {
            'source': {'base_url': 'https://src.example.com', 'token_id': 'a', 'token_secret': 'sa'},
            'destination': {'token_secret': 'sb'},
        }
        sanitized = _sanitize_config(config)

        self.assertEqual(sanitized['source']['token_secret'], '***REDACTED***')
        self.assertEqual(sanitized['source']['token_id'], 'a')
        self.assertEqual(config['destination']['token_secret'], 'sb')


if __name__ == '__main__':
    unittest.main()
