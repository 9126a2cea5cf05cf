import os
import shutil
import tempfile
import unittest
from datetime import datetime

from ansible_lab import config
from ansible_lab.session import new_session


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self._root = tempfile.mkdtemp()

    def _write(self, text):
        path = os.path.join(self._root, "lab.yml")
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def test_defaults_without_file(self):
        cfg = config.load_config(None)
        self.assertEqual(cfg, config.DEFAULTS)
        self.assertIsNot(cfg["aws"], config.DEFAULTS["aws"])

    def test_file_overrides_defaults(self):
        cfg = config.load_config(self._write("aws:\n  region: us-east-1\n  participants: 4\n"))
        self.assertEqual(cfg["aws"]["region"], "us-east-1")
        self.assertEqual(cfg["aws"]["participants"], 4)
        self.assertEqual(cfg["aws"]["instance_type"], "t3.micro")
        self.assertEqual(cfg["lab"], config.DEFAULTS["lab"])

    def test_empty_file(self):
        self.assertEqual(config.load_config(self._write("")), config.DEFAULTS)

    def test_unknown_names_rejected(self):
        for text in ("gcp:\n  region: x\n", "aws:\n  zone: x\n", "aws: [1, 2]\n", "- 1\n"):
            with self.assertRaises(SystemExit):
                config.load_config(self._write(text))

    def test_unreadable_file(self):
        with self.assertRaises(SystemExit):
            config.load_config(os.path.join(self._root, "missing.yml"))

    def test_invalid_yaml(self):
        with self.assertRaises(SystemExit):
            config.load_config(self._write("aws: [unclosed\n"))

    def tearDown(self):
        shutil.rmtree(self._root)


class TestParticipants(unittest.TestCase):

    def test_bounds(self):
        self.assertEqual(config.parse_participants("1"), 1)
        self.assertEqual(config.parse_participants(20), 20)
        for value in (0, 21, "-3", "", None, "two"):
            with self.assertRaises(SystemExit):
                config.parse_participants(value)


class TestSession(unittest.TestCase):

    def test_names_derive_from_timestamp(self):
        session = new_session("ansible-fundamentals", "eu-west-1", 8, now=datetime(2026, 1, 2, 3, 4, 5))
        self.assertEqual(session.session_id, "20260102-030405")
        self.assertEqual(session.stack_name, "ansible-training-ansible-fundamentals-20260102-030405")
        self.assertEqual(session.key_file, "ansible-training-20260102-030405.pem")

    def test_rejects_bad_names(self):
        for name in ("", "1lab", "my_lab", "lab name"):
            with self.assertRaises(SystemExit):
                new_session(name, "eu-west-1", 2)

    def test_name_fits_stack_name_limit(self):
        now = datetime(2026, 1, 2, 3, 4, 5)
        longest = new_session("a" * 95, "eu-west-1", 2, now=now)
        self.assertEqual(len(longest.stack_name), 128)
        with self.assertRaises(SystemExit):
            new_session("a" * 96, "eu-west-1", 2, now=now)

    def test_requires_region(self):
        with self.assertRaises(SystemExit):
            new_session("lab", "", 2)


if __name__ == '__main__':
    unittest.main()
