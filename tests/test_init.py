import os
import toml
import unittest
from click.testing import CliRunner
from acmake import config
from acmake.main import cli
from unittest.mock import patch

class TestInitCommand(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

    def test_init_non_interactive(self):
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, ["init", "--non-interactive", "--name", "ademo"])
            self.assertEqual(result.exit_code, 0)
            conf = toml.load(config.CONFIG_FILE)
            self.assertEqual(conf["project"]["name"], "ademo")
            self.assertEqual(conf["project"]["include_dir_name"], "ademo")
            self.assertEqual(conf["packages"]["third_party"], [])

    @patch("click.prompt")
    def test_init_interactive(self, mock_prompt):
        mock_prompt.side_effect = [
            "ajsonlibrary",           # Project Name
            "1.2.0",                  # Project Version
            "a-json-library",         # Include Directory Name
            "",                       # Library under test
            "a-memory-library",       # Custom Packages
            "ZLIB, OpenSSL::SSL",     # Third-party Packages
        ]
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, ["init"])
            self.assertEqual(result.exit_code, 0)
            conf = toml.load(config.CONFIG_FILE)
            self.assertEqual(conf["project"]["version"], "1.2.0")
            self.assertEqual(conf["packages"]["custom"], ["a-memory-library"])
            self.assertEqual(conf["packages"]["third_party"], ["ZLIB", "OpenSSL::SSL"])


if __name__ == '__main__':
    unittest.main()
