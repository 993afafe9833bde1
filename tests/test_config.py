import os
import shutil
import tempfile
import toml
import unittest
from click.testing import CliRunner
from acmake import config
from acmake.commands.config import config as config_command
from acmake.errors import ConfigurationError
import json

class TestConfig(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.test_dir, config.CONFIG_FILE)
        self.sample_config = {
            "project": {
                "name": "atemplatelibrary",
                "version": "0.1.1"
            },
            "packages": {
                "custom": ["a-memory-library"],
                "third_party": "ZLIB;OpenSSL",
            },
            "author": "Test Author"
        }
        config.save_config(self.sample_config, path=self.test_dir)

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_load_config_not_found(self):
        """Test that loading a non-existent config returns an empty dict."""
        os.remove(self.config_path)
        cfg = config.load_config(path=self.test_dir)
        self.assertEqual(cfg, {})

    def test_load_config_invalid_toml(self):
        with open(self.config_path, "w") as f:
            f.write("[project\nname = ")
        self.assertEqual(config.load_config(path=self.test_dir), {})

    def test_save_and_load_config(self):
        """Test saving a config and then loading it back."""
        self.assertTrue(os.path.exists(self.config_path))
        loaded_config = config.load_config(path=self.test_dir)
        self.assertEqual(loaded_config, self.sample_config)
        with open(self.config_path, "r") as f:
            toml_content = toml.load(f)
        self.assertEqual(toml_content, self.sample_config)

    def test_get_project_defaults(self):
        project = config.get_project(self.sample_config)
        self.assertEqual(project["include_dir_name"], "atemplatelibrary")
        self.assertEqual(project["lib_to_test"], "")

    def test_get_project_requires_name(self):
        with self.assertRaises(ConfigurationError):
            config.get_project({"project": {"version": "1.0"}})

    def test_package_lists_accept_cmake_lists(self):
        custom, third_party = config.get_packages(self.sample_config)
        self.assertEqual(custom, ["a-memory-library"])
        self.assertEqual(third_party, ["ZLIB", "OpenSSL"])

    def test_get_targets(self):
        conf = {"binaries": {"demo": {"sources": ["demo.c"], "custom_packages": []}}}
        self.assertEqual(config.get_targets(conf, "binaries"), {
            "demo": {"sources": ["demo.c"], "custom_packages": [], "third_party_packages": None},
        })

    def test_get_value(self):
        """Test getting a value from the config via the CLI."""
        runner = CliRunner()
        result = runner.invoke(config_command, ['get', 'author'], obj={"path": self.test_dir})
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(result.output.strip(), 'Test Author')

    def test_get_nested_value(self):
        """Test getting a nested value from the config via the CLI."""
        runner = CliRunner()
        result = runner.invoke(config_command, ['get', 'project.name'], obj={"path": self.test_dir})
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(result.output.strip(), 'atemplatelibrary')

    def test_set_value(self):
        """Options are stored as booleans."""
        runner = CliRunner()
        result = runner.invoke(config_command, ['set', 'options.static_build', 'off'], obj={"path": self.test_dir})
        self.assertEqual(result.exit_code, 0)
        loaded_config = config.load_config(path=self.test_dir)
        self.assertIs(loaded_config["options"]["static_build"], False)

    def test_set_package_list(self):
        runner = CliRunner()
        result = runner.invoke(config_command, ['set', 'packages.third_party', 'ZLIB, OpenSSL::SSL'],
                               obj={"path": self.test_dir})
        self.assertEqual(result.exit_code, 0)
        loaded_config = config.load_config(path=self.test_dir)
        self.assertEqual(loaded_config["packages"]["third_party"], ["ZLIB", "OpenSSL::SSL"])

    def test_set_unknown_option_is_rejected(self):
        runner = CliRunner()
        result = runner.invoke(config_command, ['set', 'options.turbo', 'on'], obj={"path": self.test_dir})
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Unknown option 'options.turbo'", result.output)
        self.assertEqual(config.load_config(path=self.test_dir), self.sample_config)

    def test_set_option_requires_on_or_off(self):
        runner = CliRunner()
        result = runner.invoke(config_command, ['set', 'options.debug', 'maybe'], obj={"path": self.test_dir})
        self.assertEqual(result.exit_code, 1)
        self.assertNotIn("options", config.load_config(path=self.test_dir))

    def test_unset_value(self):
        """Test unsetting a value in the config via the CLI."""
        runner = CliRunner()
        result = runner.invoke(config_command, ['unset', 'author'], obj={"path": self.test_dir})
        self.assertEqual(result.exit_code, 0)
        loaded_config = config.load_config(path=self.test_dir)
        self.assertNotIn('author', loaded_config)

    def test_unset_project_name_is_rejected(self):
        runner = CliRunner()
        result = runner.invoke(config_command, ['unset', 'project.name'], obj={"path": self.test_dir})
        self.assertEqual(result.exit_code, 1)
        self.assertIn("[project] name is not set", result.output)
        self.assertEqual(config.load_config(path=self.test_dir)["project"]["name"], "atemplatelibrary")

    def test_get_list_prints_one_per_line(self):
        runner = CliRunner()
        result = runner.invoke(config_command, ['get', 'packages.third_party'], obj={"path": self.test_dir})
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(result.output.splitlines(), ["ZLIB", "OpenSSL"])

    def test_add_and_remove_packages(self):
        runner = CliRunner()
        added = runner.invoke(config_command, ['add', 'packages.third_party', 'CURL', 'ZLIB'],
                              obj={"path": self.test_dir})
        self.assertEqual(added.exit_code, 0)
        self.assertEqual(config.load_config(path=self.test_dir)["packages"]["third_party"], ["ZLIB", "OpenSSL", "CURL"])
        removed = runner.invoke(config_command, ['remove', 'packages.third_party', 'OpenSSL'],
                                obj={"path": self.test_dir})
        self.assertEqual(removed.exit_code, 0)
        self.assertEqual(config.load_config(path=self.test_dir)["packages"]["third_party"], ["ZLIB", "CURL"])

    def test_add_to_scalar_key_is_refused(self):
        runner = CliRunner()
        result = runner.invoke(config_command, ['add', 'project.name', 'other'], obj={"path": self.test_dir})
        self.assertIn("is not a package or source list", result.output)
        self.assertEqual(config.load_config(path=self.test_dir), self.sample_config)

    def test_list_config(self):
        """Listing shows the configuration with defaults applied."""
        runner = CliRunner()
        result = runner.invoke(config_command, ['list'], obj={"path": self.test_dir})
        self.assertEqual(result.exit_code, 0)
        listed = json.loads(result.output)
        self.assertEqual(listed["project"]["include_dir_name"], "atemplatelibrary")
        self.assertEqual(listed["packages"]["third_party"], ["ZLIB", "OpenSSL"])
        self.assertIs(listed["options"]["library"]["static_build"], True)
        self.assertIs(listed["options"]["binary"]["static_build"], False)
        self.assertEqual(listed["binaries"], {})

    def test_coerce_value(self):
        self.assertEqual(config.coerce_value("tests.test_demo.sources", "a.c;b.c"), ["a.c", "b.c"])
        self.assertIs(config.coerce_value("options.enable_clang_tidy", "ON"), True)
        self.assertEqual(config.coerce_value("project.version", "1.2.0"), "1.2.0")

    def test_validate_config_rejects_non_table_target(self):
        with self.assertRaises(ConfigurationError):
            config.validate_config({"project": {"name": "x"}, "binaries": {"demo": "demo.c"}})

if __name__ == '__main__':
    unittest.main()
