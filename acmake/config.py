import toml
import os
from .cli_logger import logger
from .errors import ConfigurationError
from .options import LIBRARY_DEFAULTS

CONFIG_FILE = "acmake.toml"

PACKAGE_LIST_KEYS = ("custom", "third_party", "search_paths")
TARGET_SECTIONS = ("binaries", "tests")
TARGET_LIST_KEYS = ("sources", "custom_packages", "third_party_packages")

DEFAULT_CONFIG = {
    "project": {
        "name": "",
        "version": "0.1.0",
        "include_dir_name": "",
        "lib_to_test": "",
    },
    "packages": {
        "custom": [],
        "third_party": [],
        "search_paths": [],
    },
    "options": {},
}

def load_config(path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    logger.info(f"Loading configuration from {config_path}")
    if os.path.exists(config_path):
        try:
            with open(config_path, "r") as f:
                return toml.load(f)
        except toml.TomlDecodeError as e:
            logger.error(f"Error decoding TOML file at {config_path}: {e}")
            logger.info("Please check the file's format for syntax errors.")
        except IOError as e:
            logger.error(f"Error reading configuration file at {config_path}: {e}")
            logger.info("Please check file permissions.")
    return {}

def save_config(config, path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    logger.info(f"Saving configuration to {config_path}")
    try:
        with open(config_path, "w") as f:
            toml.dump(config, f)
        return True
    except IOError as e:
        logger.error(f"Error saving configuration to {config_path}: {e}")
        logger.info("Please check file permissions and ensure the directory is writable.")
        return False


def as_list(value):
    if not value:
        return []
    if isinstance(value, str):
        return [v for v in value.replace(";", " ").split() if v]
    return [str(v) for v in value]


def get_project(conf):
    project = conf.get("project", {})
    name = project.get("name")
    if not name:
        raise ConfigurationError(f"Error: [project] name is not set in {CONFIG_FILE}.")
    return {
        "name": name,
        "version": str(project.get("version", "0.1.0")),
        "include_dir_name": project.get("include_dir_name") or name,
        "lib_to_test": project.get("lib_to_test", ""),
    }


def get_packages(conf):
    """Return the (custom, third_party) package lists of the project."""
    packages = conf.get("packages", {})
    return as_list(packages.get("custom")), as_list(packages.get("third_party"))


def get_search_paths(conf):
    return as_list(conf.get("packages", {}).get("search_paths"))


def get_targets(conf, section):
    """Return {target: {"sources", "custom_packages", "third_party_packages"}}.

    Package lists are None when the target does not override the global ones.
    """
    targets = {}
    for name, settings in conf.get(section, {}).items():
        settings = settings or {}
        targets[name] = {
            "sources": as_list(settings.get("sources")),
            "custom_packages": as_list(settings["custom_packages"]) if "custom_packages" in settings else None,
            "third_party_packages": as_list(settings["third_party_packages"]) if "third_party_packages" in settings else None,
        }
    return targets


def is_list_key(key):
    """True for dotted keys whose value acmake.toml stores as a list."""
    keys = key.split(".")
    if keys[0] == "packages":
        return len(keys) == 2 and keys[1] in PACKAGE_LIST_KEYS
    return keys[0] in TARGET_SECTIONS and len(keys) == 3 and keys[2] in TARGET_LIST_KEYS


def coerce_value(key, value):
    """Convert a command-line string to what acmake.toml holds under key.

    Lists accept ';', ',' or whitespace separators; [options] take ON/OFF
    style booleans and must name a known option.
    """
    keys = key.split(".")
    if is_list_key(key):
        return as_list(value.replace(",", ";"))
    if keys[0] == "options":
        if len(keys) != 2 or keys[1] not in LIBRARY_DEFAULTS:
            raise ConfigurationError(
                f"Error: Unknown option '{key}'. Known options: {', '.join(sorted(LIBRARY_DEFAULTS))}.")
        flag = value.strip().upper()
        if flag in ("1", "ON", "YES", "TRUE", "Y"):
            return True
        if flag in ("0", "OFF", "NO", "FALSE", "N"):
            return False
        raise ConfigurationError(f"Error: Option '{keys[1]}' expects ON or OFF, got '{value}'.")
    return value


def validate_config(conf):
    """Raise ConfigurationError when conf cannot drive a configuration run."""
    get_project(conf)
    for table in ("packages", "options") + TARGET_SECTIONS:
        if not isinstance(conf.get(table, {}), dict):
            raise ConfigurationError(f"Error: [{table}] must be a table in {CONFIG_FILE}.")
    get_packages(conf)
    get_search_paths(conf)
    for section in TARGET_SECTIONS:
        for name, settings in conf.get(section, {}).items():
            if settings is not None and not isinstance(settings, dict):
                raise ConfigurationError(f"Error: [{section}.{name}] must be a table in {CONFIG_FILE}.")
        get_targets(conf, section)
