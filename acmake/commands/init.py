import click
import copy
import os
import toml
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions


def _prompt_for_input(prompt, default, validation_func=None, **kwargs):
    while True:
        value = click.prompt(prompt, default=default, **kwargs)
        if validation_func is None or validation_func(value):
            return value
        else:
            logger.warning(f"Invalid input for {prompt}. Please try again.")


def _prompt_for_list_input(prompt, default):
    value_str = click.prompt(prompt, default=default)
    # Allow empty list if the input string was empty
    if not value_str.strip():
        return []
    return [v.strip() for v in value_str.split(',') if v.strip()]


def _default_config(name):
    conf = copy.deepcopy(config_module.DEFAULT_CONFIG)
    conf["project"]["name"] = name
    conf["project"]["include_dir_name"] = name
    return conf


@click.command()
@click.option('--non-interactive', is_flag=True, help='Run in non-interactive mode using default values.')
@click.option('--name', default=None, help='Project name (defaults to the directory name).')
@click.option('--config-file', type=click.Path(exists=True), help='Path to a TOML file with configuration values.')
@click.pass_context
@handle_exceptions
def init(ctx, non_interactive, name, config_file):
    """Create an acmake.toml for a C library or executable project."""
    path = ctx.obj["path"]
    default_name = name or os.path.basename(os.path.abspath(path))
    logger.info("Initializing a new acmake project.")

    if config_file:
        logger.info(f"Loading configuration from {config_file}")
        with open(config_file, 'r') as f:
            conf = toml.load(f)
    elif non_interactive:
        logger.info("Running in non-interactive mode with default values.")
        conf = _default_config(default_name)
    else:
        logger.info("Please provide the following details:")
        project_name = _prompt_for_input("Project Name", default_name)
        conf = _default_config(project_name)
        conf["project"]["version"] = _prompt_for_input(
            "Project Version", "0.1.0", validation_func=lambda v: bool(v.strip()))
        conf["project"]["include_dir_name"] = _prompt_for_input("Include Directory Name", project_name)
        conf["project"]["lib_to_test"] = _prompt_for_input("Library under test (leave empty for none)", "")
        conf["packages"]["custom"] = _prompt_for_list_input(
            "Custom Packages (comma-separated: e.g., a-memory-library)", "")
        conf["packages"]["third_party"] = _prompt_for_list_input(
            "Third-party Packages (comma-separated: e.g., ZLIB, OpenSSL)", "")

    # validates the project table before anything is written
    config_module.get_project(conf)
    if config_module.save_config(conf, path=path):
        logger.success(f"acmake project initialized! Configuration saved to {os.path.join(path, config_module.CONFIG_FILE)}")
        logger.info("Next steps: Run 'acmake resolve' or 'acmake configure' to locate your packages.")
