import click
import os
from .. import config as config_module
from ..cli_logger import logger
from ..coverage import coverage_report_commands, detect_coverage, run_report_commands
from ..decorators import handle_exceptions
from ..options import BuildOptions


@click.command()
@click.option('--build-dir', type=click.Path(), default='build', help='Build directory holding the coverage data.')
@click.option('--binary', default=None, help='Instrumented executable, needed for llvm-cov reports.')
@click.option('--compiler', default=lambda: os.environ.get("CC", "cc"), help='C compiler used for flag probes.')
@click.option('--dry-run', is_flag=True, help='Print the report commands without running them.')
@click.pass_context
@handle_exceptions
def coverage(ctx, build_dir, binary, compiler, dry_run):
    """Produce a code-coverage report from an instrumented build."""
    conf = config_module.load_config(path=ctx.obj["path"])
    options = BuildOptions.from_config(conf, kind="binary")
    options.enable_code_coverage = True

    setup = detect_coverage(options, compiler=compiler)
    commands = coverage_report_commands(setup, build_dir, options=options, binary=binary)
    if not commands:
        logger.warning("Code coverage is disabled; no report generated.")
        return

    if dry_run:
        for command in commands:
            click.echo(" ".join(command))
        return
    if run_report_commands(commands, build_dir):
        logger.success(f"Coverage report generated with {setup.tool}.")
