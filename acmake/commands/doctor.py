import click
import os
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..utils.command_executor import find_program
from ..utils.find_package import CMAKE_FALLBACK_PATHS

REQUIRED_TOOLS = ["cmake"]
OPTIONAL_TOOLS = ["pkg-config", "cc", "clang-tidy", "lcov", "genhtml", "llvm-cov", "gcov"]


def check_environment():
    """Report the tools and search locations package resolution relies on."""
    ok = True
    for tool in REQUIRED_TOOLS:
        path = find_program(tool)
        if path:
            logger.step_info(f"{tool}: {path}", indent=2)
        else:
            logger.error(f"{tool} not found on PATH.")
            ok = False
    for tool in OPTIONAL_TOOLS:
        path = find_program(tool)
        if path:
            logger.step_info(f"{tool}: {path}", indent=2)
        else:
            logger.warning(f"{tool} not found; features that need it are disabled.")
    for path in CMAKE_FALLBACK_PATHS:
        state = "present" if os.path.isdir(path) else "missing"
        logger.step_info(f"{path}: {state}", indent=2)
    return ok


@click.command()
@handle_exceptions
def doctor():
    """Check that the tools acmake relies on are installed."""
    logger.info("Running environment check...")
    if check_environment():
        logger.success("Environment check completed successfully.")
    else:
        logger.error("Environment check found issues. Please review the warnings/errors above.")
