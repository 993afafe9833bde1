"""Code-coverage instrumentation and report commands."""
import os

from .cli_logger import logger
from .options import compiler_accepts
from .utils.command_executor import find_program, run_shell_command

COVERAGE_REPORT_DIR = "coverage-report"
GCOV_REPORT_FILE = "coverage.txt"


class CoverageSetup:
    def __init__(self, enabled=False, tool=None, compile_flags=None, link_libs=None,
                 compiler_flag=False, executable=None):
        self.enabled = enabled
        self.tool = tool
        self.compile_flags = compile_flags or []
        self.link_libs = link_libs or []
        self.compiler_flag = compiler_flag
        self.executable = executable

    def to_dict(self):
        return {
            "enabled": self.enabled,
            "tool": self.tool,
            "compile_flags": self.compile_flags,
            "link_libs": self.link_libs,
        }


def detect_coverage(options, compiler="cc"):
    """Pick coverage flags; turns options.enable_code_coverage off when nothing fits."""
    if not options.enable_code_coverage:
        return CoverageSetup()

    if compiler_accepts(compiler, ["--coverage"]):
        return CoverageSetup(True, "compiler", ["--coverage"], ["--coverage"], compiler_flag=True)

    llvm_cov = find_program("llvm-cov")
    if llvm_cov:
        flags = ["-fprofile-instr-generate", "-fcoverage-mapping"]
        return CoverageSetup(True, "llvm-cov", flags, list(flags), executable=llvm_cov)

    gcov = find_program("gcov")
    if gcov:
        flags = ["-fprofile-arcs", "-ftest-coverage"]
        return CoverageSetup(True, "gcov", flags, list(flags), executable=gcov)

    logger.warning("No suitable code-coverage tool found - disabling coverage.")
    options.enable_code_coverage = False
    return CoverageSetup()


def coverage_report_commands(setup, build_dir, options=None, binary=None):
    """Commands that turn coverage data in build_dir into a report.

    Returns an empty list, and disables coverage on options, when no report
    tool is available.
    """
    if not setup.enabled:
        return []
    build_dir = os.path.abspath(build_dir)
    lcov = find_program("lcov")
    genhtml = find_program("genhtml")
    info = os.path.join(build_dir, "coverage.info")
    report_dir = os.path.join(build_dir, COVERAGE_REPORT_DIR)

    if lcov and genhtml:
        commands = [[lcov, "--capture", "--directory", build_dir, "--output-file", info]]
        if not setup.compiler_flag:
            commands.append([lcov, "--remove", info, "/usr/*", f"{build_dir}/*", "--output-file", info])
        commands.append([genhtml, info, "--output-directory", report_dir])
        return commands

    llvm_cov = setup.executable if setup.tool == "llvm-cov" else find_program("llvm-cov")
    if llvm_cov and binary:
        return [[llvm_cov, "report", "--instr-profile=coverage.profdata", "--object", os.path.join(build_dir, binary)]]

    gcov = setup.executable if setup.tool == "gcov" else find_program("gcov")
    if gcov:
        notes = []
        for root, _, files in os.walk(build_dir):
            notes.extend(os.path.join(root, f) for f in files if f.endswith(".gcno"))
        return [[gcov, "-o", os.path.dirname(note), note] for note in sorted(notes)]

    logger.warning("No suitable code coverage tool found. Code coverage is disabled.")
    if options is not None:
        options.enable_code_coverage = False
    return []


def gcov_report_path(build_dir):
    return os.path.join(os.path.abspath(build_dir), COVERAGE_REPORT_DIR, GCOV_REPORT_FILE)


def run_report_commands(commands, build_dir):
    """Run report commands in order; False after the first failure.

    gcov runs beside each notes file and its output is collected in
    coverage-report/coverage.txt under build_dir.
    """
    gcov_output = []
    for command in commands:
        logger.step_info(" ".join(command), indent=2)
        cwd = os.path.dirname(command[-1]) if command[-1].endswith(".gcno") else None
        stdout, stderr, returncode = run_shell_command(command, cwd=cwd)
        if returncode != 0:
            logger.error(f"Coverage command failed ({returncode}): {stderr.strip() if stderr else ''}")
            return False
        if cwd is not None:
            gcov_output.append(stdout or "")
        elif stdout:
            logger.debug(stdout.strip())
    if gcov_output:
        report = gcov_report_path(build_dir)
        os.makedirs(os.path.dirname(report), exist_ok=True)
        with open(report, "w") as f:
            f.write("".join(gcov_output))
        logger.info(f"gcov report written to {report}")
    return True
