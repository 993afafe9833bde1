import shlex

from ..cli_logger import logger
from .command_executor import find_program, run_shell_command

PKG_CONFIG = "pkg-config"


class ModuleInfo:
    """What pkg-config knows about one module."""

    def __init__(self, name, version="", include_dirs=None, libraries=None,
                 library_dirs=None, cflags=None, ldflags=None):
        self.name = name
        self.version = version
        self.include_dirs = include_dirs or []
        self.libraries = libraries or []
        self.library_dirs = library_dirs or []
        self.cflags = cflags or []
        self.ldflags = ldflags or []

    @property
    def is_empty(self):
        return not self.include_dirs and not self.libraries and not self.ldflags

    def __repr__(self):
        return f"ModuleInfo({self.name!r}, include_dirs={self.include_dirs}, libraries={self.libraries})"


def parse_cflags(output):
    include_dirs, cflags = [], []
    for flag in shlex.split(output):
        if flag.startswith("-I") and len(flag) > 2:
            include_dirs.append(flag[2:])
        else:
            cflags.append(flag)
    return include_dirs, cflags


def parse_libs(output):
    libraries, library_dirs, ldflags = [], [], []
    for flag in shlex.split(output):
        if flag.startswith("-l") and len(flag) > 2:
            libraries.append(flag[2:])
        elif flag.startswith("-L") and len(flag) > 2:
            library_dirs.append(flag[2:])
        else:
            ldflags.append(flag)
    return libraries, library_dirs, ldflags


class ModuleFinder:
    """Module-style discovery through the pkg-config executable.

    Missing pkg-config is not an error: every query simply finds nothing.
    """

    def __init__(self, executable=None):
        self.executable = executable
        self._checked = executable is not None
        self._results = {}

    @property
    def available(self):
        if not self._checked:
            self.executable = find_program(PKG_CONFIG)
            self._checked = True
            if not self.executable:
                logger.warning("pkg-config not found; module-style discovery is disabled.")
        return bool(self.executable)

    def _run(self, *args):
        stdout, stderr, returncode = run_shell_command([self.executable, *args])
        if returncode != 0:
            logger.debug(f"{PKG_CONFIG} {' '.join(args)} failed: {stderr.strip()}")
            return None
        return stdout.strip()

    def query(self, name):
        """Return a ModuleInfo for name, or None when pkg-config does not know it."""
        if name in self._results:
            return self._results[name]
        info = None
        if self.available and self._run("--exists", name) is not None:
            cflags = self._run("--cflags", name) or ""
            libs = self._run("--libs", name) or ""
            include_dirs, other_cflags = parse_cflags(cflags)
            libraries, library_dirs, ldflags = parse_libs(libs)
            info = ModuleInfo(
                name,
                version=self._run("--modversion", name) or "",
                include_dirs=include_dirs,
                libraries=libraries,
                library_dirs=library_dirs,
                cflags=other_cflags,
                ldflags=ldflags,
            )
            logger.debug(f"pkg-config {name}: {info}")
        self._results[name] = info
        return info
