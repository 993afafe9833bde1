from .config import config
from .configure import configure
from .coverage import coverage
from .doctor import doctor
from .export import export
from .init import init
from .log import log
from .resolve import resolve
from .uninstall import uninstall
from .version import version

__all__ = [
    "config",
    "configure",
    "coverage",
    "doctor",
    "export",
    "init",
    "log",
    "resolve",
    "uninstall",
    "version",
]
