import glob
import os

from ..cli_logger import logger
from ..registry import Target
from .libraries import find_header, find_library

DEFAULT_PREFIXES = [
    "/usr/local",
    "/opt/homebrew",
    "/usr",
]

CMAKE_FALLBACK_PATHS = [
    "/usr/local/lib/cmake",
    "/usr/local/share",
    "/opt/homebrew/lib/cmake",
    "/usr/lib/cmake",
    "/usr/share/cmake",
]


class FindModule:
    """A built-in find module: one header plus one library per imported target."""

    def __init__(self, name, header, targets, link_interface=None):
        self.name = name
        self.header = header
        self.targets = targets
        self.link_interface = link_interface or {}


FIND_MODULES = {
    module.name.lower(): module for module in (
        FindModule("ZLIB", "zlib.h", {"ZLIB::ZLIB": "z"}),
        FindModule("OpenSSL", "openssl/ssl.h",
                   {"OpenSSL::Crypto": "crypto", "OpenSSL::SSL": "ssl"},
                   link_interface={"OpenSSL::SSL": ["OpenSSL::Crypto"]}),
        FindModule("CURL", "curl/curl.h", {"CURL::libcurl": "curl"}),
        FindModule("BZip2", "bzlib.h", {"BZip2::BZip2": "bz2"}),
        FindModule("LibLZMA", "lzma.h", {"LibLZMA::LibLZMA": "lzma"}),
    )
}


def cmake_prefixes(extra=None):
    prefixes = list(extra or [])
    for path in os.environ.get("CMAKE_PREFIX_PATH", "").split(os.pathsep):
        if path and path not in prefixes:
            prefixes.append(path)
    for path in DEFAULT_PREFIXES:
        if path not in prefixes:
            prefixes.append(path)
    return prefixes


def _config_file_names(name):
    return [f"{name}Config.cmake", f"{name.lower()}-config.cmake"]


def _config_dirs(prefix, name):
    """Directories under prefix where find_package looks for <name> config files."""
    roots = [prefix]
    for sub in ("lib/cmake", "lib64/cmake", "share/cmake", "lib", "lib64", "share"):
        roots.append(os.path.join(prefix, sub))
    dirs = []
    for root in roots:
        if not os.path.isdir(root):
            continue
        for entry in sorted(os.listdir(root)):
            if entry.lower().startswith(name.lower()):
                path = os.path.join(root, entry)
                if os.path.isdir(path):
                    dirs.append(path)
                    dirs.append(os.path.join(path, "cmake"))
    return dirs


class PackageFinder:
    """The native package-manager search: find modules first, then config files.

    mode is None for the default order, "module" or "config" to force one.
    """

    def __init__(self, prefixes=None, find_modules=None):
        self.prefixes = cmake_prefixes(prefixes)
        self.find_modules = FIND_MODULES if find_modules is None else find_modules

    def find_package(self, name, evaluator, mode=None):
        scope = evaluator.scope
        if mode != "config" and name.lower() in self.find_modules:
            if self._run_find_module(self.find_modules[name.lower()], scope):
                return True
            if mode == "module":
                return False
        if mode == "module":
            return False
        config_file = self.find_config_file(name, scope)
        if config_file is None:
            logger.debug(f"No package configuration file found for {name}")
            return False
        scope.set(f"{name}_DIR", os.path.dirname(config_file))
        scope.set(f"{name}_CONFIG", config_file)
        scope.set("CMAKE_FIND_PACKAGE_NAME", name)
        scope.set(f"{name}_FOUND", "TRUE")
        if not evaluator.include(config_file):
            scope.set(f"{name}_FOUND", "FALSE")
        return scope.is_package_found(name)

    def find_config_file(self, name, scope):
        candidates = []
        hint = scope.get(f"{name}_DIR") or os.environ.get(f"{name}_DIR", "")
        if hint:
            candidates.append(hint)
        for prefix in self.prefixes:
            candidates.extend(_config_dirs(prefix, name))
        for directory in candidates:
            for file_name in _config_file_names(name):
                path = os.path.join(directory, file_name)
                if os.path.isfile(path):
                    return path
        return None

    def _run_find_module(self, module, scope):
        include_roots = [os.path.join(prefix, "include") for prefix in self.prefixes]
        include_dir = find_header(module.header, include_roots)
        if include_dir is None:
            return False
        lib_dirs = []
        for prefix in self.prefixes:
            lib_dirs.extend([os.path.join(prefix, "lib"), os.path.join(prefix, "lib64")])
        locations = {}
        for target, library in module.targets.items():
            path = find_library(library, lib_dirs)
            if path is None:
                logger.debug(f"Find module {module.name}: lib{library} not found")
                return False
            locations[target] = path
        upper = module.name.upper()
        scope.set(f"{upper}_FOUND", "TRUE")
        scope.set(f"{upper}_INCLUDE_DIRS", include_dir)
        scope.set(f"{upper}_LIBRARIES", list(locations.values()))
        for target, path in locations.items():
            if scope.targets.exists(target):
                continue
            scope.targets.add(Target(target, kind="UNKNOWN", include_dirs=include_dir,
                                     link_libraries=module.link_interface.get(target),
                                     location=path, imported=True))
        logger.debug(f"Find module {module.name}: {include_dir}, {locations}")
        return True


def scan_config_files(name, roots=None):
    """Config files and CMakeLists.txt under conventional install locations."""
    files = []
    for root in list(CMAKE_FALLBACK_PATHS) + list(roots or []):
        patterns = [
            os.path.join(root, f"{name}*", f"{name}*-config.cmake"),
            os.path.join(root, f"{name}*", "CMakeLists.txt"),
        ]
        for pattern in patterns:
            for path in sorted(glob.glob(pattern)):
                if path not in files:
                    files.append(path)
    return files
