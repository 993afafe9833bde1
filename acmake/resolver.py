"""Resolve a package or target name to usable build targets.

Strategies are tried in order and the first one that returns a result wins:

1. fast_path        - a memoized result or an already existing target spelling
2. qualified_target - ``pkg::tgt`` names; never falls through to the rest
3. native_search    - find modules and CMake config packages
4. module_search    - pkg-config, synthesizing ``name::name``
5. filesystem_scan  - config files under conventional install locations
"""
import re

from . import config
from .cli_logger import logger
from .errors import RequiredPackageNotFound
from .quirks import QUIRKS
from .registry import ConfigurationScope
from .utils.cmake_script import ScriptEvaluator
from .utils.find_package import PackageFinder, scan_config_files
from .utils.libraries import resolve_libraries
from .utils.pkg_config import ModuleFinder

FOUND_TARGET = "found-target"
FOUND_FILES = "found-files"
NOT_FOUND = "not-found"

_PKG_CONFIG_REF = re.compile(r"^PkgConfig::([A-Za-z0-9_\-]+)$")


class ResolutionResult:
    def __init__(self, name, status, package=None, strategy=None,
                 include_dirs=None, libraries=None, targets=None):
        self.name = name
        self.status = status
        self.package = package
        self.strategy = strategy
        self.include_dirs = list(include_dirs or [])
        self.libraries = list(libraries or [])
        self.targets = list(targets or [])

    @classmethod
    def not_found(cls, name, strategy=None):
        return cls(name, NOT_FOUND, strategy=strategy)

    @property
    def found(self):
        return self.status != NOT_FOUND

    def __bool__(self):
        return self.found

    def to_dict(self):
        return {
            "name": self.name,
            "status": self.status,
            "package": self.package,
            "strategy": self.strategy,
            "include_dirs": self.include_dirs,
            "libraries": self.libraries,
            "targets": self.targets,
        }

    def __repr__(self):
        return f"ResolutionResult({self.name!r}, {self.status}, strategy={self.strategy!r})"


def target_spellings(name):
    """Conventional target names a package called name may already provide."""
    if "::" in name:
        return [name]
    lower = name.lower()
    spellings = [name, f"{name}::{name}", f"{name}::static", f"{name}::shared", f"{name}::debug"]
    if f"{lower}::{lower}" not in spellings:
        spellings.append(f"{lower}::{lower}")
    return spellings


# ---------------------------------------------------------------- strategies

def fast_path(resolver, name):
    cached = resolver.cache.lookup(name)
    if cached is not None and cached.found:
        return cached
    for spelling in target_spellings(name):
        if resolver.targets.exists(spelling):
            logger.debug(f'Target "{spelling}" already exists')
            return resolver.found(name, name, "fast-path", targets=[spelling])
    return None


def qualified_target(resolver, name):
    if "::" not in name:
        return None
    logger.info(f'Trying to find target: "{name}"')
    package, actual = name.split("::")[0], name.split("::")[-1]
    candidates = [package] if package == actual else [package, actual]
    for candidate in candidates:
        found, _ = resolver.native_discover(candidate)
        if found and resolver.targets.exists(name):
            logger.info(f'Found package: "{candidate}" for target: "{name}"')
            return resolver.found(name, candidate, "native", targets=[name])
    for candidate in candidates:
        for path in resolver.config_files(candidate):
            logger.info(f'Considering CMake config: "{path}" for "{candidate}"')
            resolver.evaluator.include(path)
            if resolver.targets.exists(name):
                logger.info(f'Found target "{name}" via CMake configuration for package "{candidate}"')
                return resolver.found(name, candidate, "filesystem-scan", targets=[name])
    logger.info(f'Could not find target: "{name}"')
    return ResolutionResult.not_found(name, "qualified-target")


def native_search(resolver, name):
    found, new_targets = resolver.native_discover(name)
    if not found:
        return None
    return resolver.found(name, name, "native", targets=new_targets)


def module_search(resolver, name):
    info = resolver.modules.query(name)
    if info is None:
        return None
    logger.info(f'Found "{name}" with pkg-config')
    libraries = resolve_libraries(info.libraries, info.library_dirs)
    for prefix in dict.fromkeys((name, name.upper())):
        resolver.scope.set(f"{prefix}_FOUND", "TRUE")
        resolver.scope.set(f"{prefix}_INCLUDE_DIRS", info.include_dirs)
        resolver.scope.set(f"{prefix}_LIBRARIES", info.libraries)
        resolver.scope.set(f"{prefix}_LIBRARY_DIRS", info.library_dirs)
        resolver.scope.set(f"{prefix}_VERSION", info.version)
    lower = name.lower()
    target = f"{lower}::{lower}"
    if info.is_empty:
        logger.debug(f"[module] {name} has no include directories or libraries; {target} is an empty placeholder")
    resolver.targets.create_placeholder(target, info.include_dirs, libraries)
    return resolver.found(name, name, "module", include_dirs=info.include_dirs,
                          libraries=libraries, targets=[target])


def filesystem_scan(resolver, name):
    for path in resolver.config_files(name):
        before = set(resolver.targets.names())
        logger.info(f'Considering CMake configuration file: "{path}"')
        resolver.evaluator.include(path)
        new_targets = [t for t in resolver.targets.names() if t not in before]
        if resolver.scope.is_package_found(name) or resolver.has_package_target(name):
            logger.info(f'Successfully included "{path}" for "{name}"')
            return resolver.found(name, name, "filesystem-scan", targets=new_targets)
    return None


DEFAULT_STRATEGIES = (fast_path, qualified_target, native_search, module_search, filesystem_scan)


class PackageResolver:
    """Maps package names to targets in a ConfigurationScope.

    The finder, module finder and strategy list are injectable so the chain
    can be exercised without a real install tree.
    """

    def __init__(self, scope=None, finder=None, modules=None, search_paths=None,
                 quirks=None, strategies=None):
        self.scope = scope if scope is not None else ConfigurationScope()
        self.finder = finder if finder is not None else PackageFinder()
        self.modules = modules if modules is not None else ModuleFinder()
        self.search_paths = list(search_paths or [])
        self.quirks = QUIRKS if quirks is None else quirks
        self.strategies = list(strategies or DEFAULT_STRATEGIES)
        self.evaluator = ScriptEvaluator(self.scope, on_find_package=self._find_dependency)
        self._native = {}
        self._in_progress = set()

    @property
    def targets(self):
        return self.scope.targets

    @property
    def cache(self):
        return self.scope.cache

    def is_found(self, name):
        return self.scope.is_package_found(name)

    def resolve(self, name, required=False):
        """Resolve name; raises RequiredPackageNotFound when required and missing."""
        cached = self.cache.lookup(name)
        if cached is not None and not cached.found:
            result = cached
        elif name in self._in_progress:
            logger.debug(f'"{name}" is already being resolved')
            return ResolutionResult.not_found(name, "cycle")
        else:
            logger.info(f'Trying to find "{name}"')
            self._in_progress.add(name)
            try:
                result = self._run_strategies(name)
            finally:
                self._in_progress.discard(name)
            self.cache.store(result)

        if result.found:
            self.cache.mark_found(name, result.package)
            logger.success(f'Found package: "{result.package}"')
        elif required:
            logger.error(f'Could not find package: "{name}"')
            raise RequiredPackageNotFound(name)
        else:
            logger.info(f'Could not find "{name}"')
        return result

    def resolve_all(self, names, required=True):
        return [self.resolve(name, required=required) for name in names]

    def _run_strategies(self, name):
        for strategy in self.strategies:
            result = strategy(self, name)
            if result is not None:
                return result
        return ResolutionResult.not_found(name)

    def _find_dependency(self, name):
        """Optional resolution for find_dependency; None leaves <name>_FOUND untouched."""
        if name in self._in_progress:
            logger.debug(f'"{name}" is already being resolved')
            return None
        return self.resolve(name).found

    # ---- helpers used by the strategies
    def found(self, name, package, strategy, targets=None, include_dirs=None, libraries=None):
        targets = [t for t in (targets or []) if self.targets.exists(t)]
        if include_dirs is None and libraries is None:
            include_dirs, libraries = [], []
            for target_name in targets:
                target = self.targets.get(target_name)
                include_dirs.extend(d for d in target.include_dirs if d not in include_dirs)
                if target.location and target.location not in libraries:
                    libraries.append(target.location)
                libraries.extend(lib for lib in target.link_libraries if lib not in libraries)
        status = FOUND_TARGET if targets or self.has_package_target(name) else FOUND_FILES
        return ResolutionResult(name, status, package=package, strategy=strategy,
                                include_dirs=include_dirs, libraries=libraries, targets=targets)

    def has_package_target(self, name):
        if any(self.targets.exists(spelling) for spelling in target_spellings(name)):
            return True
        return any(t.startswith(f"{name}::") for t in self.targets.names())

    def config_files(self, name):
        return scan_config_files(name, self.search_paths)

    def native_discover(self, name):
        """Run the native search for name once; returns (found, new target names)."""
        if name in self._native:
            return self._native[name]
        quirk = self.quirks.get(name)
        before = set(self.targets.names())
        if quirk:
            quirk.apply("before", self, name)
        self.finder.find_package(name, self.evaluator)
        if quirk:
            quirk.apply("after", self, name)
        found = self.scope.is_package_found(name)
        if found:
            new_targets = [t for t in self.targets.names() if t not in before]
            self._auto_alias(name, new_targets)
            self._heal_module_references(new_targets)
            if quirk:
                quirk.apply("on_found", self, name)
            logger.info(f'Found "{name}" with find_package')
        new_targets = [t for t in self.targets.names() if t not in before]
        self._native[name] = (found, new_targets)
        return found, new_targets

    def _auto_alias(self, name, new_targets):
        alias = f"{name}::{name}"
        matches = [t for t in new_targets if t.startswith(f"{name}::")]
        if len(matches) == 1:
            if not self.targets.exists(alias):
                logger.debug(f"[alias] creating {alias} -> {matches[0]}")
                self.targets.add_alias(alias, matches[0])
        elif len(matches) > 1:
            logger.debug(f"[alias] {len(matches)} candidates for {alias}: {matches}; not aliasing")

    def _heal_module_references(self, new_targets):
        """Synthesize PkgConfig::X targets that new targets link to but nobody defined."""
        for target_name in new_targets:
            for lib in self.targets.interface_link_libraries(target_name):
                match = _PKG_CONFIG_REF.match(lib)
                if not match or self.targets.exists(lib):
                    continue
                info = self.modules.query(match.group(1))
                if info is None:
                    logger.debug(f"[fixup] {lib} is referenced by {target_name} but pkg-config does not know it")
                    continue
                libraries = resolve_libraries(info.libraries, info.library_dirs)
                self.targets.create_placeholder(lib, info.include_dirs, libraries)


def resolver_from_config(conf, extra_search_paths=None):
    """A resolver searching the project's configured package paths."""
    search_paths = config.get_search_paths(conf) + list(extra_search_paths or [])
    return PackageResolver(finder=PackageFinder(prefixes=search_paths), search_paths=search_paths)
