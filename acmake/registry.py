"""Targets, found flags and variables of one configuration run."""
import re

from .cli_logger import logger

TARGET_KINDS = ("STATIC", "SHARED", "MODULE", "UNKNOWN", "INTERFACE", "OBJECT", "ALIAS")

FALSE_CONSTANTS = {"", "0", "OFF", "NO", "FALSE", "N", "IGNORE", "NOTFOUND"}

_INSTALL_INTERFACE = re.compile(r"^\$<INSTALL_INTERFACE:(.*)>$")
_BUILD_INTERFACE = re.compile(r"^\$<BUILD_INTERFACE:(.*)>$")
_LINK_ONLY = re.compile(r"^\$<LINK_ONLY:(.*)>$")


def is_true(value):
    """CMake truthiness of a variable value."""
    if value is None:
        return False
    value = str(value).strip()
    if value.upper() in FALSE_CONSTANTS or value.upper().endswith("-NOTFOUND"):
        return False
    return True


def split_list(value):
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [v for v in value if v]
    return [v for v in str(value).split(";") if v]


def _link_items(values):
    items = []
    for value in split_list(values):
        match = _LINK_ONLY.match(value)
        items.append(match.group(1) if match else value)
    return items


def _interface_paths(values):
    paths = []
    for value in split_list(values):
        match = _INSTALL_INTERFACE.match(value)
        if match:
            value = match.group(1)
        elif _BUILD_INTERFACE.match(value):
            continue
        if value and value not in paths:
            paths.append(value)
    return paths


class Target:
    def __init__(self, name, kind="INTERFACE", include_dirs=None, link_libraries=None,
                 location=None, imported=True, aliased=None):
        if kind not in TARGET_KINDS:
            raise ValueError(f"Unknown target kind '{kind}' for {name}")
        self.name = name
        self.kind = kind
        self.include_dirs = _interface_paths(include_dirs)
        self.link_libraries = _link_items(link_libraries)
        self.location = location
        self.imported = imported
        self.aliased = aliased
        self.properties = {}

    @property
    def is_alias(self):
        return self.aliased is not None

    def set_property(self, key, value, append=False):
        if key == "INTERFACE_INCLUDE_DIRECTORIES":
            paths = _interface_paths(value)
            self.include_dirs = (self.include_dirs + [p for p in paths if p not in self.include_dirs]) if append else paths
        elif key == "INTERFACE_LINK_LIBRARIES":
            libs = _link_items(value)
            self.link_libraries = (self.link_libraries + libs) if append else libs
        elif key == "IMPORTED_LOCATION" or key.startswith("IMPORTED_LOCATION_"):
            # configuration-specific locations only fill in a missing one
            if key == "IMPORTED_LOCATION" or not self.location:
                self.location = value or None
        else:
            if append and self.properties.get(key):
                value = f"{self.properties[key]};{value}"
            self.properties[key] = value

    def to_dict(self):
        return {
            "name": self.name,
            "kind": self.kind,
            "include_dirs": list(self.include_dirs),
            "link_libraries": list(self.link_libraries),
            "location": self.location,
            "imported": self.imported,
            "aliased": self.aliased,
        }

    def __repr__(self):
        if self.is_alias:
            return f"Target({self.name!r} -> {self.aliased!r})"
        return f"Target({self.name!r}, {self.kind})"


class TargetRegistry:
    """Name keyed registry of targets known to the current run."""

    def __init__(self):
        self._targets = {}

    def __contains__(self, name):
        return self.exists(name)

    def __len__(self):
        return len(self._targets)

    def exists(self, name):
        return name in self._targets

    def names(self):
        return list(self._targets)

    def get(self, name):
        """Return the target for name, following aliases, or None."""
        target = self._targets.get(name)
        while target is not None and target.is_alias:
            target = self._targets.get(target.aliased)
        return target

    def add(self, target):
        if target.name in self._targets:
            raise ValueError(f'Target "{target.name}" already exists')
        self._targets[target.name] = target
        return target

    def add_alias(self, alias, name):
        real = self.get(name)
        if real is None:
            raise ValueError(f'Cannot alias "{alias}" to missing target "{name}"')
        return self.add(Target(alias, kind="ALIAS", imported=real.imported, aliased=real.name))

    def create_placeholder(self, name, include_dirs=None, libraries=None):
        """Create an imported interface target once; later calls return it unchanged."""
        if self.exists(name):
            return self.get(name)
        logger.debug(f"[fixup] synthesised {name} (incl={split_list(include_dirs)}; libs={split_list(libraries)})")
        return self.add(Target(name, kind="INTERFACE", include_dirs=include_dirs,
                               link_libraries=libraries, imported=True))

    def interface_link_libraries(self, name):
        target = self.get(name)
        return list(target.link_libraries) if target else []


class ResolutionCache:
    """Found flags and memoized results; a flag once set stays set."""

    def __init__(self):
        self._flags = {}
        self._results = {}

    def mark_found(self, *names):
        for name in names:
            if not name:
                continue
            self._flags[name] = True
            self._flags[name.upper()] = True

    def is_found(self, name):
        return self._flags.get(name, False) or self._flags.get(name.upper(), False)

    def flags(self):
        return {f"{name}_FOUND": value for name, value in self._flags.items()}

    def store(self, result):
        self._results[result.name] = result

    def lookup(self, name):
        return self._results.get(name)


class ConfigurationScope:
    """Everything a resolution run mutates, passed around explicitly."""

    def __init__(self, variables=None, targets=None, cache=None):
        self.variables = dict(variables or {})
        self.targets = targets if targets is not None else TargetRegistry()
        self.cache = cache if cache is not None else ResolutionCache()

    def get(self, name, default=""):
        return self.variables.get(name, default)

    def set(self, name, value):
        if isinstance(value, (list, tuple)):
            value = ";".join(value)
        self.variables[name] = value

    def unset(self, name):
        self.variables.pop(name, None)

    def is_package_found(self, name):
        if self.cache.is_found(name):
            return True
        return is_true(self.variables.get(f"{name}_FOUND")) or \
            is_true(self.variables.get(f"{name.upper()}_FOUND"))
