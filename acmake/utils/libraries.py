import os
import re
import sysconfig

LIBRARY_SEARCH_PATHS = [
    "/usr/local/lib",
    "/opt/homebrew/lib",
    "/usr/lib",
    "/usr/lib64",
    "/lib",
]

INCLUDE_SEARCH_PATHS = [
    "/usr/local/include",
    "/opt/homebrew/include",
    "/usr/include",
]

# shared first, matching the order find_library prefers
LIBRARY_SUFFIXES = (".so", ".dylib", ".a", ".tbd")

_LIBRARY_FILE = re.compile(r"\.(a|so(\.\d+)*|dylib|tbd|lib|dll)$")


def _multiarch_dirs():
    multiarch = sysconfig.get_config_var("MULTIARCH")
    if not multiarch:
        return []
    return [f"/usr/lib/{multiarch}", f"/lib/{multiarch}"]


def default_library_dirs():
    dirs = list(LIBRARY_SEARCH_PATHS)
    dirs[3:3] = [path for path in _multiarch_dirs() if path not in dirs]
    return dirs


def find_library(name, search_dirs=None):
    """Find lib<name> in search_dirs, then the conventional library dirs."""
    dirs = list(search_dirs or []) + default_library_dirs()
    for directory in dirs:
        for suffix in LIBRARY_SUFFIXES:
            candidate = os.path.join(directory, f"lib{name}{suffix}")
            if os.path.isfile(candidate):
                return os.path.abspath(candidate)
    return None


def find_header(header, search_dirs=None):
    """Return the include directory that contains header, or None."""
    for directory in list(search_dirs or []) + INCLUDE_SEARCH_PATHS:
        if os.path.isfile(os.path.join(directory, header)):
            return directory
    return None


def is_verbatim_library(token):
    return (
        os.path.isabs(token)
        or "::" in token
        or bool(_LIBRARY_FILE.search(token))
        or (token.startswith("-") and not token.startswith("-l"))
    )


def resolve_library(token, search_dirs=None):
    """Turn a link token into an absolute path when a matching file exists.

    Absolute paths, file names with a library extension, namespaced target
    names and linker flags other than -l are returned unchanged. Tokens that
    cannot be found are returned unchanged too.
    """
    if not token or is_verbatim_library(token):
        return token
    name = token[2:] if token.startswith("-l") else token
    path = find_library(name, search_dirs)
    return path or token


def resolve_libraries(tokens, search_dirs=None):
    return [resolve_library(token, search_dirs) for token in tokens if token]
