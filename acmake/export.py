import os

from packaging.version import InvalidVersion, Version

from .cli_logger import logger
from .errors import AcmakeError, ConfigurationError

COMPATIBILITY_POLICIES = ("AnyNewerVersion", "SameMajorVersion", "SameMinorVersion", "ExactVersion")

_VERSION_HEADER = """\
# Generated by acmake. Version file for {name}.
set(PACKAGE_VERSION "{version}")

if(PACKAGE_VERSION VERSION_LESS PACKAGE_FIND_VERSION)
  set(PACKAGE_VERSION_COMPATIBLE FALSE)
else()
"""

_VERSION_FOOTER = """\
  if(PACKAGE_FIND_VERSION STREQUAL PACKAGE_VERSION)
    set(PACKAGE_VERSION_EXACT TRUE)
  endif()
endif()
"""

_UNINSTALL_SCRIPT = """\
if(NOT EXISTS "{manifest}")
    message(FATAL_ERROR "Cannot find install manifest: {manifest}")
endif()

file(READ "{manifest}" files)
string(REGEX REPLACE "\\n" ";" files "${{files}}")
foreach(file ${{files}})
    message(STATUS "Uninstalling $ENV{{DESTDIR}}${{file}}")
    if(EXISTS "$ENV{{DESTDIR}}${{file}}")
        execute_process(COMMAND ${{CMAKE_COMMAND}} -E remove "$ENV{{DESTDIR}}${{file}}")
    else()
        message(STATUS "File $ENV{{DESTDIR}}${{file}} does not exist.")
    endif()
endforeach()
"""


def parse_project_version(version):
    try:
        return Version(str(version))
    except InvalidVersion as e:
        raise ConfigurationError(f"Invalid project version '{version}': {e}")


def version_file_contents(name, version, compatibility="SameMajorVersion"):
    if compatibility not in COMPATIBILITY_POLICIES:
        raise ConfigurationError(f"Unknown version compatibility '{compatibility}'")
    parsed = parse_project_version(version)
    body = _VERSION_HEADER.format(name=name, version=version)
    if compatibility == "AnyNewerVersion":
        body += "  set(PACKAGE_VERSION_COMPATIBLE TRUE)\n"
    elif compatibility == "ExactVersion":
        body += (
            "  if(PACKAGE_FIND_VERSION STREQUAL PACKAGE_VERSION)\n"
            "    set(PACKAGE_VERSION_COMPATIBLE TRUE)\n"
            "  else()\n"
            "    set(PACKAGE_VERSION_COMPATIBLE FALSE)\n"
            "  endif()\n"
        )
    else:
        condition = f'PACKAGE_FIND_VERSION_MAJOR STREQUAL "{parsed.major}"'
        if compatibility == "SameMinorVersion":
            condition += f' AND PACKAGE_FIND_VERSION_MINOR STREQUAL "{parsed.minor}"'
        body += (
            f"  if({condition})\n"
            "    set(PACKAGE_VERSION_COMPATIBLE TRUE)\n"
            "  else()\n"
            "    set(PACKAGE_VERSION_COMPATIBLE FALSE)\n"
            "  endif()\n"
        )
    return body + _VERSION_FOOTER


def dependency_names(packages):
    """Package names to forward with find_dependency, qualified names reduced to their prefix."""
    names = []
    for package in packages or []:
        name = package.split("::")[0]
        if name and name not in names:
            names.append(name)
    return names


def config_file_contents(name, include_dir, dependencies=None):
    lines = [f"# Generated by acmake. Package configuration for {name}.", ""]
    forwarded = dependency_names(dependencies)
    if forwarded:
        lines.append("include(CMakeFindDependencyMacro)")
        lines.extend(f"find_dependency({dependency})" for dependency in forwarded)
        lines.append("")
    lines.append("# Include directory")
    lines.append(f'set({name}_INCLUDE_DIR "{include_dir}")')
    lines.append("")
    lines.append("# Include the exported targets")
    lines.append(f'include("${{CMAKE_CURRENT_LIST_DIR}}/{name}Targets.cmake" OPTIONAL)')
    return "\n".join(lines) + "\n"


def _write(path, contents):
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w") as f:
        f.write(contents)
    logger.step_info(f"Wrote {path}", indent=2)
    return path


def write_version_file(name, version, dest_dir, compatibility="SameMajorVersion"):
    path = os.path.join(dest_dir, f"{name}ConfigVersion.cmake")
    return _write(path, version_file_contents(name, version, compatibility))


def write_package_config(name, include_dir, dest_dir, dependencies=None):
    path = os.path.join(dest_dir, f"{name}Config.cmake")
    return _write(path, config_file_contents(name, include_dir, dependencies))


def write_uninstall_script(build_dir):
    manifest = os.path.join(os.path.abspath(build_dir), "install_manifest.txt")
    path = os.path.join(build_dir, "cmake_uninstall.cmake")
    return _write(path, _UNINSTALL_SCRIPT.format(manifest=manifest))


def uninstall_from_manifest(manifest, destdir=None):
    """Remove every file listed in an install manifest.

    Returns (removed, missing). Files already gone are reported, not fatal.
    """
    if not os.path.isfile(manifest):
        raise AcmakeError(f"Cannot find install manifest: {manifest}")
    destdir = destdir if destdir is not None else os.environ.get("DESTDIR", "")
    removed, missing = [], []
    with open(manifest, "r") as f:
        files = [line.strip() for line in f if line.strip()]
    for file in files:
        path = f"{destdir}{file}"
        logger.step_info(f"Uninstalling {path}", indent=2)
        if os.path.lexists(path):
            os.remove(path)
            removed.append(path)
        else:
            logger.info(f"File {path} does not exist.")
            missing.append(path)
    return removed, missing
