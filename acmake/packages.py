"""Which packages a library, executable or test links against."""
from . import config
from .cli_logger import logger


def _append_unique(packages, values):
    for value in values or []:
        if value not in packages:
            packages.append(value)


def construct_package_list(conf):
    """Every package a binary/test configuration needs resolved, in order."""
    custom, third_party = config.get_packages(conf)
    binaries = config.get_targets(conf, "binaries")
    tests = config.get_targets(conf, "tests")
    lib_to_test = conf.get("project", {}).get("lib_to_test", "")

    packages = []
    _append_unique(packages, third_party)
    for settings in binaries.values():
        _append_unique(packages, settings["third_party_packages"])
    for settings in tests.values():
        _append_unique(packages, settings["third_party_packages"])
    for settings in binaries.values():
        _append_unique(packages, settings["custom_packages"])
    for settings in tests.values():
        _append_unique(packages, settings["custom_packages"])
    if lib_to_test:
        _append_unique(packages, [lib_to_test])
    _append_unique(packages, custom)
    return packages


def is_header_only_library(registry, name):
    """A custom library without a debug variant only ships headers."""
    return not registry.exists(f"{name}::debug")


def construct_link_packages(registry, lib_to_test, custom, third_party, lib_style):
    """Return (packages, header_packages) for one link style."""
    packages = []
    header_packages = []

    if lib_to_test:
        if is_header_only_library(registry, lib_to_test):
            header_packages.append(f"{lib_to_test}::{lib_to_test}")
        else:
            packages.append(f"{lib_to_test}::{lib_style}")

    for name in custom or []:
        if name == lib_to_test:
            continue
        if is_header_only_library(registry, name):
            header_packages.append(f"{name}::{name}")
        else:
            packages.append(f"{name}::{lib_style}")

    for name in third_party or []:
        packages.append(name if "::" in name else f"{name}::{name}")

    return packages, header_packages


def packages_for_target(conf, registry, target_name, section, lib_style):
    """Link packages for one binary or test; its own lists override the project's."""
    custom, third_party = config.get_packages(conf)
    settings = config.get_targets(conf, section).get(target_name, {})
    if settings.get("custom_packages") is not None:
        custom = settings["custom_packages"]
    if settings.get("third_party_packages") is not None:
        third_party = settings["third_party_packages"]
    lib_to_test = conf.get("project", {}).get("lib_to_test", "")
    return construct_link_packages(registry, lib_to_test, custom, third_party, lib_style)


def library_package_groups(registry, custom, third_party):
    groups = {"static": [], "debug": [], "shared": [], "header": []}
    for name in custom or []:
        if is_header_only_library(registry, name):
            groups["header"].append(f"{name}::{name}")
        else:
            for style in ("static", "debug", "shared"):
                groups[style].append(f"{name}::{style}")
    for name in third_party or []:
        reference = name if "::" in name else f"{name}::{name}"
        for style in ("static", "debug", "shared"):
            groups[style].append(reference)
    return groups


def collect_dependencies(registry, name, _seen=None):
    """Targets reachable from name through interface link libraries."""
    seen = set() if _seen is None else _seen
    dependencies = []
    for dependency in registry.interface_link_libraries(name):
        if dependency in seen or not registry.exists(dependency):
            continue
        seen.add(dependency)
        dependencies.append(dependency)
        dependencies.extend(collect_dependencies(registry, dependency, seen))
    return dependencies


def prune_root_packages(registry, packages):
    """Drop packages another listed package already pulls in."""
    remove = set()
    for root in packages:
        if not registry.exists(root):
            continue
        for dependency in collect_dependencies(registry, root):
            if dependency != root and dependency in packages:
                remove.add(dependency)
    pruned = []
    for name in packages:
        if name not in remove and name not in pruned:
            pruned.append(name)
    if remove:
        logger.debug(f"Pruned transitively linked packages: {sorted(remove)}")
    return pruned


def build_link_plan(conf, resolver, options):
    """Resolve every required package, then work out what links against what."""
    custom, third_party = config.get_packages(conf)
    registry = resolver.targets
    plan = {"kind": options.kind, "lib_style": options.lib_style}

    if options.kind == "library":
        packages = []
        _append_unique(packages, third_party)
        _append_unique(packages, custom)
        resolver.resolve_all(packages, required=True)
        plan["packages"] = packages
        plan["groups"] = library_package_groups(registry, custom, third_party)
        for style in ("static", "debug", "shared", "header"):
            logger.info(f"Linking against {style}: {';'.join(plan['groups'][style])}")
        return plan

    packages = construct_package_list(conf)
    resolver.resolve_all(packages, required=True)
    plan["packages"] = packages
    lib_to_test = conf.get("project", {}).get("lib_to_test", "")
    link, header = construct_link_packages(registry, lib_to_test, custom, third_party, options.lib_style)
    plan["link"] = prune_root_packages(registry, link)
    plan["header"] = header
    logger.info(f"Linking against {';'.join(plan['link'])}")

    plan["targets"] = {}
    for section in ("binaries", "tests"):
        for name, settings in config.get_targets(conf, section).items():
            link, header = packages_for_target(conf, registry, name, section, options.lib_style)
            plan["targets"][name] = {
                "sources": settings["sources"] or [f"{name}.c"],
                "link": prune_root_packages(registry, link),
                "header": header,
                "test": section == "tests",
            }
    return plan
